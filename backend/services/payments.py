"""
Payment gateway (Stripe Checkout)

Credits are never granted when a checkout session is created. They are
granted only when a webhook with a valid signature reports a paid session
(`checkout.session.completed` with payment_status "paid", or
`checkout.session.async_payment_succeeded`), once per event id.

Signature header format: `t=<unix ts>,v1=<hex hmac>[,v1=...]`, where the
HMAC-SHA256 is computed with the webhook secret over `"{t}.{raw body}"`.
"""
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from services.errors import PaymentGatewayError, PaymentVerificationError

logger = logging.getLogger(__name__)

KIND_CREDITS = "credits"
KIND_SUBSCRIPTION = "subscription"


@dataclass
class CheckoutSession:
    id: str
    url: str


def verify_webhook_signature(payload: bytes, sig_header: str, secret: str,
                             tolerance_seconds: int = 300, now: Optional[float] = None) -> None:
    """
    Verify a Stripe webhook signature.

    Raises:
        PaymentVerificationError: missing/malformed header, bad signature,
            or timestamp outside the tolerance window
    """
    if not secret:
        raise PaymentVerificationError("Webhook secret not configured")
    if not sig_header:
        raise PaymentVerificationError("Missing signature header")

    timestamp = None
    signatures = []
    for item in sig_header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)

    if not timestamp or not signatures:
        raise PaymentVerificationError("Malformed signature header")

    try:
        signed_at = int(timestamp)
    except ValueError:
        raise PaymentVerificationError("Malformed signature timestamp")

    now = time.time() if now is None else now
    if abs(now - signed_at) > tolerance_seconds:
        raise PaymentVerificationError("Signature timestamp outside tolerance")

    signed_payload = f"{timestamp}.".encode() + payload
    expected = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise PaymentVerificationError("Signature mismatch")


def parse_event(payload: bytes) -> Dict[str, Any]:
    try:
        event = json.loads(payload)
    except ValueError:
        raise PaymentVerificationError("Webhook body is not JSON")
    if not isinstance(event, dict) or "id" not in event or "type" not in event:
        raise PaymentVerificationError("Webhook body is not an event")
    return event


class StripeGateway:
    """
    Thin Stripe API client over httpx.

    Args:
        secret_key: Stripe secret key
        api_base: API root (overridable for tests)
        transport: optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(self, secret_key: str, api_base: str = "https://api.stripe.com/v1",
                 success_url: str = "", cancel_url: str = "",
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.success_url = success_url
        self.cancel_url = cancel_url
        self.transport = transport

    async def create_checkout_session(self, user_id: str, email: str, kind: str, item_id: str,
                                      name: str, unit_amount_cents: int, currency: str = "usd") -> CheckoutSession:
        """
        Create a hosted checkout session.

        The purchased item is carried in metadata and echoed back in the
        completion webhook.

        Raises:
            PaymentGatewayError: gateway not configured or request failed
        """
        if not self.secret_key:
            raise PaymentGatewayError("Payment gateway not configured", status_code=503)

        form = {
            "mode": "payment",
            "success_url": self.success_url,
            "cancel_url": self.cancel_url,
            "client_reference_id": user_id,
            "customer_email": email,
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": currency.lower(),
            "line_items[0][price_data][unit_amount]": str(unit_amount_cents),
            "line_items[0][price_data][product_data][name]": name,
            "metadata[user_id]": user_id,
            "metadata[kind]": kind,
            "metadata[item_id]": item_id,
        }

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self.transport) as client:
                response = await client.post(
                    f"{self.api_base}/checkout/sessions",
                    data=form,
                    auth=(self.secret_key, ""),
                )
        except httpx.HTTPError as e:
            logger.error(f"Checkout session request failed: {e}")
            raise PaymentGatewayError("Payment gateway unreachable", status_code=502)

        if response.status_code >= 400:
            logger.warning(f"Checkout session rejected ({response.status_code}): {response.text[:200]}")
            raise PaymentGatewayError("Payment gateway rejected the request", status_code=502)

        data = response.json()
        logger.info(f"Created checkout session {data.get('id')} for user {user_id} ({kind} {item_id})")
        return CheckoutSession(id=data["id"], url=data.get("url", ""))
