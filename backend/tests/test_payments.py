"""
Payment gateway tests: webhook signatures and checkout sessions
"""

import hashlib
import hmac
import json

import httpx
import pytest

from services.errors import PaymentGatewayError, PaymentVerificationError
from services.payments import KIND_CREDITS, StripeGateway, parse_event, verify_webhook_signature

SECRET = "whsec_test"
NOW = 1_700_000_000


def sign(payload: bytes, secret: str = SECRET, timestamp: int = NOW) -> str:
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


# =============================================================================
# WEBHOOK SIGNATURES
# =============================================================================

class TestWebhookSignature:

    def test_valid_signature(self):
        payload = b'{"id": "evt_1", "type": "checkout.session.completed"}'
        verify_webhook_signature(payload, sign(payload), SECRET, now=NOW + 10)

    def test_any_matching_v1_accepted(self):
        payload = b'{"id": "evt_1"}'
        header = sign(payload) + ",v1=deadbeef"
        verify_webhook_signature(payload, header, SECRET, now=NOW)

    def test_tampered_body(self):
        payload = b'{"id": "evt_1", "amount": 100}'
        header = sign(payload)

        with pytest.raises(PaymentVerificationError):
            verify_webhook_signature(b'{"id": "evt_1", "amount": 999}', header, SECRET, now=NOW)

    def test_wrong_secret(self):
        payload = b'{"id": "evt_1"}'
        with pytest.raises(PaymentVerificationError):
            verify_webhook_signature(payload, sign(payload, secret="other"), SECRET, now=NOW)

    def test_outside_tolerance(self):
        payload = b'{"id": "evt_1"}'
        with pytest.raises(PaymentVerificationError):
            verify_webhook_signature(payload, sign(payload), SECRET, tolerance_seconds=300, now=NOW + 301)

    @pytest.mark.parametrize("header", ["", "garbage", "t=123", "v1=abc", "t=abc,v1=abc"])
    def test_malformed_header(self, header):
        with pytest.raises(PaymentVerificationError):
            verify_webhook_signature(b"{}", header, SECRET, now=NOW)

    def test_missing_secret(self):
        payload = b"{}"
        with pytest.raises(PaymentVerificationError):
            verify_webhook_signature(payload, sign(payload), "", now=NOW)

    def test_parse_event(self):
        event = parse_event(json.dumps({"id": "evt_1", "type": "x"}).encode())
        assert event["id"] == "evt_1"

        with pytest.raises(PaymentVerificationError):
            parse_event(b"not json")
        with pytest.raises(PaymentVerificationError):
            parse_event(b'{"type": "x"}')


# =============================================================================
# CHECKOUT
# =============================================================================

class TestCheckout:

    @pytest.mark.asyncio
    async def test_creates_session_with_metadata(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["form"] = dict(httpx.QueryParams(request.content.decode()))
            return httpx.Response(200, json={"id": "cs_test_1", "url": "https://checkout.test/cs_test_1"})

        gateway = StripeGateway("sk_test", api_base="https://stripe.test/v1",
                                transport=httpx.MockTransport(handler))

        session = await gateway.create_checkout_session(
            user_id="u1", email="u1@funfans.com", kind=KIND_CREDITS,
            item_id="pkg_100", name="100 credits", unit_amount_cents=999,
        )

        assert session.id == "cs_test_1"
        assert session.url == "https://checkout.test/cs_test_1"
        assert seen["url"] == "https://stripe.test/v1/checkout/sessions"
        assert seen["form"]["metadata[user_id]"] == "u1"
        assert seen["form"]["metadata[kind]"] == KIND_CREDITS
        assert seen["form"]["metadata[item_id]"] == "pkg_100"
        assert seen["form"]["line_items[0][price_data][unit_amount]"] == "999"

    @pytest.mark.asyncio
    async def test_unconfigured_gateway(self):
        gateway = StripeGateway("")

        with pytest.raises(PaymentGatewayError) as exc:
            await gateway.create_checkout_session("u1", "u1@funfans.com", KIND_CREDITS, "pkg", "x", 100)
        assert exc.value.status_code == 503

    @pytest.mark.asyncio
    async def test_gateway_rejection(self):
        gateway = StripeGateway("sk_test", transport=httpx.MockTransport(
            lambda request: httpx.Response(400, json={"error": {"message": "bad"}})
        ))

        with pytest.raises(PaymentGatewayError) as exc:
            await gateway.create_checkout_session("u1", "u1@funfans.com", KIND_CREDITS, "pkg", "x", 100)
        assert exc.value.status_code == 502
