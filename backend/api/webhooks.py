"""
Payment webhooks

The body is verified against the Stripe-Signature header before anything
is read from it; fulfilment is idempotent per event id.
"""

from fastapi import APIRouter, Depends, Header, Request
from typing import Optional
import logging

from config import get_settings
from services.errors import CreditsError
from services.payments import parse_event, verify_webhook_signature
from services.store_service import StoreService
from api.dependencies import get_store_service
from api.errors import http_error

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    store: StoreService = Depends(get_store_service)
):
    payload = await request.body()

    try:
        verify_webhook_signature(
            payload,
            stripe_signature or "",
            settings.stripe_webhook_secret,
            tolerance_seconds=settings.stripe_webhook_tolerance_seconds,
        )
        event = parse_event(payload)
        result = await store.handle_payment_event(event)
    except CreditsError as e:
        logger.warning(f"Rejected payment webhook: {e}")
        raise http_error(e)

    return result
