"""
Stripe webhook receiver. Mounted outside /api so the raw body reaches the
signature check untouched.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.core.config import get_settings
from tourbook.core.logging import get_logger
from tourbook.core.metrics import record_webhook_event
from tourbook.db.session import get_db
from tourbook.infrastructure.stripe_client import StripeSignatureError, verify_webhook_signature
from tourbook.services import booking_service

logger = get_logger(__name__)
router = APIRouter(tags=["Webhooks"])


@router.post("/webhook-checkout")
async def webhook_checkout(request: Request, db: AsyncSession = Depends(get_db)):
    settings = get_settings()
    payload = await request.body()
    try:
        event = verify_webhook_signature(
            payload,
            request.headers.get("Stripe-Signature"),
            settings.STRIPE_WEBHOOK_SECRET,
            tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
        )
    except StripeSignatureError as e:
        record_webhook_event("unknown", "rejected")
        logger.warning("webhook_rejected", error=str(e))
        return JSONResponse(status_code=400, content={"status": "fail", "message": f"Webhook error: {e}"})

    await booking_service.handle_webhook_event(db, event)
    return {"received": True}
