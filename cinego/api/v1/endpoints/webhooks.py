"""
Payment provider webhook
"""

from typing import Any
import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cinego.core.database import get_session
from cinego.services.checkout import PaymentGateway, get_payment_gateway
from cinego.services.payment_confirmation import PaymentConfirmationHandler

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/payment")
async def payment_webhook(
    request: Request,
    db: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway)
) -> Any:
    """
    Receive payment events.

    Only a signature failure is rejected (WebhookSignatureError -> 400 via the
    app exception handler). Everything else is acknowledged so the provider
    stops redelivering, even if processing failed.
    """
    payload = await request.body()
    event = gateway.construct_event(payload, request.headers.get("stripe-signature"))
    label = f"{event.get('type')} {event.get('id')}" if isinstance(event, dict) else type(event).__name__

    try:
        outcome = await PaymentConfirmationHandler(gateway).handle_event(db, event)
        logger.info(f"Webhook {label}: {outcome}")
    except Exception as e:
        await db.rollback()
        logger.error(
            f"Webhook {label} processing failed: {type(e).__name__}: {e}",
            exc_info=True
        )

    return {"received": True}
