"""
Payment webhook processing.

Providers deliver events at least once, in any order relative to the expiry
reaper. Every outcome other than a bad signature is acknowledged, so the
handler reports what it did instead of raising.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from cinego.core.exceptions import NotFoundError
from cinego.core.metrics import BOOKINGS_CONFIRMED, WEBHOOK_EVENTS
from cinego.core.scheduler import schedule_job
from cinego.services.booking_store import BookingStore, booking_store
from cinego.services.checkout import BOOKING_ID_KEY, PaymentGateway

logger = logging.getLogger(__name__)

SEND_CONFIRMATION_JOB = "booking.send_confirmation"

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"

# Outcomes
IGNORED = "ignored"
UNCORRELATED = "uncorrelated"
MISSING = "missing"
DUPLICATE = "duplicate"
CONFIRMED = "confirmed"


class PaymentConfirmationHandler:
    """Marks bookings paid from provider events"""

    def __init__(self, gateway: PaymentGateway, store: BookingStore = None):
        self.gateway = gateway
        self.store = store or booking_store

    async def resolve_booking_id(self, event_type: str, obj: Dict[str, Any]) -> Optional[str]:
        """
        Session metadata first; for payment intents fall back to asking the
        provider which checkout session the intent belongs to.
        """
        booking_id = (obj.get("metadata") or {}).get(BOOKING_ID_KEY)
        if booking_id:
            return booking_id

        if event_type == PAYMENT_INTENT_SUCCEEDED and obj.get("id"):
            booking_id = await self.gateway.find_booking_id_for_payment_intent(obj["id"])
            if not booking_id:
                logger.warning(f"No checkout session found for payment_intent {obj['id']}")
            return booking_id
        return None

    async def handle_event(self, session: AsyncSession, event: Dict[str, Any]) -> str:
        event_type = event.get("type", "")
        outcome = await self._handle(session, event_type, event)
        WEBHOOK_EVENTS.labels(type=event_type or "unknown", outcome=outcome).inc()
        return outcome

    async def _handle(self, session: AsyncSession, event_type: str, event: Dict[str, Any]) -> str:
        if event_type not in (CHECKOUT_COMPLETED, PAYMENT_INTENT_SUCCEEDED):
            logger.debug(f"Ignoring webhook event {event_type}")
            return IGNORED

        obj = (event.get("data") or {}).get("object") or {}
        booking_id = await self.resolve_booking_id(event_type, obj)
        if not booking_id:
            logger.warning(f"Webhook {event_type} {event.get('id')} has no booking id, discarding")
            return UNCORRELATED

        try:
            transitioned = await self.store.mark_paid(session, booking_id)
        except NotFoundError:
            await session.rollback()
            # Usually the reaper released this hold before the payment landed
            logger.warning(
                f"Payment confirmed for unknown booking {booking_id}, discarding",
                extra={"booking_id": str(booking_id)}
            )
            return MISSING

        if not transitioned:
            await session.rollback()
            return DUPLICATE

        schedule_job(session, SEND_CONFIRMATION_JOB, {"booking_id": str(booking_id)})
        await session.commit()
        BOOKINGS_CONFIRMED.inc()
        logger.info(f"Booking {booking_id} confirmed by {event_type}", extra={"booking_id": str(booking_id)})
        return CONFIRMED
