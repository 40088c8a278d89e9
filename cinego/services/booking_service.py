"""
Seat hold workflow: claim seats, record the booking, start checkout.

The hold commits in two steps. First the seat claim, the unpaid booking and
its expiry job commit together, so from that point the reaper is guaranteed
to release the seats if nothing else happens. Then the checkout session is
created; if the provider fails, the hold is compensated right away instead
of waiting for the reaper.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from cinego.config import settings
from cinego.core.exceptions import PaymentProviderError, ValidationError, CinegoException
from cinego.core.metrics import BOOKING_HOLDS
from cinego.core.scheduler import schedule_job
from cinego.core.security import CurrentUser
from cinego.models.movie import Movie
from cinego.services import seat_ledger
from cinego.services.booking_store import BookingStore, booking_store
from cinego.services.checkout import CheckoutService, PaymentGateway

logger = logging.getLogger(__name__)

EXPIRE_BOOKING_JOB = "booking.expire"


@dataclass(frozen=True)
class HoldResult:
    booking_id: str
    redirect_url: str
    amount: Decimal


def validate_hold_request(show_id, seat_ids: Optional[List[str]]) -> List[str]:
    if not show_id or seat_ledger.parse_show_id(show_id) is None:
        raise ValidationError("A valid show id is required", field="show_id")
    if not seat_ids:
        raise ValidationError("Select at least one seat", field="seat_ids")
    cleaned = [str(seat_id).strip() for seat_id in seat_ids]
    if any(not seat_id for seat_id in cleaned):
        raise ValidationError("Seat ids must not be blank", field="seat_ids")
    if len(set(cleaned)) != len(cleaned):
        raise ValidationError("Duplicate seat ids not allowed", field="seat_ids")
    if len(cleaned) > settings.MAX_SEATS_PER_BOOKING:
        raise ValidationError(
            f"At most {settings.MAX_SEATS_PER_BOOKING} seats per booking", field="seat_ids"
        )
    return cleaned


class BookingService:
    """Orchestrates a seat hold from request to checkout redirect"""

    def __init__(self, gateway: PaymentGateway, store: BookingStore = None):
        self.store = store or booking_store
        self.checkout = CheckoutService(gateway, self.store)

    async def hold_seats(
        self,
        session: AsyncSession,
        user: CurrentUser,
        show_id,
        seat_ids: List[str],
        origin: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> HoldResult:
        seat_ids = validate_hold_request(show_id, seat_ids)
        now = now or datetime.now(timezone.utc)

        try:
            show = await seat_ledger.claim_seats(session, show_id, seat_ids)
            booking = await self.store.create(session, user, show, seat_ids)
            schedule_job(
                session,
                EXPIRE_BOOKING_JOB,
                {"booking_id": str(booking.id)},
                run_at=now + settings.hold_window,
            )
            movie = await session.get(Movie, show.movie_id)
            item_name = movie.title if movie else "Ticket"
            await session.commit()
        except CinegoException as e:
            await session.rollback()
            BOOKING_HOLDS.labels(outcome=e.code.lower()).inc()
            raise

        logger.info(
            f"Booking {booking.id} holds {seat_ids} on show {show.id} for user {user.id}",
            extra={"booking_id": str(booking.id), "show_id": str(show.id)}
        )

        try:
            url = await self.checkout.start_checkout(session, booking, item_name, origin)
            await session.commit()
        except PaymentProviderError:
            await session.rollback()
            await self._compensate(session, booking.id, show.id, seat_ids)
            BOOKING_HOLDS.labels(outcome="provider_error").inc()
            raise

        BOOKING_HOLDS.labels(outcome="held").inc()
        return HoldResult(booking_id=str(booking.id), redirect_url=url, amount=booking.amount)

    async def _compensate(self, session: AsyncSession, booking_id, show_id, seat_ids: List[str]):
        """
        Undo a hold whose checkout could not be created. The expiry job stays
        scheduled and finds nothing to do.
        """
        try:
            await seat_ledger.release_seats(session, show_id, seat_ids)
            await self.store.delete(session, booking_id)
            await session.commit()
            logger.warning(
                f"Checkout failed, released hold {booking_id}",
                extra={"booking_id": str(booking_id)}
            )
        except Exception as e:
            await session.rollback()
            # The scheduled expiry job will release the seats instead
            logger.error(
                f"Compensation for booking {booking_id} failed: {type(e).__name__}: {e}",
                extra={"booking_id": str(booking_id)}
            )
