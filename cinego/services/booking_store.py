"""
Booking persistence
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional
import uuid

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from cinego.core.exceptions import NotFoundError
from cinego.core.security import CurrentUser
from cinego.models.booking import Booking
from cinego.models.show import Show

logger = logging.getLogger(__name__)


def parse_booking_id(booking_id: Any) -> Optional[uuid.UUID]:
    if isinstance(booking_id, uuid.UUID):
        return booking_id
    try:
        return uuid.UUID(str(booking_id))
    except (TypeError, ValueError):
        return None


class BookingStore:
    """Create, read, pay and delete bookings"""

    async def create(
        self,
        session: AsyncSession,
        user: CurrentUser,
        show: Show,
        seat_ids: List[str]
    ) -> Booking:
        """
        Add an unpaid booking priced at the show's current price. The amount
        is fixed here; later price edits on the show do not touch it.
        """
        booking = Booking(
            id=uuid.uuid4(),
            user_id=user.id,
            user_email=user.email,
            show_id=show.id,
            seat_ids=list(seat_ids),
            amount=Decimal(show.price) * len(seat_ids),
            is_paid=False,
            payment_link=None,
        )
        session.add(booking)
        await session.flush()
        return booking

    async def get(self, session: AsyncSession, booking_id: Any, with_show: bool = False) -> Optional[Booking]:
        parsed = parse_booking_id(booking_id)
        if parsed is None:
            return None
        stmt = select(Booking).where(Booking.id == parsed)
        if with_show:
            stmt = stmt.options(
                joinedload(Booking.show).joinedload(Show.movie)
            ).execution_options(populate_existing=True)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_404(self, session: AsyncSession, booking_id: Any) -> Booking:
        booking = await self.get(session, booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    async def attach_checkout(
        self,
        session: AsyncSession,
        booking: Booking,
        session_id: str,
        url: str,
        charge_amount: int,
        charge_currency: str,
        exchange_rate: Decimal
    ) -> Booking:
        booking.checkout_session_id = session_id
        booking.payment_link = url
        booking.charge_amount = charge_amount
        booking.charge_currency = charge_currency
        booking.exchange_rate = exchange_rate
        await session.flush()
        return booking

    async def mark_paid(self, session: AsyncSession, booking_id: Any) -> bool:
        """
        Flip an unpaid booking to paid and clear its payment link.

        Returns True only for the call that performed the transition, so
        repeated confirmations of the same payment are harmless no-ops.
        """
        parsed = parse_booking_id(booking_id)
        if parsed is None:
            raise NotFoundError("Booking", booking_id)

        result = await session.execute(
            update(Booking)
            .where(Booking.id == parsed, Booking.is_paid.is_(False))
            .values(is_paid=True, payment_link=None, paid_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            logger.info(f"Booking {parsed} marked paid", extra={"booking_id": str(parsed)})
            return True

        exists = await session.execute(select(Booking.id).where(Booking.id == parsed))
        if exists.scalar_one_or_none() is None:
            raise NotFoundError("Booking", booking_id)
        logger.info(f"Booking {parsed} already paid", extra={"booking_id": str(parsed)})
        return False

    async def delete(self, session: AsyncSession, booking_id: Any) -> bool:
        parsed = parse_booking_id(booking_id)
        if parsed is None:
            return False
        result = await session.execute(
            delete(Booking)
            .where(Booking.id == parsed)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_unpaid(self, session: AsyncSession, booking_id: Any) -> bool:
        """
        Delete the booking only if it is still unpaid. False means it was
        paid (or removed) since the caller last read it.
        """
        parsed = parse_booking_id(booking_id)
        if parsed is None:
            return False
        result = await session.execute(
            delete(Booking)
            .where(Booking.id == parsed, Booking.is_paid.is_(False))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_for_user(self, session: AsyncSession, user_id: str) -> List[Booking]:
        result = await session.execute(
            select(Booking)
            .options(joinedload(Booking.show).joinedload(Show.movie))
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.unique().scalars().all())


booking_store = BookingStore()
