"""
Expiry reaper and historical cleanup jobs
"""

import calendar
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cinego.config import settings
from cinego.core.metrics import BOOKINGS_EXPIRED
from cinego.core.scheduler import ensure_recurring_job
from cinego.models.booking import Booking
from cinego.models.job import JobStatus, ScheduledJob
from cinego.models.show import Show
from cinego.services import seat_ledger
from cinego.services.booking_store import booking_store

logger = logging.getLogger(__name__)

CLEANUP_JOB = "maintenance.cleanup"

# expire_booking outcomes
MISSING = "missing"
PAID = "paid"
RELEASED = "released"


async def expire_booking(session: AsyncSession, payload: Dict[str, Any]) -> str:
    """
    Release an unpaid hold once its window has elapsed.

    The booking is re-read here, never trusted from the time the job was
    scheduled. The delete only matches an unpaid row, so a payment that lands
    between the read and the delete wins and the seat release is rolled back.
    """
    booking_id = payload.get("booking_id")
    booking = await booking_store.get(session, booking_id)
    if booking is None:
        logger.info(f"Booking {booking_id} no longer exists, nothing to expire", extra={"booking_id": str(booking_id)})
        return MISSING
    if booking.is_paid:
        logger.debug(f"Booking {booking_id} is paid, keeping its seats")
        return PAID

    show_id, seat_ids = booking.show_id, list(booking.seat_ids or [])
    await seat_ledger.release_seats(session, show_id, seat_ids)
    if not await booking_store.delete_unpaid(session, booking_id):
        await session.rollback()
        logger.info(f"Booking {booking_id} was paid while expiring, keeping its seats", extra={"booking_id": str(booking_id)})
        return PAID

    await session.commit()
    BOOKINGS_EXPIRED.inc()
    logger.info(
        f"Booking {booking_id} expired unpaid, released {seat_ids} on show {show_id}",
        extra={"booking_id": str(booking_id), "show_id": str(show_id)}
    )
    return RELEASED


def months_ago(now: datetime, months: int) -> datetime:
    """Same wall-clock time ``months`` calendar months earlier, day clamped"""
    total = now.year * 12 + (now.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def next_cleanup_run(now: datetime, months: Optional[Iterable[int]] = None) -> datetime:
    """
    Midnight UTC on the first day of the next cleanup month strictly after ``now``
    """
    months = sorted(months or settings.CLEANUP_MONTHS)
    for year in (now.year, now.year + 1):
        for month in months:
            candidate = datetime(year, month, 1, tzinfo=timezone.utc)
            if candidate > now:
                return candidate
    # Unreachable with a non-empty month list
    raise ValueError("No cleanup months configured")


async def cleanup_old_data(session: AsyncSession, now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Delete bookings and shows older than the retention window, paid or not,
    and jobs that finished before it. Then make sure the next run is
    scheduled.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = months_ago(now, settings.RETENTION_MONTHS)

    old_show_ids = select(Show.id).where(Show.start_time < cutoff)
    try:
        bookings = await session.execute(
            delete(Booking)
            .where(or_(Booking.created_at < cutoff, Booking.show_id.in_(old_show_ids)))
            .execution_options(synchronize_session=False)
        )
        shows = await session.execute(
            delete(Show)
            .where(Show.start_time < cutoff)
            .execution_options(synchronize_session=False)
        )
        jobs = await session.execute(
            delete(ScheduledJob)
            .where(
                ScheduledJob.status.in_([JobStatus.COMPLETED, JobStatus.FAILED]),
                ScheduledJob.finished_at < cutoff
            )
            .execution_options(synchronize_session=False)
        )
        await ensure_recurring_job(session, CLEANUP_JOB, next_cleanup_run(now))
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error(f"Cleanup before {cutoff.isoformat()} failed: {e}")
        raise

    counts = {"bookings": bookings.rowcount, "shows": shows.rowcount, "jobs": jobs.rowcount}
    logger.info(
        f"Cleanup removed {counts['bookings']} bookings, {counts['shows']} shows "
        f"and {counts['jobs']} finished jobs older than {cutoff.isoformat()}"
    )
    return counts


async def run_cleanup_job(session: AsyncSession, payload: Dict[str, Any]) -> Dict[str, int]:
    return await cleanup_old_data(session)
