"""
Seat ledger and availability checks.

A show's ledger maps seat-id -> occupied flag. Older rows were written in
more than one shape, so every read goes through ``occupied_seat_ids`` and
every write stores the canonical ``{seat_id: True}`` mapping.

Claims and releases are load-check-mutate-save sequences on the show row.
``Show.version`` is the mapper's version column, so the UPDATE only applies
if nobody else saved the show in between; otherwise SQLAlchemy raises
``StaleDataError`` and we re-read and re-check.
"""

import logging
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from cinego.config import settings
from cinego.core.exceptions import ConcurrencyError, NotFoundError, SeatUnavailableError
from cinego.models.show import Show

logger = logging.getLogger(__name__)


def occupied_seat_ids(raw: Any) -> List[str]:
    """
    Normalize a persisted ledger into a sorted list of occupied seat ids
    """
    if not raw:
        return []
    if isinstance(raw, Mapping):
        entries = raw.items()
    else:
        entries = []
        for item in raw:
            if isinstance(item, (list, tuple)) and len(item) == 2:
                entries.append((item[0], item[1]))
            else:
                # Bare seat id
                entries.append((item, True))
    return sorted(str(seat_id) for seat_id, taken in entries if taken)


def taken_among(raw: Any, seat_ids: Iterable[str]) -> List[str]:
    occupied = set(occupied_seat_ids(raw))
    return [seat_id for seat_id in seat_ids if seat_id in occupied]


def mark_occupied(raw: Any, seat_ids: Iterable[str]) -> dict:
    ledger = {seat_id: True for seat_id in occupied_seat_ids(raw)}
    for seat_id in seat_ids:
        ledger[seat_id] = True
    return ledger


def release(raw: Any, seat_ids: Iterable[str]) -> dict:
    ledger = {seat_id: True for seat_id in occupied_seat_ids(raw)}
    for seat_id in seat_ids:
        ledger.pop(seat_id, None)
    return ledger


def parse_show_id(show_id: Any) -> Optional[uuid.UUID]:
    if isinstance(show_id, uuid.UUID):
        return show_id
    try:
        return uuid.UUID(str(show_id))
    except (TypeError, ValueError):
        return None


async def load_show(session: AsyncSession, show_id: Any, fresh: bool = False) -> Optional[Show]:
    parsed = parse_show_id(show_id)
    if parsed is None:
        return None
    stmt = select(Show).where(Show.id == parsed)
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_occupied_seats(session: AsyncSession, show_id: Any) -> List[str]:
    show = await load_show(session, show_id)
    if show is None:
        raise NotFoundError("Show", show_id)
    return occupied_seat_ids(show.occupied_seats)


async def check_availability(session: AsyncSession, show_id: Any, seat_ids: List[str]) -> bool:
    """
    True iff none of ``seat_ids`` is occupied. An unknown show counts as
    unavailable rather than an error.
    """
    show = await load_show(session, show_id)
    if show is None:
        logger.info(f"Availability check for unknown show {show_id}")
        return False
    return not taken_among(show.occupied_seats, seat_ids)


async def claim_seats(
    session: AsyncSession,
    show_id: Any,
    seat_ids: List[str],
    max_attempts: int = None
) -> Show:
    """
    Mark ``seat_ids`` occupied on the show, flushing (not committing) the
    change. Must be the first write of the caller's transaction: a lost race
    rolls the session back before retrying.
    """
    max_attempts = max_attempts or settings.SEAT_CLAIM_MAX_ATTEMPTS

    for attempt in range(1, max_attempts + 1):
        show = await load_show(session, show_id, fresh=attempt > 1)
        if show is None:
            raise NotFoundError("Show", show_id)

        taken = taken_among(show.occupied_seats, seat_ids)
        if taken:
            raise SeatUnavailableError(taken)

        show.occupied_seats = mark_occupied(show.occupied_seats, seat_ids)
        try:
            await session.flush()
            logger.info(f"Seats {seat_ids} claimed on show {show.id}", extra={"show_id": str(show.id)})
            return show
        except StaleDataError:
            logger.warning(
                f"Concurrent update on show {show_id}, retrying claim (attempt {attempt}/{max_attempts})",
                extra={"show_id": str(show_id)}
            )
            await session.rollback()

    raise ConcurrencyError(f"Could not claim seats on show {show_id}, please retry")


async def release_seats(
    session: AsyncSession,
    show_id: Any,
    seat_ids: List[str],
    max_attempts: int = None
) -> Optional[Show]:
    """
    Remove ``seat_ids`` from the show's ledger, flushing the change. A show
    that no longer exists has nothing to release.
    """
    max_attempts = max_attempts or settings.SEAT_CLAIM_MAX_ATTEMPTS

    for attempt in range(1, max_attempts + 1):
        show = await load_show(session, show_id, fresh=attempt > 1)
        if show is None:
            logger.info(f"Show {show_id} is gone, nothing to release")
            return None

        show.occupied_seats = release(show.occupied_seats, seat_ids)
        try:
            await session.flush()
            logger.info(f"Seats {seat_ids} released on show {show.id}", extra={"show_id": str(show.id)})
            return show
        except StaleDataError:
            logger.warning(
                f"Concurrent update on show {show_id}, retrying release (attempt {attempt}/{max_attempts})",
                extra={"show_id": str(show_id)}
            )
            await session.rollback()

    raise ConcurrencyError(f"Could not release seats on show {show_id}")
