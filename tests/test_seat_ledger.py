"""
Seat ledger normalization, availability and compare-and-swap claims
"""

import pytest
from sqlalchemy import select

from cinego.core.exceptions import ConcurrencyError, NotFoundError, SeatUnavailableError
from cinego.models.show import Show
from cinego.services import seat_ledger

from conftest import random_id


class TestLedgerShapes:
    """Every stored ledger shape reads back as the same occupied set"""

    def test_mapping_ignores_free_flags(self):
        assert seat_ledger.occupied_seat_ids({"A1": True, "A2": False, "B3": True}) == ["A1", "B3"]

    def test_empty_and_missing(self):
        assert seat_ledger.occupied_seat_ids(None) == []
        assert seat_ledger.occupied_seat_ids({}) == []
        assert seat_ledger.occupied_seat_ids([]) == []

    def test_pairs_and_bare_ids(self):
        assert seat_ledger.occupied_seat_ids([["A1", True], ["A2", False]]) == ["A1"]
        assert seat_ledger.occupied_seat_ids(["C2", "C1"]) == ["C1", "C2"]

    def test_mark_then_release_restores_ledger(self):
        original = {"A1": True, "A2": False}
        held = seat_ledger.mark_occupied(original, ["B1", "B2"])
        assert held == {"A1": True, "B1": True, "B2": True}

        released = seat_ledger.release(held, ["B1", "B2"])
        assert seat_ledger.occupied_seat_ids(released) == seat_ledger.occupied_seat_ids(original)

    def test_release_of_free_seat_is_noop(self):
        assert seat_ledger.release({"A1": True}, ["Z9"]) == {"A1": True}

    def test_taken_among_keeps_request_order(self):
        assert seat_ledger.taken_among({"A1": True, "A3": True}, ["A3", "A2", "A1"]) == ["A3", "A1"]


class TestAvailability:

    @pytest.mark.asyncio
    async def test_free_seats_are_available(self, db_session, test_show):
        assert await seat_ledger.check_availability(db_session, test_show.id, ["A1", "A2"]) is True

    @pytest.mark.asyncio
    async def test_any_taken_seat_fails(self, db_session, test_show):
        test_show.occupied_seats = {"A2": True}
        await db_session.commit()

        assert await seat_ledger.check_availability(db_session, test_show.id, ["A1", "A2"]) is False

    @pytest.mark.asyncio
    async def test_unknown_show_is_unavailable(self, db_session):
        assert await seat_ledger.check_availability(db_session, random_id(), ["A1"]) is False
        assert await seat_ledger.check_availability(db_session, "not-a-uuid", ["A1"]) is False

    @pytest.mark.asyncio
    async def test_get_occupied_seats_unknown_show(self, db_session):
        with pytest.raises(NotFoundError):
            await seat_ledger.get_occupied_seats(db_session, random_id())


class TestClaimAndRelease:

    @pytest.mark.asyncio
    async def test_claim_marks_seats_and_bumps_version(self, db_session, session_factory, test_show):
        await seat_ledger.claim_seats(db_session, test_show.id, ["A1", "A2"])
        await db_session.commit()

        async with session_factory() as fresh:
            show = await fresh.get(Show, test_show.id)
            assert seat_ledger.occupied_seat_ids(show.occupied_seats) == ["A1", "A2"]
            assert show.version == 2

    @pytest.mark.asyncio
    async def test_claim_taken_seat_reports_which(self, db_session, test_show):
        await seat_ledger.claim_seats(db_session, test_show.id, ["A1"])
        await db_session.commit()

        with pytest.raises(SeatUnavailableError) as exc_info:
            await seat_ledger.claim_seats(db_session, test_show.id, ["A1", "A2"])
        assert exc_info.value.details["unavailable_seats"] == ["A1"]

    @pytest.mark.asyncio
    async def test_claim_unknown_show(self, db_session):
        with pytest.raises(NotFoundError):
            await seat_ledger.claim_seats(db_session, random_id(), ["A1"])

    @pytest.mark.asyncio
    async def test_release_missing_show_is_noop(self, db_session):
        assert await seat_ledger.release_seats(db_session, random_id(), ["A1"]) is None

    @pytest.mark.asyncio
    async def test_release_frees_seats(self, db_session, session_factory, test_show):
        await seat_ledger.claim_seats(db_session, test_show.id, ["A1", "A2"])
        await db_session.commit()
        await seat_ledger.release_seats(db_session, test_show.id, ["A1"])
        await db_session.commit()

        async with session_factory() as fresh:
            assert await seat_ledger.get_occupied_seats(fresh, test_show.id) == ["A2"]


def racing_loader(monkeypatch, session_factory, rival_seats, every_time=False):
    """
    Patch load_show so that right after the claimant reads the show, another
    connection claims ``rival_seats`` and commits.
    """
    original = seat_ledger.load_show
    calls = {"count": 0}

    async def load_then_race(session, show_id, fresh=False):
        show = await original(session, show_id, fresh)
        calls["count"] += 1
        if calls["count"] == 1 or every_time:
            async with session_factory() as rival:
                result = await rival.execute(select(Show).where(Show.id == show.id))
                rival_show = result.scalar_one()
                seats = [f"{seat}-{calls['count']}" for seat in rival_seats] if every_time else rival_seats
                rival_show.occupied_seats = seat_ledger.mark_occupied(rival_show.occupied_seats, seats)
                await rival.commit()
        return show

    monkeypatch.setattr(seat_ledger, "load_show", load_then_race)
    return calls


class TestConcurrentClaims:

    @pytest.mark.asyncio
    async def test_lost_race_retries_and_keeps_both_claims(self, monkeypatch, db_session, session_factory, test_show):
        show_id = test_show.id
        calls = racing_loader(monkeypatch, session_factory, ["B1"])

        await seat_ledger.claim_seats(db_session, show_id, ["A1"])
        await db_session.commit()

        assert calls["count"] == 2
        async with session_factory() as fresh:
            show = await fresh.get(Show, show_id)
            assert seat_ledger.occupied_seat_ids(show.occupied_seats) == ["A1", "B1"]
            assert show.version == 3

    @pytest.mark.asyncio
    async def test_lost_race_on_same_seat_is_unavailable(self, monkeypatch, db_session, session_factory, test_show):
        show_id = test_show.id
        racing_loader(monkeypatch, session_factory, ["A1"])

        with pytest.raises(SeatUnavailableError):
            await seat_ledger.claim_seats(db_session, show_id, ["A1"])

        async with session_factory() as fresh:
            show = await fresh.get(Show, show_id)
            # Only the winner's claim landed
            assert seat_ledger.occupied_seat_ids(show.occupied_seats) == ["A1"]
            assert show.version == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, monkeypatch, db_session, session_factory, test_show):
        # The failed claim rolls the session back and expires test_show
        show_id = test_show.id
        calls = racing_loader(monkeypatch, session_factory, ["X"], every_time=True)

        with pytest.raises(ConcurrencyError):
            await seat_ledger.claim_seats(db_session, show_id, ["A1"], max_attempts=3)

        assert calls["count"] == 3
        async with session_factory() as fresh:
            show = await fresh.get(Show, show_id)
            assert "A1" not in seat_ledger.occupied_seat_ids(show.occupied_seats)
