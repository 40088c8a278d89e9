"""
Booking record store tests
"""

import pytest
from decimal import Decimal

from cinego.core.exceptions import NotFoundError
from cinego.models.booking import Booking
from cinego.services.booking_store import booking_store

from conftest import random_id


@pytest.mark.asyncio
async def test_create_prices_by_seat_count(db_session, test_show, test_user):
    booking = await booking_store.create(db_session, test_user, test_show, ["A1", "A2", "A3"])
    await db_session.commit()

    assert booking.amount == Decimal("450.00")
    assert booking.is_paid is False
    assert booking.payment_link is None
    assert booking.user_id == test_user.id
    assert booking.seat_ids == ["A1", "A2", "A3"]


@pytest.mark.asyncio
async def test_amount_is_fixed_at_creation(db_session, session_factory, test_show, test_user):
    booking = await booking_store.create(db_session, test_user, test_show, ["A1", "A2"])
    await db_session.commit()

    test_show.price = Decimal("999.00")
    await db_session.commit()

    async with session_factory() as fresh:
        stored = await booking_store.get(fresh, booking.id)
        assert stored.amount == Decimal("300.00")


@pytest.mark.asyncio
async def test_get_unknown_or_malformed_id(db_session):
    assert await booking_store.get(db_session, random_id()) is None
    assert await booking_store.get(db_session, "nope") is None
    with pytest.raises(NotFoundError):
        await booking_store.get_or_404(db_session, random_id())


@pytest.mark.asyncio
async def test_mark_paid_transitions_once(db_session, session_factory, test_show, test_user):
    booking = await booking_store.create(db_session, test_user, test_show, ["A1"])
    booking.payment_link = "https://checkout.test/pay/1"
    await db_session.commit()

    assert await booking_store.mark_paid(db_session, booking.id) is True
    await db_session.commit()
    assert await booking_store.mark_paid(db_session, booking.id) is False
    await db_session.commit()

    async with session_factory() as fresh:
        stored = await fresh.get(Booking, booking.id)
        assert stored.is_paid is True
        assert stored.payment_link is None
        assert stored.paid_at is not None


@pytest.mark.asyncio
async def test_mark_paid_unknown_booking(db_session):
    with pytest.raises(NotFoundError):
        await booking_store.mark_paid(db_session, random_id())
    with pytest.raises(NotFoundError):
        await booking_store.mark_paid(db_session, "garbage")


@pytest.mark.asyncio
async def test_delete_unpaid_spares_paid_bookings(db_session, test_show, test_user):
    paid = await booking_store.create(db_session, test_user, test_show, ["A1"])
    unpaid = await booking_store.create(db_session, test_user, test_show, ["A2"])
    await db_session.commit()
    await booking_store.mark_paid(db_session, paid.id)
    await db_session.commit()

    assert await booking_store.delete_unpaid(db_session, paid.id) is False
    assert await booking_store.delete_unpaid(db_session, unpaid.id) is True
    await db_session.commit()

    db_session.expunge_all()
    assert await booking_store.get(db_session, paid.id) is not None
    assert await booking_store.get(db_session, unpaid.id) is None


@pytest.mark.asyncio
async def test_list_for_user_only_returns_own_bookings(db_session, test_show, test_user, other_user):
    await booking_store.create(db_session, test_user, test_show, ["A1"])
    await booking_store.create(db_session, other_user, test_show, ["A2"])
    await booking_store.create(db_session, test_user, test_show, ["A3"])
    await db_session.commit()

    mine = await booking_store.list_for_user(db_session, test_user.id)
    assert sorted(seat for booking in mine for seat in booking.seat_ids) == ["A1", "A3"]
    assert all(booking.show.movie.title == "Fight Club" for booking in mine)
