"""
Booking confirmation email tests
"""

import pytest
from unittest.mock import MagicMock

from cinego.services.booking_store import booking_store
from cinego.services.notifications import EmailService

from conftest import random_id


@pytest.mark.asyncio
async def test_sends_rendered_confirmation(db_session, test_show, test_user):
    booking = await booking_store.create(db_session, test_user, test_show, ["A1", "A2"])
    await db_session.commit()

    service = EmailService(api_key="SG.test")
    service._client = MagicMock()
    service._client.send.return_value = MagicMock(status_code=202)

    assert await service.send_booking_confirmation(db_session, booking.id) is True

    message = service._client.send.call_args.args[0].get()
    assert message["personalizations"][0]["to"][0]["email"] == test_user.email
    assert "Fight Club" in message["subject"]
    assert "A1, A2" in message["content"][0]["value"]


@pytest.mark.asyncio
async def test_without_api_key_nothing_is_sent(db_session, test_show, test_user):
    booking = await booking_store.create(db_session, test_user, test_show, ["A1"])
    await db_session.commit()

    service = EmailService(api_key="")
    service._client = MagicMock()

    assert await service.send_booking_confirmation(db_session, booking.id) is False
    service._client.send.assert_not_called()


@pytest.mark.asyncio
async def test_missing_booking_returns_false(db_session):
    assert await EmailService(api_key="SG.test").send_booking_confirmation(db_session, random_id()) is False


@pytest.mark.asyncio
async def test_provider_error_is_swallowed(db_session, test_show, test_user):
    booking = await booking_store.create(db_session, test_user, test_show, ["A1"])
    await db_session.commit()

    service = EmailService(api_key="SG.test")
    service._client = MagicMock()
    service._client.send.side_effect = RuntimeError("HTTP Error 401: Unauthorized")

    assert await service.send_booking_confirmation(db_session, booking.id) is False
