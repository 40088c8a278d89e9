"""
Checkout session tests: currency conversion, provider calls, webhook signatures
"""

import hashlib
import hmac
import json
import time
import pytest
from decimal import Decimal
from unittest.mock import MagicMock, patch

import stripe

from cinego.config import settings
from cinego.core.exceptions import PaymentProviderError, WebhookSignatureError
from cinego.services.booking_store import booking_store
from cinego.services.checkout import BOOKING_ID_KEY, CheckoutService, StripeGateway, to_minor_units


def stripe_signature(payload: str, secret: str, timestamp: int = None) -> str:
    timestamp = timestamp or int(time.time())
    signed = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signed}"


class TestConversion:

    def test_floors_to_the_cent(self):
        # 300 INR at 86 per USD is 3.488... USD
        assert to_minor_units(Decimal("300"), Decimal("86")) == 348

    def test_exact_amount(self):
        assert to_minor_units(Decimal("860.00"), Decimal("86")) == 1000

    def test_small_amount_rounds_down_to_zero(self):
        assert to_minor_units(Decimal("0.50"), Decimal("86")) == 0


class TestStartCheckout:

    @pytest.mark.asyncio
    async def test_session_is_tied_to_booking(self, db_session, test_show, test_user, fake_gateway):
        booking = await booking_store.create(db_session, test_user, test_show, ["A1", "A2"])

        url = await CheckoutService(fake_gateway).start_checkout(
            db_session, booking, "Fight Club", "https://cinego.example/"
        )
        await db_session.commit()

        sent = fake_gateway.sessions[0]
        assert url == "https://checkout.test/pay/1"
        assert sent["metadata"] == {BOOKING_ID_KEY: str(booking.id)}
        assert sent["amount_minor"] == 348
        assert sent["currency"] == settings.PAYMENT_CURRENCY
        assert sent["success_url"] == "https://cinego.example/loading/my-bookings"
        assert sent["cancel_url"] == "https://cinego.example/my-bookings"
        assert sent["customer_email"] == test_user.email

        assert booking.payment_link == url
        assert booking.checkout_session_id == "cs_test_1"
        assert booking.charge_amount == 348
        assert booking.exchange_rate == settings.BASE_TO_PAYMENT_RATE

    @pytest.mark.asyncio
    async def test_missing_origin_uses_frontend_url(self, db_session, test_show, test_user, fake_gateway):
        booking = await booking_store.create(db_session, test_user, test_show, ["A1"])

        await CheckoutService(fake_gateway).start_checkout(db_session, booking, "Fight Club", None)

        assert fake_gateway.sessions[0]["cancel_url"] == f"{settings.FRONTEND_URL.rstrip('/')}/my-bookings"

    @pytest.mark.asyncio
    async def test_rate_override_is_snapshotted(self, db_session, test_show, test_user, fake_gateway):
        booking = await booking_store.create(db_session, test_user, test_show, ["A1"])

        await CheckoutService(fake_gateway).start_checkout(
            db_session, booking, "Fight Club", "https://cinego.example", rate=Decimal("75")
        )

        assert fake_gateway.sessions[0]["amount_minor"] == 200
        assert booking.exchange_rate == Decimal("75")


class TestStripeGateway:

    @pytest.mark.asyncio
    async def test_create_session_parameters(self):
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_x")
        with patch("stripe.checkout.Session.create", return_value=MagicMock(id="cs_1", url="https://stripe.test/cs_1")) as create:
            session = await gateway.create_session(
                amount_minor=348,
                currency="usd",
                item_name="Fight Club",
                success_url="https://a/loading/my-bookings",
                cancel_url="https://a/my-bookings",
                metadata={BOOKING_ID_KEY: "b-1"},
                customer_email="viewer@example.com",
            )

        assert session.id == "cs_1"
        kwargs = create.call_args.kwargs
        assert kwargs["api_key"] == "sk_test_123"
        assert kwargs["mode"] == "payment"
        assert kwargs["metadata"] == {BOOKING_ID_KEY: "b-1"}
        assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 348
        assert kwargs["payment_intent_data"] == {"receipt_email": "viewer@example.com"}

    @pytest.mark.asyncio
    async def test_provider_error_is_wrapped(self):
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_x")
        with patch("stripe.checkout.Session.create", side_effect=stripe.APIConnectionError("network down")):
            with pytest.raises(PaymentProviderError):
                await gateway.create_session(
                    amount_minor=100, currency="usd", item_name="x",
                    success_url="https://a", cancel_url="https://a", metadata={},
                )

    def test_valid_signature_decodes_event(self):
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_x")
        payload = json.dumps({"id": "evt_1", "type": "checkout.session.completed"})

        event = gateway.construct_event(payload.encode(), stripe_signature(payload, "whsec_x"))

        assert event["id"] == "evt_1"

    def test_tampered_body_is_rejected(self):
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_x")
        payload = json.dumps({"id": "evt_1", "type": "checkout.session.completed"})
        signature = stripe_signature(payload, "whsec_x")

        with pytest.raises(WebhookSignatureError):
            gateway.construct_event(payload.replace("evt_1", "evt_2").encode(), signature)

    def test_missing_signature_is_rejected(self):
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_x")
        with pytest.raises(WebhookSignatureError):
            gateway.construct_event(b"{}", None)

    def test_wrong_secret_is_rejected(self):
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_x")
        payload = "{}"
        with pytest.raises(WebhookSignatureError):
            gateway.construct_event(payload.encode(), stripe_signature(payload, "whsec_other"))

    def test_signed_payload_that_is_not_an_object_is_rejected(self):
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_x")
        payload = json.dumps(["evt_1"])

        with pytest.raises(WebhookSignatureError):
            gateway.construct_event(payload.encode(), stripe_signature(payload, "whsec_x"))

    @pytest.mark.asyncio
    async def test_payment_intent_lookup_reads_session_metadata(self):
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_x")
        listing = MagicMock(data=[{"id": "cs_1", "metadata": {BOOKING_ID_KEY: "b-42"}}])
        with patch("stripe.checkout.Session.list", return_value=listing) as list_sessions:
            assert await gateway.find_booking_id_for_payment_intent("pi_1") == "b-42"
        assert list_sessions.call_args.kwargs["payment_intent"] == "pi_1"

    @pytest.mark.asyncio
    async def test_payment_intent_without_session(self):
        gateway = StripeGateway(api_key="sk_test_123", webhook_secret="whsec_x")
        with patch("stripe.checkout.Session.list", return_value=MagicMock(data=[])):
            assert await gateway.find_booking_id_for_payment_intent("pi_1") is None
