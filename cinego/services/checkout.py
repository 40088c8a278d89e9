"""
Checkout Service with Stripe Integration
Creates hosted checkout sessions and authenticates payment webhooks
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, Optional

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from cinego.config import settings
from cinego.core.exceptions import PaymentProviderError, WebhookSignatureError
from cinego.models.booking import Booking
from cinego.services.booking_store import BookingStore, booking_store

logger = logging.getLogger(__name__)

BOOKING_ID_KEY = "bookingId"


@dataclass(frozen=True)
class CheckoutSession:
    """Provider-hosted payment page"""
    id: str
    url: str


def to_minor_units(amount: Decimal, rate: Decimal) -> int:
    """
    Convert a base-currency amount into payment-currency minor units,
    rounding down to the cent
    """
    converted = Decimal(amount) / Decimal(rate) * 100
    return int(converted.to_integral_value(rounding=ROUND_FLOOR))


class PaymentGateway:
    """Surface of the payment provider used by the booking workflow"""

    async def create_session(
        self,
        amount_minor: int,
        currency: str,
        item_name: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        customer_email: Optional[str] = None
    ) -> CheckoutSession:
        raise NotImplementedError

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        raise NotImplementedError

    async def find_booking_id_for_payment_intent(self, payment_intent_id: str) -> Optional[str]:
        raise NotImplementedError


class StripeGateway(PaymentGateway):
    """Stripe Checkout implementation"""

    def __init__(self, api_key: str = None, webhook_secret: str = None):
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET

    async def create_session(
        self,
        amount_minor: int,
        currency: str,
        item_name: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        customer_email: Optional[str] = None
    ) -> CheckoutSession:
        params = {
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": item_name},
                        "unit_amount": amount_minor,
                    },
                    "quantity": 1,
                }
            ],
            "metadata": metadata,
        }
        if customer_email:
            params["customer_email"] = customer_email
            params["payment_intent_data"] = {"receipt_email": customer_email}

        try:
            # stripe's client is blocking
            session = await asyncio.to_thread(
                stripe.checkout.Session.create, api_key=self.api_key, **params
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating checkout session: {str(e)}")
            raise PaymentProviderError(f"Payment processing error: {e.user_message or str(e)}")

        return CheckoutSession(id=session.id, url=session.url)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify the Stripe-Signature header against the raw request body and
        decode the event. The body must be the exact bytes Stripe sent.
        """
        if not self.webhook_secret:
            raise WebhookSignatureError("Webhook secret is not configured")
        if not signature:
            raise WebhookSignatureError("Missing signature header")
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature,
                self.webhook_secret,
                stripe.Webhook.DEFAULT_TOLERANCE,
            )
            event = json.loads(payload)
        except stripe.SignatureVerificationError as e:
            logger.error(f"Invalid webhook signature: {e}")
            raise WebhookSignatureError()
        except (UnicodeDecodeError, ValueError) as e:
            logger.error(f"Malformed webhook payload: {e}")
            raise WebhookSignatureError("Malformed webhook payload")

        if not isinstance(event, dict):
            logger.error(f"Webhook payload is a {type(event).__name__}, not an event object")
            raise WebhookSignatureError("Malformed webhook payload")
        return event

    async def find_booking_id_for_payment_intent(self, payment_intent_id: str) -> Optional[str]:
        try:
            sessions = await asyncio.to_thread(
                stripe.checkout.Session.list,
                api_key=self.api_key,
                payment_intent=payment_intent_id,
                limit=1,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error looking up session for {payment_intent_id}: {str(e)}")
            raise PaymentProviderError(f"Session lookup failed: {e}")

        if not sessions.data:
            return None
        metadata = sessions.data[0].get("metadata") or {}
        return metadata.get(BOOKING_ID_KEY)


class CheckoutService:
    """Starts the hosted payment flow for a held booking"""

    def __init__(self, gateway: PaymentGateway, store: BookingStore = None):
        self.gateway = gateway
        self.store = store or booking_store

    async def start_checkout(
        self,
        session: AsyncSession,
        booking: Booking,
        item_name: str,
        origin: str,
        rate: Decimal = None
    ) -> str:
        """
        Create the provider session for ``booking``, remember it on the
        booking (flushed, not committed) and return the redirect URL
        """
        rate = Decimal(rate if rate is not None else settings.BASE_TO_PAYMENT_RATE)
        amount_minor = to_minor_units(booking.amount, rate)
        origin = (origin or settings.FRONTEND_URL).rstrip("/")

        checkout = await self.gateway.create_session(
            amount_minor=amount_minor,
            currency=settings.PAYMENT_CURRENCY,
            item_name=item_name or "Ticket",
            success_url=f"{origin}/loading/my-bookings",
            cancel_url=f"{origin}/my-bookings",
            metadata={BOOKING_ID_KEY: str(booking.id)},
            customer_email=booking.user_email,
        )

        await self.store.attach_checkout(
            session,
            booking,
            session_id=checkout.id,
            url=checkout.url,
            charge_amount=amount_minor,
            charge_currency=settings.PAYMENT_CURRENCY,
            exchange_rate=rate,
        )
        logger.info(
            f"Checkout session {checkout.id} created for booking {booking.id} "
            f"({amount_minor} {settings.PAYMENT_CURRENCY} at rate {rate})",
            extra={"booking_id": str(booking.id)}
        )
        return checkout.url


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency; tests override it with a fake"""
    return StripeGateway()
