"""
Email Service with SendGrid Integration
Sends the booking confirmation once a payment has been confirmed
"""

import asyncio
import logging
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from jinja2 import Template
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail
from sqlalchemy.ext.asyncio import AsyncSession

from cinego.config import settings
from cinego.models.base import as_utc
from cinego.services.booking_store import BookingStore, booking_store

logger = logging.getLogger(__name__)

BOOKING_CONFIRMATION_TEMPLATE = Template("""
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.5;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2>Hi {{ user_name }},</h2>
        <p>Your booking for <strong style="color: #F84565;">"{{ movie_title }}"</strong> is confirmed.</p>
        <p>
            <strong>Date:</strong> {{ show_date }}<br/>
            <strong>Time:</strong> {{ show_time }}<br/>
            <strong>Seats:</strong> {{ seats }}<br/>
            <strong>Amount paid:</strong> {{ currency_symbol }}{{ amount }}<br/>
            <strong>Booking ID:</strong> {{ booking_id }}
        </p>
        <p>Enjoy the show! 🍿</p>
        <p>Thanks for booking with us!<br/>- {{ from_name }} Team</p>
    </div>
</body>
</html>
""")

CURRENCY_SYMBOLS = {"inr": "₹", "usd": "$"}


class EmailService:
    """Service for handling email operations"""

    def __init__(self, api_key: str = None, store: BookingStore = None):
        self.api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.from_email = settings.FROM_EMAIL
        self.from_name = settings.FROM_NAME
        self.store = store or booking_store
        self._client: Optional[SendGridAPIClient] = None

    @property
    def client(self) -> SendGridAPIClient:
        if self._client is None:
            self._client = SendGridAPIClient(self.api_key)
        return self._client

    async def send_email(self, to_email: str, subject: str, html_content: str) -> bool:
        """Send an email using SendGrid"""
        if not self.api_key:
            logger.warning(f"SENDGRID_API_KEY not set, not sending '{subject}' to {to_email}")
            return False
        try:
            message = Mail(
                from_email=(self.from_email, self.from_name),
                to_emails=to_email,
                subject=subject,
                html_content=html_content
            )
            response = await asyncio.to_thread(self.client.send, message)

            logger.info(f"Email sent to {to_email}: {response.status_code}")
            return response.status_code in [200, 201, 202]

        except Exception as e:
            logger.error(f"Error sending email: {str(e)}")
            return False

    def render_booking_confirmation(self, booking) -> Dict[str, Any]:
        show = booking.show
        movie = show.movie if show is not None else None
        local_start = as_utc(show.start_time).astimezone(ZoneInfo(settings.DISPLAY_TIMEZONE)) if show is not None else None
        context = {
            "user_name": (booking.user_email or "").split("@")[0] or "there",
            "movie_title": movie.title if movie else "your movie",
            "show_date": local_start.strftime("%A, %d %B %Y") if local_start else "",
            "show_time": local_start.strftime("%I:%M %p") if local_start else "",
            "seats": ", ".join(booking.seat_ids or []),
            "currency_symbol": CURRENCY_SYMBOLS.get(settings.BASE_CURRENCY.lower(), ""),
            "amount": booking.amount,
            "booking_id": str(booking.id),
            "from_name": self.from_name,
        }
        return {
            "subject": f"Payment Confirmation: \"{context['movie_title']}\" booked!",
            "html": BOOKING_CONFIRMATION_TEMPLATE.render(**context),
        }

    async def send_booking_confirmation(self, session: AsyncSession, booking_id) -> bool:
        """
        Email the booking owner. Never raises: a failed email must not
        undo or retry a confirmed payment.
        """
        booking = await self.store.get(session, booking_id, with_show=True)
        if booking is None:
            logger.warning(f"Booking {booking_id} not found, skipping confirmation email")
            return False
        if not booking.user_email:
            logger.warning(f"Booking {booking_id} has no email address, skipping confirmation email")
            return False

        rendered = self.render_booking_confirmation(booking)
        sent = await self.send_email(booking.user_email, rendered["subject"], rendered["html"])
        if not sent:
            logger.error(f"Confirmation email for booking {booking_id} was not delivered")
        return sent


async def send_confirmation_job(session: AsyncSession, payload: Dict[str, Any]) -> bool:
    return await EmailService().send_booking_confirmation(session, payload.get("booking_id"))
