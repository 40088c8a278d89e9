"""
Booking schemas
"""

from pydantic import Field
from typing import List, Optional
from datetime import datetime
from uuid import UUID
from decimal import Decimal

from cinego.schemas.base import BaseSchema, IDSchema, TimestampSchema
from cinego.schemas.show import MovieResponse


class BookingCreate(BaseSchema):
    """Seat hold request. Seat rules are checked by the booking service."""
    show_id: str
    seat_ids: List[str] = Field(default_factory=list)


class HoldResponse(BaseSchema):
    """Where to send the user to pay for a fresh hold"""
    success: bool = True
    url: str
    booking_id: str
    amount: Decimal


class BookingShowResponse(IDSchema):
    start_time: datetime
    price: Decimal
    movie: Optional[MovieResponse] = None


class BookingResponse(IDSchema, TimestampSchema):
    """Booking as shown to its owner"""
    show_id: UUID
    seat_ids: List[str]
    amount: Decimal
    is_paid: bool
    paid_at: Optional[datetime] = None
    payment_link: Optional[str] = None
    charge_amount: Optional[int] = None
    charge_currency: Optional[str] = None
    show: Optional[BookingShowResponse] = None


class BookingListResponse(BaseSchema):
    success: bool = True
    bookings: List[BookingResponse]
