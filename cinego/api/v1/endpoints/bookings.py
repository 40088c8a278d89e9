"""
Booking endpoints: hold seats and list the caller's bookings
"""

from typing import Any, Optional
import logging
from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from cinego.core.database import get_session
from cinego.core.security import CurrentUser, get_current_user
from cinego.schemas.booking import BookingCreate, BookingListResponse, BookingResponse, HoldResponse
from cinego.services.booking_service import BookingService
from cinego.services.booking_store import booking_store
from cinego.services.checkout import PaymentGateway, get_payment_gateway

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=HoldResponse)
async def create_booking(
    booking_data: BookingCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    origin: Optional[str] = Header(None)
) -> Any:
    """
    Hold seats for the current user and return the checkout redirect URL.

    The seats stay held until the payment is confirmed or the hold window
    runs out, whichever comes first.
    """
    result = await BookingService(gateway).hold_seats(
        db,
        current_user,
        booking_data.show_id,
        booking_data.seat_ids,
        origin=origin,
    )
    return HoldResponse(url=result.redirect_url, booking_id=result.booking_id, amount=result.amount)


@router.get("", response_model=BookingListResponse)
async def list_my_bookings(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Get the current user's bookings, newest first
    """
    bookings = await booking_store.list_for_user(db, current_user.id)
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(booking) for booking in bookings]
    )
