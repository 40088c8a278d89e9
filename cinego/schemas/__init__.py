"""
Pydantic schemas for request and response validation
"""

from cinego.schemas.booking import (
    BookingCreate,
    BookingResponse,
    BookingListResponse,
    HoldResponse
)
from cinego.schemas.show import (
    FavoriteToggle,
    MovieResponse,
    ShowCreate,
    OccupiedSeatsResponse,
    SearchResponse
)
from cinego.schemas.response import ErrorDetail, ErrorResponse

__all__ = [
    "BookingCreate",
    "BookingResponse",
    "BookingListResponse",
    "HoldResponse",
    "FavoriteToggle",
    "MovieResponse",
    "ShowCreate",
    "OccupiedSeatsResponse",
    "SearchResponse",
    "ErrorDetail",
    "ErrorResponse"
]
