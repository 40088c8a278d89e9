"""
Movie and show schemas
"""

from pydantic import AliasChoices, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import date as Date, datetime, time as Time
from decimal import Decimal
from uuid import UUID

from cinego.schemas.base import BaseSchema, IDSchema


class MovieResponse(IDSchema):
    tmdb_id: Optional[str] = None
    title: str
    overview: str = ""
    poster_url: str = ""
    backdrop_url: Optional[str] = None
    trailer_url: Optional[str] = None
    release_date: Optional[str] = None
    original_language: Optional[str] = None
    genres: List[str] = []
    runtime: Optional[int] = None
    average_rating: Optional[float] = None


class MovieListResponse(BaseSchema):
    success: bool = True
    movies: List[MovieResponse]


class ShowSlot(BaseSchema):
    time: datetime
    show_id: str


class MovieScheduleResponse(BaseSchema):
    """A movie with its upcoming shows keyed by ISO date"""
    success: bool = True
    movie: MovieResponse
    schedule: Dict[str, List[ShowSlot]]


class SearchResult(BaseSchema):
    show_id: UUID = Field(validation_alias=AliasChoices("id", "show_id"))
    start_time: datetime
    price: Decimal
    movie: Optional[MovieResponse] = None


class SearchResponse(BaseSchema):
    success: bool = True
    count: int
    applied: Dict[str, Any]
    results: List[SearchResult]


class OccupiedSeatsResponse(BaseSchema):
    success: bool = True
    occupied_seats: List[str]


class MovieIn(BaseSchema):
    """Movie metadata as picked from the catalog in the admin panel"""
    tmdb_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    overview: Optional[str] = None
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    trailer_url: Optional[str] = None
    release_date: Optional[str] = None
    original_language: Optional[str] = None
    genres: List[str] = []
    runtime: Optional[int] = None
    average_rating: Optional[float] = None


class ShowTimeIn(BaseSchema):
    date: Date
    time: Time


class ShowCreate(BaseSchema):
    """Schedule shows for a movie, all at one price"""
    movie: MovieIn
    show_times: List[ShowTimeIn] = Field(..., min_length=1)
    price: Decimal = Field(..., gt=0)

    @field_validator('show_times')
    def validate_unique_times(cls, v):
        slots = [(slot.date, slot.time) for slot in v]
        if len(slots) != len(set(slots)):
            raise ValueError('Duplicate show times not allowed')
        return v


class ShowCreateResponse(BaseSchema):
    success: bool = True
    message: str
    movie_id: UUID
    show_ids: List[UUID]


class FavoriteToggle(BaseSchema):
    movie_id: str = Field(..., min_length=1)


class FavoriteToggleResponse(BaseSchema):
    success: bool = True
    message: str
    is_favorite: bool
