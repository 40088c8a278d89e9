"""
Public movie and show endpoints
"""

from typing import Any
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cinego.core.database import get_session
from cinego.schemas.show import (
    MovieListResponse,
    MovieResponse,
    MovieScheduleResponse,
    OccupiedSeatsResponse,
    SearchResponse,
    SearchResult,
)
from cinego.services import seat_ledger, show_service

router = APIRouter()


@router.get("", response_model=MovieListResponse)
async def list_movies(db: AsyncSession = Depends(get_session)) -> Any:
    """
    Movies with at least one upcoming show
    """
    movies = await show_service.list_upcoming_movies(db)
    return MovieListResponse(movies=[MovieResponse.model_validate(movie) for movie in movies])


@router.get("/search", response_model=SearchResponse)
async def search(
    q: str = Query("", max_length=200),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Free-text show search, e.g. "comedy tomorrow after 6pm under 300"
    """
    filters, shows = await show_service.search_shows(db, q)
    return SearchResponse(
        count=len(shows),
        applied=filters.applied(),
        results=[SearchResult.model_validate(show) for show in shows],
    )


@router.get("/movies/{movie_id}", response_model=MovieScheduleResponse)
async def get_movie(movie_id: str, db: AsyncSession = Depends(get_session)) -> Any:
    movie, schedule = await show_service.get_movie_schedule(db, movie_id)
    return MovieScheduleResponse(movie=MovieResponse.model_validate(movie), schedule=schedule)


@router.get("/{show_id}/occupied-seats", response_model=OccupiedSeatsResponse)
async def get_occupied_seats(show_id: str, db: AsyncSession = Depends(get_session)) -> Any:
    """
    Seat ids currently held or sold for a show
    """
    occupied = await seat_ledger.get_occupied_seats(db, show_id)
    return OccupiedSeatsResponse(occupied_seats=occupied)
