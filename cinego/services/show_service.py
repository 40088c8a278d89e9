"""
Movie and show catalog queries plus admin show scheduling
"""

import logging
import uuid
from collections import OrderedDict
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from cinego.config import settings
from cinego.core.exceptions import NotFoundError, ValidationError
from cinego.models.base import as_utc
from cinego.models.movie import Movie
from cinego.models.show import Show
from cinego.services import show_search

logger = logging.getLogger(__name__)

MOVIE_FIELDS = (
    "title", "overview", "poster_url", "backdrop_url", "trailer_url", "release_date",
    "original_language", "genres", "runtime", "average_rating",
)


async def list_upcoming_movies(session: AsyncSession, now: Optional[datetime] = None) -> List[Movie]:
    """
    Distinct movies that still have a show ahead, ordered by their next show
    """
    now = now or datetime.now(timezone.utc)
    result = await session.execute(
        select(Show)
        .options(joinedload(Show.movie))
        .where(Show.start_time >= now)
        .order_by(Show.start_time)
    )
    movies: "OrderedDict[Any, Movie]" = OrderedDict()
    for show in result.scalars().all():
        if show.movie is not None and show.movie.id not in movies:
            movies[show.movie.id] = show.movie
    return list(movies.values())


async def find_movie(session: AsyncSession, movie_id: str) -> Optional[Movie]:
    """Look a movie up by its own id, falling back to the catalog (TMDB) id"""
    movie = None
    try:
        movie = await session.get(Movie, uuid.UUID(str(movie_id)))
    except ValueError:
        pass
    if movie is None:
        result = await session.execute(select(Movie).where(Movie.tmdb_id == str(movie_id)))
        movie = result.scalar_one_or_none()
    return movie


async def get_movie_schedule(
    session: AsyncSession,
    movie_id: str,
    now: Optional[datetime] = None
) -> Tuple[Movie, Dict[str, List[Dict[str, Any]]]]:
    """
    Return the movie and its upcoming shows grouped by UTC calendar date
    """
    now = now or datetime.now(timezone.utc)
    movie = await find_movie(session, movie_id)
    if movie is None:
        raise NotFoundError("Movie", movie_id)

    result = await session.execute(
        select(Show)
        .where(Show.movie_id == movie.id, Show.start_time >= now)
        .order_by(Show.start_time)
    )
    schedule: Dict[str, List[Dict[str, Any]]] = {}
    for show in result.scalars().all():
        start = as_utc(show.start_time)
        schedule.setdefault(start.date().isoformat(), []).append(
            {"time": start, "show_id": str(show.id)}
        )
    return movie, schedule


async def search_shows(
    session: AsyncSession,
    q: str,
    now: Optional[datetime] = None
) -> Tuple[show_search.SearchFilters, List[Show]]:
    filters = show_search.parse_query(q, now)

    stmt = (
        select(Show)
        .options(joinedload(Show.movie))
        .where(Show.start_time >= filters.start, Show.start_time <= filters.end)
        .order_by(Show.start_time)
    )
    if filters.max_price is not None:
        stmt = stmt.where(Show.price <= filters.max_price)

    result = await session.execute(stmt)
    shows = [show for show in result.scalars().all() if show_search.matches(show, filters)]
    logger.debug(f"Search '{q}' matched {len(shows)} shows")
    return filters, shows


def local_show_time(day: date, at: time, tz_name: str = None) -> datetime:
    """Admins enter wall-clock times in the display timezone"""
    local = datetime.combine(day, at, tzinfo=ZoneInfo(tz_name or settings.DISPLAY_TIMEZONE))
    return local.astimezone(timezone.utc)


async def add_shows(
    session: AsyncSession,
    movie_data: Dict[str, Any],
    show_times: List[Tuple[date, time]],
    price: Decimal
) -> Tuple[Movie, List[Show]]:
    """
    Upsert the movie by catalog id and schedule one show per date/time,
    each starting with an empty seat ledger
    """
    tmdb_id = str(movie_data.get("tmdb_id") or "").strip()
    if not tmdb_id:
        raise ValidationError("Movie tmdb_id is required", field="movie.tmdb_id")
    if not show_times:
        raise ValidationError("At least one show time is required", field="show_times")

    try:
        result = await session.execute(select(Movie).where(Movie.tmdb_id == tmdb_id))
        movie = result.scalar_one_or_none()
        if movie is None:
            movie = Movie(tmdb_id=tmdb_id)
            session.add(movie)
        for name in MOVIE_FIELDS:
            value = movie_data.get(name)
            if value is not None:
                setattr(movie, name, value)
        if not movie.title:
            movie.title = "Untitled"
        await session.flush()

        shows = [
            Show(
                movie_id=movie.id,
                start_time=local_show_time(day, at),
                price=Decimal(price),
                occupied_seats={},
            )
            for day, at in show_times
        ]
        session.add_all(shows)
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error(f"Failed to add shows for movie {tmdb_id}: {e}")
        raise

    logger.info(f"Added {len(shows)} shows for movie {movie.title} ({tmdb_id})")
    return movie, shows
