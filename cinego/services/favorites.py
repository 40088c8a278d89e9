"""
Per-user favorite movies
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cinego.core.exceptions import NotFoundError
from cinego.models.favorite import Favorite
from cinego.models.movie import Movie
from cinego.services.show_service import find_movie

logger = logging.getLogger(__name__)


async def toggle_favorite(session: AsyncSession, user_id: str, movie_id: str) -> bool:
    """
    Star the movie for the user, or unstar it if it already is. Returns
    whether the movie is a favorite afterwards.
    """
    movie = await find_movie(session, movie_id)
    if movie is None:
        raise NotFoundError("Movie", movie_id)
    movie_pk = movie.id

    result = await session.execute(
        select(Favorite).where(Favorite.user_id == user_id, Favorite.movie_id == movie_pk)
    )
    existing = result.scalar_one_or_none()
    if existing is not None:
        await session.delete(existing)
        is_favorite = False
    else:
        session.add(Favorite(user_id=user_id, movie_id=movie_pk))
        is_favorite = True

    try:
        await session.commit()
    except IntegrityError:
        # A concurrent request starred it first
        await session.rollback()
        logger.info(f"Movie {movie_pk} already a favorite of {user_id}")
        return True

    logger.info(f"User {user_id} {'starred' if is_favorite else 'unstarred'} movie {movie_pk}")
    return is_favorite


async def list_favorite_movies(session: AsyncSession, user_id: str) -> List[Movie]:
    result = await session.execute(
        select(Movie)
        .join(Favorite, Favorite.movie_id == Movie.id)
        .where(Favorite.user_id == user_id)
        .order_by(Favorite.created_at)
    )
    return list(result.scalars().all())
