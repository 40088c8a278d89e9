"""
Signed-in user endpoints: favorite movies
"""

from typing import Any
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cinego.core.database import get_session
from cinego.core.security import CurrentUser, get_current_user
from cinego.schemas.show import FavoriteToggle, FavoriteToggleResponse, MovieListResponse, MovieResponse
from cinego.services.favorites import list_favorite_movies, toggle_favorite

router = APIRouter()


@router.post("/favorites", response_model=FavoriteToggleResponse)
async def update_favorites(
    favorite: FavoriteToggle,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Add the movie to the current user's favorites, or remove it if present
    """
    is_favorite = await toggle_favorite(db, current_user.id, favorite.movie_id)
    return FavoriteToggleResponse(message="Favorites updated successfully", is_favorite=is_favorite)


@router.get("/favorites", response_model=MovieListResponse)
async def get_favorites(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session)
) -> Any:
    movies = await list_favorite_movies(db, current_user.id)
    return MovieListResponse(movies=[MovieResponse.model_validate(movie) for movie in movies])
