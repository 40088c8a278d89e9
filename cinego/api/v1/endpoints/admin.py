"""
Admin endpoints: role checks and show scheduling
"""

from typing import Any
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cinego.core.database import get_session
from cinego.core.security import CurrentUser, get_current_user, require_admin
from cinego.schemas.show import ShowCreate, ShowCreateResponse
from cinego.services import show_service

router = APIRouter()


@router.get("/is-admin")
async def is_admin(current_user: CurrentUser = Depends(get_current_user)) -> Any:
    """
    Tell the client whether to show the admin panel
    """
    return {"success": True, "is_admin": current_user.is_admin, "user_id": current_user.id}


@router.get("/is-owner")
async def is_owner(current_user: CurrentUser = Depends(get_current_user)) -> Any:
    return {"success": True, "is_owner": current_user.is_owner}


@router.post("/shows", response_model=ShowCreateResponse)
async def add_shows(
    show_data: ShowCreate,
    admin_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Upsert the movie and schedule its shows
    """
    movie, shows = await show_service.add_shows(
        db,
        show_data.movie.model_dump(),
        [(slot.date, slot.time) for slot in show_data.show_times],
        show_data.price,
    )
    return ShowCreateResponse(
        message=f"{len(shows)} show(s) added successfully",
        movie_id=movie.id,
        show_ids=[show.id for show in shows],
    )
