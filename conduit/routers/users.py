from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.database import get_db
from conduit.dependencies import get_current_user, get_current_user_optional, viewer_id
from conduit.models import User
from conduit.schemas import ApiResponse, ProfileResponse, UserUpdate
from conduit.services import user_service

router = APIRouter(prefix=settings.API_PREFIX, tags=["users"])


@router.get("/user", response_model=ApiResponse)
async def get_current_user_record(user: User = Depends(get_current_user)):
    return {
        "status": "success",
        "message": "User retrieved successfully",
        "result": user_service.user_to_dict(user),
    }


@router.put("/user", response_model=ApiResponse)
async def update_current_user(
    data: UserUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await user_service.update_user(db, user.id, data)
    return {"status": "success", "message": "User updated successfully", "result": updated}


@router.get("/profiles/{username}", response_model=ProfileResponse)
async def get_profile(
    username: str,
    user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await user_service.get_profile(db, username, viewer_id(user))}


@router.post("/profiles/{username}/follow", response_model=ProfileResponse)
async def follow_user(
    username: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await user_service.follow_user(db, user.id, username)}


@router.delete("/profiles/{username}/follow", response_model=ProfileResponse)
async def unfollow_user(
    username: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await user_service.unfollow_user(db, user.id, username)}
