from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.database import get_db
from conduit.dependencies import get_current_user, get_current_user_optional, viewer_id
from conduit.models import User
from conduit.schemas import CommentCreate, CommentListResponse, CommentResponse, MessageResponse
from conduit.services import comment_service

router = APIRouter(prefix=f"{settings.API_PREFIX}/articles/{{slug}}/comments", tags=["comments"])


@router.get("", response_model=CommentListResponse)
async def list_comments(
    slug: str,
    user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return {"comments": await comment_service.get_comments(db, slug, viewer_id(user))}


@router.post("", status_code=201, response_model=CommentResponse)
async def add_comment(
    slug: str,
    data: CommentCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"comment": await comment_service.add_comment(db, slug, user.id, data)}


@router.delete("/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    slug: str,
    comment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, slug, comment_id, user.id)
    return {"message": "Comment deleted successfully"}
