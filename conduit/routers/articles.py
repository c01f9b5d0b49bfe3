from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.database import get_db
from conduit.dependencies import (
    PaginationParams,
    get_current_user,
    get_current_user_optional,
    viewer_id,
)
from conduit.models import User
from conduit.schemas import (
    ArticleCreate,
    ArticleListResponse,
    ArticleResponse,
    ArticleUpdate,
    MessageResponse,
)
from conduit.services import article_service

router = APIRouter(prefix=f"{settings.API_PREFIX}/articles", tags=["articles"])


@router.get("", response_model=ArticleListResponse)
async def list_articles(
    pagination: PaginationParams = Depends(),
    tag: Optional[str] = Query(None, description="Only articles whose tags contain this text."),
    author: Optional[str] = Query(None, description="Only articles by this username."),
    favorited: Optional[str] = Query(None, description="Only articles favorited by this username."),
    user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_articles(
        db,
        pagination.limit,
        pagination.offset,
        tag=tag,
        author=author,
        favorited=favorited,
        current_user_id=viewer_id(user),
    )


@router.get("/feed", response_model=ArticleListResponse)
async def feed_articles(
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_feed(db, user.id, pagination.limit, pagination.offset)


@router.post("", status_code=201, response_model=ArticleResponse)
async def create_article(
    data: ArticleCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.create_article(db, data, user.id)}


@router.get("/{slug}", response_model=ArticleResponse)
async def get_article(
    slug: str,
    user: Optional[User] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.get_article(db, slug, viewer_id(user))}


@router.put("/{slug}", response_model=ArticleResponse)
async def update_article(
    slug: str,
    data: ArticleUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.update_article(db, slug, data, user.id)}


@router.delete("/{slug}", response_model=MessageResponse)
async def delete_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_article(db, slug, user.id)
    return {"message": "Article deleted successfully"}


@router.post("/{slug}/favorite", response_model=ArticleResponse)
async def favorite_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.favorite_article(db, slug, user.id)}


@router.delete("/{slug}/favorite", response_model=ArticleResponse)
async def unfavorite_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.unfavorite_article(db, slug, user.id)}
