"""
Comment service: comments scoped to an article resolved by slug.

Comments cannot be edited; they are created by any authenticated user and
deleted only by their author.  Each comment's author is rendered as a
profile whose ``following`` flag is relative to the requester.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit import repository
from conduit.exceptions import Forbidden, NotFound
from conduit.models import Article, Comment, User
from conduit.schemas import CommentCreate
from conduit.services.user_service import profile_to_dict

logger = logging.getLogger(__name__)


def _comment_to_dict(comment: Comment, author: User, following: bool) -> dict:
    return {
        "id": comment.id,
        "body": comment.body,
        "createdAt": comment.created_at,
        "updatedAt": comment.updated_at,
        "author": profile_to_dict(author, following),
    }


async def _get_article(db: AsyncSession, slug: str, current_user_id: int | None) -> Article:
    """Resolve *slug* with the same draft visibility as article reads."""
    article = await repository.get_article_by_slug(db, slug)
    if article is None or (article.is_draft and article.author_id != current_user_id):
        raise NotFound("Article not found")
    return article


async def add_comment(
    db: AsyncSession,
    slug: str,
    user_id: int,
    data: CommentCreate,
) -> dict:
    """Append a comment by *user_id* to the article at *slug*."""
    article = await _get_article(db, slug, user_id)

    comment = Comment(body=data.body, article_id=article.id, author_id=user_id)
    db.add(comment)
    await db.flush()
    await db.refresh(comment)

    author = await repository.get_user_by_id(db, user_id)
    return _comment_to_dict(comment, author, following=False)


async def get_comments(db: AsyncSession, slug: str, current_user_id: int | None = None) -> list[dict]:
    """
    All comments on the article at *slug*, oldest first.

    Authors and the requester's follow edges are each fetched in a single
    statement regardless of the number of comments.
    """
    article = await _get_article(db, slug, current_user_id)

    result = await db.execute(
        select(Comment)
        .where(Comment.article_id == article.id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    comments = list(result.scalars().all())

    authors = await repository.get_users_by_ids(db, {c.author_id for c in comments})
    followed = await repository.followed_among(db, current_user_id, authors.keys())
    return [
        _comment_to_dict(c, authors[c.author_id], c.author_id in followed)
        for c in comments
    ]


async def delete_comment(db: AsyncSession, slug: str, comment_id: int, user_id: int) -> None:
    """Only the comment's author may delete it."""
    article = await _get_article(db, slug, user_id)
    comment = await repository.get_comment(db, comment_id)
    if comment is None or comment.article_id != article.id:
        raise NotFound("Comment not found")
    if comment.author_id != user_id:
        raise Forbidden("You can only delete your own comments")

    await db.delete(comment)
    await db.flush()
    logger.info("Comment id=%s deleted from slug=%s", comment_id, slug)
