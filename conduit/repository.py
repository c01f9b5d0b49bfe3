"""
Typed finders shared by the service layer.

Every function takes the request's ``AsyncSession`` first and returns ORM
instances or plain Python values; none of them commit.  Batch variants
(``*_among``) resolve viewer-relative flags for a whole page of results
in one statement so list endpoints stay at a constant query count.
"""
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.models import Article, ArticleTag, Comment, Favorite, Follow, Tag, User


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_users_by_ids(db: AsyncSession, user_ids: Iterable[int]) -> dict[int, User]:
    ids = set(user_ids)
    if not ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(ids)))
    return {u.id: u for u in result.scalars().all()}


# ---------------------------------------------------------------------------
# Follow graph
# ---------------------------------------------------------------------------

async def get_follow(db: AsyncSession, follower_id: int, following_id: int) -> Follow | None:
    return await db.get(Follow, (follower_id, following_id))


async def is_following(db: AsyncSession, follower_id: int | None, following_id: int) -> bool:
    """False for anonymous viewers and for a user looking at themselves."""
    if follower_id is None or follower_id == following_id:
        return False
    return await get_follow(db, follower_id, following_id) is not None


async def followed_among(
    db: AsyncSession, follower_id: int | None, user_ids: Iterable[int]
) -> set[int]:
    """Return the subset of *user_ids* that *follower_id* follows."""
    if follower_id is None:
        return set()
    ids = {uid for uid in user_ids if uid != follower_id}
    if not ids:
        return set()
    result = await db.execute(
        select(Follow.following_id).where(
            Follow.follower_id == follower_id, Follow.following_id.in_(ids)
        )
    )
    return set(result.scalars().all())


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------

async def get_article_by_slug(db: AsyncSession, slug: str) -> Article | None:
    result = await db.execute(
        select(Article)
        .where(Article.slug == slug)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_favorite(db: AsyncSession, user_id: int, article_id: int) -> Favorite | None:
    return await db.get(Favorite, (user_id, article_id))


async def favorited_among(
    db: AsyncSession, user_id: int | None, article_ids: Iterable[int]
) -> set[int]:
    """Return the subset of *article_ids* that *user_id* has favorited."""
    ids = set(article_ids)
    if user_id is None or not ids:
        return set()
    result = await db.execute(
        select(Favorite.article_id).where(
            Favorite.user_id == user_id, Favorite.article_id.in_(ids)
        )
    )
    return set(result.scalars().all())


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

async def get_tag_by_name(db: AsyncSession, name: str) -> Tag | None:
    result = await db.execute(select(Tag).where(Tag.name == name))
    return result.scalar_one_or_none()


async def tag_names_for(db: AsyncSession, article_ids: Iterable[int]) -> dict[int, list[str]]:
    """Map each article id to its tag names in submission order."""
    ids = set(article_ids)
    names: dict[int, list[str]] = {aid: [] for aid in ids}
    if not ids:
        return names
    result = await db.execute(
        select(ArticleTag.article_id, Tag.name)
        .join(Tag, Tag.id == ArticleTag.tag_id)
        .where(ArticleTag.article_id.in_(ids))
        .order_by(ArticleTag.article_id, ArticleTag.position)
    )
    for article_id, name in result.all():
        names[article_id].append(name)
    return names


async def list_tag_names(db: AsyncSession) -> list[str]:
    result = await db.execute(select(Tag.name).order_by(Tag.name))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

async def get_comment(db: AsyncSession, comment_id: int) -> Comment | None:
    return await db.get(Comment, comment_id)
