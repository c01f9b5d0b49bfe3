"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Views are viewer-relative.  ``favorited`` and ``author.following`` are
  computed against ``current_user_id`` (None for anonymous requests), so
  article views are never cached; only the global tag list is.
- A page of articles is assembled with a fixed number of statements:
  one for the rows, then one each for authors, tag names, the viewer's
  favorites and the viewer's follows (see ``_article_views``).
- The ``article_tags`` rows are the source of truth for ``tagList``; the
  ``Article.tag_list`` string is rewritten alongside them and only backs
  the ``?tag=`` substring filter.
- Multi-table writes run inside ``transaction(db)``; the outer commit is
  owned by the ``get_db`` dependency in the router layer.
"""
import logging
import re
import time
import unicodedata

from sqlalchemy import case, delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit import repository
from conduit.cache import TAGS_KEY, cache
from conduit.config import settings
from conduit.database import transaction
from conduit.exceptions import BadRequest, Conflict, Forbidden, NotFound
from conduit.models import Article, ArticleTag, Comment, Favorite, Follow, Tag, User
from conduit.schemas import ArticleCreate, ArticleUpdate
from conduit.services.user_service import profile_to_dict

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9\s-]")
_SLUG_SPACE_RE = re.compile(r"\s+")
_SLUG_DASH_RE = re.compile(r"-+")

TAG_SEPARATOR = ","


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase, ASCII-only slug derived from *text*."""
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = _SLUG_STRIP_RE.sub("", text.lower()).strip()
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def _title_slug(title: str) -> str:
    slug = slugify(title)
    if not slug:
        raise BadRequest("Title must contain at least one letter or digit")
    return slug


def _slug_suffix() -> str:
    """Millisecond timestamp appended to slugs regenerated on retitle."""
    return str(int(time.time() * 1000))


def normalize_tag_names(names: list[str]) -> list[str]:
    """
    Trim each name, drop empties, and drop later duplicates that differ
    only by case.  Submission order is preserved::

        ["Go", "go", "  ", "Rust"] -> ["Go", "Rust"]
    """
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        name = name.strip()
        key = name.casefold()
        if not name or key in seen:
            continue
        seen.add(key)
        result.append(name)
    return result


async def _link_tags(db: AsyncSession, article_id: int, tag_names: list[str]) -> None:
    """
    Attach *tag_names* (already normalised) to the article, creating any
    tag that does not exist yet.  Must run inside ``transaction(db)``.
    """
    try:
        for position, name in enumerate(tag_names):
            tag = await repository.get_tag_by_name(db, name)
            if tag is None:
                tag = Tag(name=name, slug=slugify(name))
                db.add(tag)
                await db.flush()
            db.add(ArticleTag(article_id=article_id, tag_id=tag.id, position=position))
        await db.flush()
    except IntegrityError as exc:
        raise BadRequest(f"Tag relation error: {exc.orig}") from exc


def _visible_to(current_user_id: int | None):
    """Published articles, plus the viewer's own drafts."""
    if current_user_id is None:
        return Article.is_draft.is_(False)
    return or_(Article.is_draft.is_(False), Article.author_id == current_user_id)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _article_to_dict(
    article: Article,
    author: User,
    tag_list: list[str],
    favorited: bool,
    following: bool,
) -> dict:
    return {
        "id": article.id,
        "slug": article.slug,
        "title": article.title,
        "description": article.description,
        "body": article.body,
        "tagList": tag_list,
        "isDraft": article.is_draft,
        "favorited": favorited,
        "favoritesCount": article.favorites_count,
        "authorId": article.author_id,
        "author": profile_to_dict(author, following),
        "createdAt": article.created_at,
        "updatedAt": article.updated_at,
    }


async def _article_views(
    db: AsyncSession,
    articles: list[Article],
    current_user_id: int | None,
    following: bool | None = None,
) -> list[dict]:
    """
    Serialise *articles* for *current_user_id*.

    Pass *following* to skip the follow lookup when the caller already
    knows the answer (the feed only contains followed authors).
    """
    if not articles:
        return []
    article_ids = [a.id for a in articles]
    authors = await repository.get_users_by_ids(db, {a.author_id for a in articles})
    tags = await repository.tag_names_for(db, article_ids)
    favorited = await repository.favorited_among(db, current_user_id, article_ids)
    if following is None:
        followed = await repository.followed_among(db, current_user_id, authors.keys())
    else:
        followed = set(authors) if following else set()
    return [
        _article_to_dict(
            a, authors[a.author_id], tags[a.id], a.id in favorited, a.author_id in followed
        )
        for a in articles
    ]


async def _article_view(db: AsyncSession, article: Article, current_user_id: int | None) -> dict:
    """Reload *article* after a write and serialise it."""
    await db.refresh(article)
    (view,) = await _article_views(db, [article], current_user_id)
    return view


async def _paginate(
    db: AsyncSession,
    conditions: list,
    limit: int,
    offset: int,
) -> tuple[list[Article], int]:
    """
    Return one page of articles matching *conditions*, newest first, and
    the total number of matches (ignoring *limit* / *offset*).
    """
    count_q = select(func.count()).select_from(Article).where(*conditions)
    total: int = (await db.execute(count_q)).scalar_one()

    articles_q = (
        select(Article)
        .where(*conditions)
        .order_by(Article.created_at.desc(), Article.id.desc())
        .offset(offset)
        .limit(limit)
    )
    articles = list((await db.execute(articles_q)).scalars().all())
    return articles, total


async def _get_visible_article(db: AsyncSession, slug: str, current_user_id: int | None) -> Article:
    article = await repository.get_article_by_slug(db, slug)
    if article is None:
        raise NotFound("Article not found")
    if article.is_draft and article.author_id != current_user_id:
        raise NotFound("Article not found")
    return article


async def _get_owned_article(db: AsyncSession, slug: str, current_user_id: int, action: str) -> Article:
    article = await repository.get_article_by_slug(db, slug)
    if article is None:
        raise NotFound("Article not found")
    if article.author_id != current_user_id:
        raise Forbidden(f"You can only {action} your own articles")
    return article


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_articles(
    db: AsyncSession,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    offset: int = 0,
    tag: str | None = None,
    author: str | None = None,
    favorited: str | None = None,
    current_user_id: int | None = None,
) -> dict:
    """
    Return ``{"articles": [...], "articlesCount": n}`` for the global list.

    Filters combine with AND:

    - *tag*: substring match on the article's tag list.
    - *author*: exact username of the author.
    - *favorited*: username of a user who favorited the article.
    """
    conditions = [_visible_to(current_user_id)]
    if tag:
        conditions.append(Article.tag_list.contains(tag, autoescape=True))
    if author:
        conditions.append(
            Article.author_id.in_(select(User.id).where(User.username == author))
        )
    if favorited:
        conditions.append(
            Article.id.in_(
                select(Favorite.article_id)
                .join(User, User.id == Favorite.user_id)
                .where(User.username == favorited)
            )
        )

    articles, total = await _paginate(db, conditions, limit, offset)
    return {
        "articles": await _article_views(db, articles, current_user_id),
        "articlesCount": total,
    }


async def get_feed(
    db: AsyncSession,
    user_id: int,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> dict:
    """Published articles by authors *user_id* follows, newest first."""
    conditions = [
        Article.is_draft.is_(False),
        Article.author_id.in_(
            select(Follow.following_id).where(Follow.follower_id == user_id)
        ),
    ]
    articles, total = await _paginate(db, conditions, limit, offset)
    return {
        "articles": await _article_views(db, articles, user_id, following=True),
        "articlesCount": total,
    }


async def get_article(db: AsyncSession, slug: str, current_user_id: int | None = None) -> dict:
    """Drafts are reported as missing to everyone but their author."""
    article = await _get_visible_article(db, slug, current_user_id)
    (view,) = await _article_views(db, [article], current_user_id)
    return view


async def create_article(db: AsyncSession, data: ArticleCreate, author_id: int) -> dict:
    """
    Create an article owned by *author_id*.

    The slug is derived from the title alone; a second article with a
    title that slugifies the same way is refused with Forbidden.
    """
    slug = _title_slug(data.title)
    if await repository.get_article_by_slug(db, slug) is not None:
        raise Forbidden("Article with this title already exists")

    tag_names = normalize_tag_names(data.tag_list)
    async with transaction(db):
        article = Article(
            title=data.title,
            slug=slug,
            description=data.description,
            body=data.body,
            tag_list=TAG_SEPARATOR.join(tag_names),
            is_draft=data.is_draft,
            favorites_count=0,
            author_id=author_id,
        )
        db.add(article)
        await db.flush()
        await _link_tags(db, article.id, tag_names)

    if tag_names:
        await cache.invalidate_tags()
    logger.info("Article created slug=%s author_id=%s draft=%s", slug, author_id, data.is_draft)
    return await _article_view(db, article, author_id)


async def update_article(
    db: AsyncSession, slug: str, data: ArticleUpdate, current_user_id: int
) -> dict:
    """
    Apply a partial update to an article owned by *current_user_id*.

    A new title regenerates the slug with a timestamp suffix; if that slug
    is already taken by another article the update is refused with
    Conflict before anything is written.  A ``tag_list`` replaces the
    article's tags wholesale.
    """
    article = await _get_owned_article(db, slug, current_user_id, "update")

    update_data = data.model_dump(exclude_unset=True)
    tags_data: list[str] | None = update_data.pop("tag_list", None)
    title: str | None = update_data.pop("title", None)

    new_slug = None
    if title is not None and title != article.title:
        new_slug = f"{_title_slug(title)}-{_slug_suffix()}"
        clash = await repository.get_article_by_slug(db, new_slug)
        if clash is not None and clash.id != article.id:
            raise Conflict("An article with this title already exists")

    async with transaction(db):
        if new_slug is not None:
            article.title = title
            article.slug = new_slug
        if "description" in update_data:
            article.description = update_data["description"]
        if update_data.get("body") is not None:
            article.body = update_data["body"]
        if update_data.get("is_draft") is not None:
            article.is_draft = update_data["is_draft"]

        if tags_data is not None:
            tag_names = normalize_tag_names(tags_data)
            article.tag_list = TAG_SEPARATOR.join(tag_names)
            await db.execute(delete(ArticleTag).where(ArticleTag.article_id == article.id))
            await _link_tags(db, article.id, tag_names)

    if tags_data is not None:
        await cache.invalidate_tags()
    logger.info("Article updated slug=%s fields=%s", article.slug, sorted(data.model_fields_set))
    return await _article_view(db, article, current_user_id)


async def delete_article(db: AsyncSession, slug: str, current_user_id: int) -> None:
    """Delete the article together with its tag links, favorites and comments."""
    article = await _get_owned_article(db, slug, current_user_id, "delete")

    async with transaction(db):
        await db.execute(delete(ArticleTag).where(ArticleTag.article_id == article.id))
        await db.execute(delete(Favorite).where(Favorite.article_id == article.id))
        await db.execute(delete(Comment).where(Comment.article_id == article.id))
        await db.delete(article)

    logger.info("Article deleted slug=%s", slug)


async def favorite_article(db: AsyncSession, slug: str, user_id: int) -> dict:
    """Favorite an article; Conflict if *user_id* already did."""
    article = await _get_visible_article(db, slug, user_id)
    if await repository.get_favorite(db, user_id, article.id) is not None:
        raise Conflict("You have already favorited this article")

    async with transaction(db):
        db.add(Favorite(user_id=user_id, article_id=article.id))
        article.favorites_count = Article.favorites_count + 1

    return await _article_view(db, article, user_id)


async def unfavorite_article(db: AsyncSession, slug: str, user_id: int) -> dict:
    """Remove a favorite; Conflict if there is none.  The counter never drops below 0."""
    article = await _get_visible_article(db, slug, user_id)
    favorite = await repository.get_favorite(db, user_id, article.id)
    if favorite is None:
        raise Conflict("You have not favorited this article")

    async with transaction(db):
        await db.delete(favorite)
        article.favorites_count = case(
            (Article.favorites_count > 0, Article.favorites_count - 1),
            else_=0,
        )

    return await _article_view(db, article, user_id)


async def get_tags(db: AsyncSession) -> list[str]:
    """All tag names, alphabetically, served from Redis when possible."""
    cached = await cache.get(TAGS_KEY)
    if cached is not None:
        return cached

    tags = await repository.list_tag_names(db)
    await cache.set(TAGS_KEY, tags, ttl=settings.CACHE_TTL_TAGS)
    return tags
