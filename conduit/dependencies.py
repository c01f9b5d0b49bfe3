from typing import Optional

from fastapi import Depends, Query, Request
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.database import get_db
from conduit.exceptions import Unauthorized
from conduit.models import User
from conduit.repository import get_user_by_id
from conduit.security import user_id_from_token

# "Token" is what RealWorld front-ends send; "Bearer" is the standard.
_ACCEPTED_SCHEMES = {"bearer", "token"}


class PaginationParams:
    """
    Reusable FastAPI dependency that parses ``limit`` / ``offset`` query
    parameters for list endpoints.

    Attributes
    ----------
    limit:
        Page size, clamped to ``settings.MAX_PAGE_SIZE`` regardless of the
        value supplied by the caller.
    offset:
        Number of matching rows to skip.
    """

    def __init__(
        self,
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            description="Number of articles returned (max 100).",
        ),
        offset: int = Query(
            0,
            ge=0,
            description="Number of articles to skip.",
        ),
    ) -> None:
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.offset = offset


def _bearer_token(request: Request) -> Optional[str]:
    scheme, token = get_authorization_scheme_param(request.headers.get("Authorization"))
    if not token or scheme.lower() not in _ACCEPTED_SCHEMES:
        return None
    return token


async def get_current_user_optional(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """
    The user behind the request's token, or None.

    Missing, malformed or expired tokens, and tokens of users that no
    longer exist, all resolve to an anonymous viewer.
    """
    token = _bearer_token(request)
    if token is None:
        return None
    user_id = user_id_from_token(token)
    if user_id is None:
        return None
    return await get_user_by_id(db, user_id)


async def get_current_user(
    request: Request,
    user: Optional[User] = Depends(get_current_user_optional),
) -> User:
    """Like ``get_current_user_optional`` but rejects anonymous requests with 401."""
    if user is None:
        if _bearer_token(request) is None:
            raise Unauthorized("Not authenticated")
        raise Unauthorized("Could not validate credentials")
    return user


def viewer_id(user: Optional[User]) -> Optional[int]:
    return user.id if user is not None else None
