"""
Auth service: registration and login.

Knows about models, hashing and tokens, but not about HTTP; failures are
raised as ``conduit.exceptions`` errors for the router to render.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from conduit import repository
from conduit.exceptions import Unauthorized
from conduit.models import User
from conduit.schemas import LoginRequest, RegisterRequest
from conduit.security import create_access_token, hash_password, verify_password
from conduit.services.user_service import ensure_unique_credentials, user_to_dict

logger = logging.getLogger(__name__)


async def register(db: AsyncSession, data: RegisterRequest) -> dict:
    """Create a user and return ``{"token": ...}``."""
    await ensure_unique_credentials(db, data.username, data.email)

    user = User(
        username=data.username,
        email=data.email,
        name=data.name,
        password=hash_password(data.password),
    )
    db.add(user)
    await db.flush()

    logger.info("Registered user id=%s username=%s", user.id, user.username)
    return {"token": create_access_token(user.id, user.username)}


async def login(db: AsyncSession, data: LoginRequest) -> dict:
    """
    Verify credentials and return ``{"token": ..., "user": ...}``.

    Unknown usernames and wrong passwords fail identically.
    """
    user = await repository.get_user_by_username(db, data.username)
    if user is None or not verify_password(data.password, user.password):
        logger.info("Failed login for username=%s", data.username)
        raise Unauthorized("Invalid credentials")

    return {
        "token": create_access_token(user.id, user.username),
        "user": user_to_dict(user),
    }
