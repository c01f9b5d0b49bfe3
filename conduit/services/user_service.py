"""
User service: the current user's record, profiles and the follow graph.

Profiles are always assembled relative to a viewer: ``following`` is true
only when the viewer has a Follow row pointing at the profile's user, and
is false for anonymous viewers and for a user looking at themselves.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from conduit import repository
from conduit.exceptions import BadRequest, Conflict, Forbidden, NotFound
from conduit.models import Follow, User
from conduit.schemas import UserResponse, UserUpdate
from conduit.security import hash_password, verify_password

logger = logging.getLogger(__name__)

# Columns a partial update may change but never clear.
_NOT_NULL_FIELDS = ("username", "email")


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def user_to_dict(user: User) -> dict:
    """The user's own record, without the password hash."""
    return UserResponse.model_validate(user).model_dump(by_alias=True)


def profile_to_dict(user: User, following: bool) -> dict:
    """Public view of *user* as seen by some viewer."""
    return {
        "username": user.username,
        "bio": user.bio,
        "image": user.image,
        "following": following,
    }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def ensure_unique_credentials(
    db: AsyncSession,
    username: str | None,
    email: str | None,
    exclude_user_id: int | None = None,
) -> None:
    """
    Raise Conflict when *username* or *email* belongs to another user.

    *exclude_user_id* lets a user keep their own username/email during a
    self-update.
    """
    if username is not None:
        existing = await repository.get_user_by_username(db, username)
        if existing is not None and existing.id != exclude_user_id:
            raise Conflict("Username already exists")
    if email is not None:
        existing = await repository.get_user_by_email(db, email)
        if existing is not None and existing.id != exclude_user_id:
            raise Conflict("Email already exists")


async def _get_target(db: AsyncSession, current_user_id: int, username: str) -> User:
    target = await repository.get_user_by_username(db, username)
    if target is None:
        raise NotFound("User not found")
    if target.id == current_user_id:
        raise Forbidden("You cannot follow yourself")
    return target


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def update_user(db: AsyncSession, user_id: int, data: UserUpdate) -> dict:
    """
    Apply a partial update to the user's own record.

    A password change needs a matching ``confirm_password`` and must
    differ from the current password.  Username/email are checked against
    every other user.
    """
    user = await repository.get_user_by_id(db, user_id)
    if user is None:
        raise NotFound("User not found")

    update_data = data.model_dump(exclude_unset=True)
    for field in _NOT_NULL_FIELDS:
        if field in update_data and update_data[field] is None:
            raise BadRequest(f"{field} cannot be null")

    confirm_password = update_data.pop("confirm_password", None)

    password = update_data.pop("password", None)
    if password is not None:
        if not confirm_password:
            raise BadRequest("Password confirmation is required when updating password")
        if password != confirm_password:
            raise BadRequest("Password and confirmation password do not match")
        if verify_password(password, user.password):
            raise BadRequest("New password must be different from current password")

    await ensure_unique_credentials(
        db,
        update_data.get("username"),
        update_data.get("email"),
        exclude_user_id=user.id,
    )

    for field, value in update_data.items():
        setattr(user, field, value)
    if password is not None:
        user.password = hash_password(password)

    await db.flush()
    await db.refresh(user)
    return user_to_dict(user)


async def get_profile(db: AsyncSession, username: str, current_user_id: int | None = None) -> dict:
    user = await repository.get_user_by_username(db, username)
    if user is None:
        raise NotFound("User not found")
    following = await repository.is_following(db, current_user_id, user.id)
    return profile_to_dict(user, following)


async def follow_user(db: AsyncSession, current_user_id: int, username: str) -> dict:
    """Follow *username*; Conflict if the edge already exists."""
    target = await _get_target(db, current_user_id, username)
    if await repository.get_follow(db, current_user_id, target.id) is not None:
        raise Conflict("You are already following this user")

    db.add(Follow(follower_id=current_user_id, following_id=target.id))
    await db.flush()

    logger.info("User id=%s followed id=%s", current_user_id, target.id)
    return profile_to_dict(target, following=True)


async def unfollow_user(db: AsyncSession, current_user_id: int, username: str) -> dict:
    """Unfollow *username*; Conflict if there is no edge to remove."""
    target = await _get_target(db, current_user_id, username)
    follow = await repository.get_follow(db, current_user_id, target.id)
    if follow is None:
        raise Conflict("You are not following this user")

    await db.delete(follow)
    await db.flush()

    logger.info("User id=%s unfollowed id=%s", current_user_id, target.id)
    return profile_to_dict(target, following=False)
