"""
User service: credential-store lookups and profile management.

The lookups here are the only way the rest of the service reads users.
hashed_password is deferred on the model, so callers that need to verify a
password must ask for it with with_password=True.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import undefer

from marketplace_api.exceptions import InputValidationError
from marketplace_api.models.user import User
from marketplace_api.validation import (
    failures,
    normalize_email,
    normalize_location,
    validate_profile_update,
)

logger = logging.getLogger(__name__)


# Fields PATCH /updateMe may change. Never email, role or password fields.
PROFILE_FIELDS = ("username", "phone_number", "location")


def _select_user(with_password: bool):
    query = select(User)
    if with_password:
        # populate_existing so an instance already in the session gets the column too
        query = query.options(undefer(User.hashed_password)).execution_options(
            populate_existing=True
        )
    return query


async def get_user_by_id(
    db: AsyncSession, user_id: uuid.UUID, with_password: bool = False
) -> User | None:
    result = await db.execute(_select_user(with_password).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(
    db: AsyncSession, email: str, with_password: bool = False
) -> User | None:
    result = await db.execute(
        _select_user(with_password).where(User.email == normalize_email(email))
    )
    return result.scalar_one_or_none()


async def get_user_by_reset_token(db: AsyncSession, hashed_token: str) -> User | None:
    result = await db.execute(select(User).where(User.password_reset_token == hashed_token))
    return result.scalar_one_or_none()


async def list_users(db: AsyncSession, limit: int = 50, offset: int = 0) -> list[User]:
    result = await db.execute(
        select(User).order_by(User.created_at).limit(limit).offset(offset)
    )
    return list(result.scalars().all())


def filter_fields(data: dict, allowed: tuple[str, ...]) -> dict:
    """Keep only the keys in allowed."""
    return {key: value for key, value in data.items() if key in allowed}


async def update_profile(db: AsyncSession, user: User, updates: dict) -> User:
    """
    Apply a profile update to user.

    Args:
        updates: Fields the client explicitly sent (snake_case keys). Location
            arrives as a dict and replaces the stored location as a whole.

    Raises:
        InputValidationError: If password fields are present, or a value is invalid.
    """
    if updates.get("password") or updates.get("password_confirm"):
        raise InputValidationError(
            "This route is not for password updates. Please use /updateMyPassword."
        )

    updates = filter_fields(updates, PROFILE_FIELDS)
    if "username" in updates and updates["username"] is not None:
        updates["username"] = updates["username"].strip()
    if updates.get("location") is not None:
        updates["location"] = normalize_location(updates["location"])

    errors = failures(validate_profile_update(updates))
    if errors:
        raise InputValidationError(errors)

    location = updates.pop("location", None)
    if location is not None:
        user.address = location["address"]
        user.city = location["city"]
        user.zip_code = location["zip_code"]
        user.country = location["country"]

    for field, value in updates.items():
        setattr(user, field, value)

    await db.flush()
    logger.info("Profile updated for user %s", user.id)
    return user
