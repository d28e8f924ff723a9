"""Helpers for registering and resolving users."""
from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from community_stage.models import User
from community_stage.services.errors import ErrorCode, ServiceResult

__all__ = [
    "RESERVED_USERNAMES",
    "get_user",
    "get_user_by_username",
    "get_users_by_usernames",
    "normalize_username",
    "register_user",
    "validate_username",
]

logger = logging.getLogger(__name__)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
_USERNAME_PATTERN = re.compile(r"^[a-z0-9_]+$")

RESERVED_USERNAMES = frozenset({
    "api", "home", "login", "signup", "signin", "signout", "register",
    "admin", "root", "www", "mail", "ftp", "localhost", "blog",
    "auth", "profile", "settings", "help", "support", "about",
    "contact", "terms", "privacy", "dashboard", "feed", "explore",
    "notifications", "messages", "search", "trending", "thread",
    "post", "posts", "user", "users", "onboarding", "error",
    "media", "upload", "download", "static", "assets", "public",
})


def normalize_username(username: str) -> str:
    """Return the canonical (lower-cased, trimmed) form of a username."""
    return username.strip().lower()


def validate_username(username: str) -> str | None:
    """Return a validation message for ``username``, or None when it is acceptable.

    ``username`` must already be normalized.
    """
    if len(username) < USERNAME_MIN_LENGTH:
        return f"Username must be at least {USERNAME_MIN_LENGTH} characters"
    if len(username) > USERNAME_MAX_LENGTH:
        return f"Username must be at most {USERNAME_MAX_LENGTH} characters"
    if not _USERNAME_PATTERN.match(username):
        return "Username can only contain lowercase letters, numbers, and underscores"
    if username.startswith("_") or username.endswith("_"):
        return "Username cannot start or end with an underscore"
    if "__" in username:
        return "Username cannot contain consecutive underscores"
    if username in RESERVED_USERNAMES:
        return "This username is reserved and cannot be used"
    return None


def get_user(db: Session, user_id: int) -> User | None:
    """Return a single user by primary key."""
    return db.get(User, user_id)


def get_user_by_username(db: Session, username: str) -> User | None:
    """Resolve a username case-insensitively."""
    return db.scalars(
        select(User).where(User.username == normalize_username(username))
    ).first()


def get_users_by_usernames(db: Session, usernames: Iterable[str]) -> dict[str, User]:
    """Resolve several usernames at once, keyed by normalized username."""
    keys = {normalize_username(name) for name in usernames}
    if not keys:
        return {}
    users = db.scalars(select(User).where(User.username.in_(keys))).all()
    return {user.username: user for user in users}


def register_user(
    db: Session, username: str, display_name: str | None = None
) -> ServiceResult[User]:
    """Persist a new user after validating the username."""
    normalized = normalize_username(username)
    problem = validate_username(normalized)
    if problem:
        return ServiceResult.failure(ErrorCode.VALIDATION_ERROR, problem)

    if get_user_by_username(db, normalized) is not None:
        return ServiceResult.failure(ErrorCode.USERNAME_TAKEN)

    user = User(username=normalized, display_name=display_name)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return ServiceResult.failure(ErrorCode.USERNAME_TAKEN)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to register user %s", normalized)
        return ServiceResult.failure(ErrorCode.UNAVAILABLE)
    db.refresh(user)
    logger.info("Registered user %s (id=%d)", user.username, user.id)
    return ServiceResult.ok(user)
