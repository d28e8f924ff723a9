"""JWT helpers for issuing and reading bearer tokens."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from community_stage.core.settings import settings


def create_access_token(user_id: int) -> str:
    """Create a JWT access token whose subject is the user's primary key."""
    to_encode: dict[str, object] = {"sub": str(user_id)}
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


def decode_subject(token: str) -> int | None:
    """Return the user id carried by ``token``, or None when it cannot be trusted.

    Args:
        token: Encoded JWT taken from the Authorization header.

    Returns:
        The integer subject, or None for expired, malformed or foreign tokens.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    subject = payload.get("sub")
    if subject is None:
        return None
    try:
        return int(subject)
    except (TypeError, ValueError):
        return None
