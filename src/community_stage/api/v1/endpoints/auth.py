# src/community_stage/api/v1/endpoints/auth.py
"""Authentication endpoints: account registration and token issuance."""

from __future__ import annotations

from fastapi import APIRouter, status

from community_stage.core.security import create_access_token
from community_stage.models import User
from community_stage.schemas.user import (
    RegisterRequest,
    TokenRequest,
    TokenResponse,
    UserResponse,
)
from community_stage.services.errors import ErrorCode
from community_stage.services.user_service import get_user_by_username, register_user

from ..dependencies import CurrentUserDep, SessionDep, http_error_for, unwrap

router = APIRouter(prefix="/auth", tags=["authentication"])


def _token_for(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id),
        token_type="bearer",
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, db: SessionDep) -> TokenResponse:
    """Create an account and return a token for it."""
    user = unwrap(register_user(db, payload.username, payload.display_name))
    return _token_for(user)


@router.post("/token", response_model=TokenResponse)
async def issue_token(payload: TokenRequest, db: SessionDep) -> TokenResponse:
    """Issue a token for an existing username.

    Development login: there is no credential check beyond the username.
    """
    user = get_user_by_username(db, payload.username)
    if user is None:
        raise http_error_for(ErrorCode.USER_NOT_FOUND)
    return _token_for(user)


@router.get("/me", response_model=UserResponse)
async def read_me(current_user: CurrentUserDep) -> User:
    """Return the authenticated user."""
    return current_user
