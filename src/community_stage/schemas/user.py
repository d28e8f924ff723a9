"""User-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """Schema for creating an account."""

    username: str = Field(..., description="3-30 characters of a-z, 0-9 and underscore")
    display_name: str | None = Field(None, max_length=100, description="Optional display name")


class TokenRequest(BaseModel):
    """Schema for exchanging a username for a token."""

    username: str


class UserResponse(BaseModel):
    """Public user information."""

    id: int
    username: str
    display_name: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    """Response returned after registration or login."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field("bearer", description="Token type (always 'bearer')")
    user: UserResponse
