"""Membership-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from community_stage.models import Role


class RoleUpdate(BaseModel):
    """Body of a role change."""

    role: Role = Field(..., description="ADMIN, MODERATOR or USER")


class MemberResponse(BaseModel):
    """A membership together with the member's public identity."""

    id: int
    user_id: int
    community_id: int
    role: Role
    joined_at: datetime
    username: str
    display_name: str | None = None

    model_config = ConfigDict(from_attributes=True)


class MemberPage(BaseModel):
    """One page of members, newest first."""

    items: list[MemberResponse]
    next_cursor: int | None = None
    has_more: bool = False
