"""Invitation-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from community_stage.models import RequestStatus


class InviteRequest(BaseModel):
    """Invite a single user by username."""

    username: str = Field(..., min_length=1)


class BulkInviteRequest(BaseModel):
    """Invite several users at once; the size cap is enforced by the service."""

    usernames: list[str] = Field(..., description="Usernames to invite")
    message: str | None = Field(None, max_length=500, description="Optional note for invitees")


class InvitationResponse(BaseModel):
    """An invitation row."""

    id: int
    community_id: int
    inviter_id: int
    invitee_id: int
    status: RequestStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvitationPage(BaseModel):
    """One page of received invitations."""

    items: list[InvitationResponse]
    next_cursor: int | None = None
    has_more: bool = False


class CreatedInvitationResponse(BaseModel):
    """An invitation created by a bulk call."""

    id: int
    username: str

    model_config = ConfigDict(from_attributes=True)


class BulkInviteResponse(BaseModel):
    """Per-bucket classification of a bulk invitation."""

    invited: list[str]
    already_members: list[str]
    already_invited: list[str]
    not_found: list[str]
    failed: list[str]
    invitations: list[CreatedInvitationResponse]
    invited_count: int
    total: int

    model_config = ConfigDict(from_attributes=True)


class InvitationStatsResponse(BaseModel):
    """Invitation counts for a community."""

    pending: int
    accepted: int
    rejected: int
    total: int

    model_config = ConfigDict(from_attributes=True)
