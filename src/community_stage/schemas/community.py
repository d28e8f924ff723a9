"""Community-related Pydantic schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from community_stage.models import RequestStatus, Role, Visibility


class CommunityCreate(BaseModel):
    """Schema for creating a new community."""

    name: str = Field(..., description="Display name, unique ignoring case")
    description: str | None = None
    visibility: Visibility = Visibility.PUBLIC
    image_url: str | None = None
    cover_image_url: str | None = None


class CommunityUpdate(BaseModel):
    """Partial update; only fields present in the request body change."""

    name: str | None = None
    description: str | None = None
    visibility: Visibility | None = None
    image_url: str | None = None
    cover_image_url: str | None = None


class CommunityResponse(BaseModel):
    """Schema for community information returned by the API."""

    id: int
    name: str
    description: str | None
    visibility: Visibility
    creator_id: int
    image_url: str | None
    cover_image_url: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CommunityDetailResponse(CommunityResponse):
    """Community plus viewer-specific context."""

    member_count: int
    viewer_role: Role | None = None


class JoinResponse(BaseModel):
    """Outcome of a join call: immediate membership or a pending request."""

    status: Literal["joined", "requested"]
    member_id: int | None = None
    request_id: int | None = None


class MembershipStatusResponse(BaseModel):
    """The caller's relationship with one community."""

    community_id: int
    is_member: bool
    role: Role | None = None
    join_request_status: RequestStatus | None = None
    pending_invitation_id: int | None = None


class JoinRequestResponse(BaseModel):
    """A join request as shown to community staff."""

    id: int
    community_id: int
    user_id: int
    status: RequestStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class JoinRequestPage(BaseModel):
    """One page of join requests."""

    items: list[JoinRequestResponse]
    next_cursor: int | None = None
    has_more: bool = False
