"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .common import ActionRequest, MessageResponse
from .community import (
    CommunityCreate,
    CommunityDetailResponse,
    CommunityResponse,
    CommunityUpdate,
    JoinRequestPage,
    JoinRequestResponse,
    JoinResponse,
    MembershipStatusResponse,
)
from .invitation import (
    BulkInviteRequest,
    BulkInviteResponse,
    InvitationPage,
    InvitationResponse,
    InvitationStatsResponse,
    InviteRequest,
)
from .member import MemberPage, MemberResponse, RoleUpdate
from .user import RegisterRequest, TokenRequest, TokenResponse, UserResponse

__all__ = [
    "ActionRequest", "MessageResponse",
    "CommunityCreate", "CommunityDetailResponse", "CommunityResponse", "CommunityUpdate",
    "JoinRequestPage", "JoinRequestResponse", "JoinResponse", "MembershipStatusResponse",
    "BulkInviteRequest", "BulkInviteResponse", "InvitationPage", "InvitationResponse",
    "InvitationStatsResponse", "InviteRequest",
    "MemberPage", "MemberResponse", "RoleUpdate",
    "RegisterRequest", "TokenRequest", "TokenResponse", "UserResponse",
]
