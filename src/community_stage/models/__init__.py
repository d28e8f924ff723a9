# src/community_stage/models/__init__.py
"""SQLAlchemy models for the Community Stage application."""

from .community import Community, CommunityMember, RequestStatus, Role, Visibility
from .invitation import CommunityInvitation
from .join_request import JoinRequest
from .user import User

__all__ = [
    "Community", "CommunityMember",
    "CommunityInvitation",
    "JoinRequest",
    "RequestStatus", "Role", "Visibility",
    "User",
]
