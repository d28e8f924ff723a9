# src/community_stage/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .communities import router as communities_router
from .invitations import community_router as community_invitations_router
from .invitations import router as invitations_router

__all__ = [
    "auth_router",
    "communities_router",
    "community_invitations_router",
    "invitations_router",
]
