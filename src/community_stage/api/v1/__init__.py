"""Version 1 API endpoints."""

from .endpoints import (
    auth_router,
    communities_router,
    community_invitations_router,
    invitations_router,
)

__all__ = [
    "auth_router",
    "communities_router",
    "community_invitations_router",
    "invitations_router",
]
