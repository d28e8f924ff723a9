# src/community_stage/api/v1/endpoints/invitations.py
"""Invitation endpoints, both community-scoped and invitee-scoped."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Query, status

from community_stage.models import RequestStatus
from community_stage.schemas.common import ActionRequest, MessageResponse
from community_stage.schemas.invitation import (
    BulkInviteRequest,
    BulkInviteResponse,
    InvitationPage,
    InvitationResponse,
    InvitationStatsResponse,
    InviteRequest,
)

from ..dependencies import BulkOrchestratorDep, CurrentUserDep, MembershipServiceDep, unwrap

logger = logging.getLogger(__name__)

community_router = APIRouter(prefix="/communities", tags=["invitations"])
router = APIRouter(prefix="/invitations", tags=["invitations"])


@community_router.post(
    "/{community_id}/invitations",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def invite_user(
    community_id: int,
    body: InviteRequest,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
) -> InvitationResponse:
    """Invite one user by username."""
    invitation = unwrap(service.invite_user(current_user.id, community_id, body.username))
    return InvitationResponse.model_validate(invitation)


@community_router.post("/{community_id}/invitations/bulk", response_model=BulkInviteResponse)
def bulk_invite(
    community_id: int,
    body: BulkInviteRequest,
    current_user: CurrentUserDep,
    orchestrator: BulkOrchestratorDep,
) -> BulkInviteResponse:
    """Invite up to the configured number of users in one call."""
    if body.message:
        logger.debug("Bulk invite to community %d carries a note", community_id)
    outcome = unwrap(orchestrator.invite(current_user.id, community_id, body.usernames))
    return BulkInviteResponse.model_validate(outcome)


@community_router.get(
    "/{community_id}/invitations/stats", response_model=InvitationStatsResponse
)
async def invitation_stats(
    community_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
) -> InvitationStatsResponse:
    """Count the community's invitations by status."""
    stats = unwrap(service.invitation_stats(current_user.id, community_id))
    return InvitationStatsResponse(
        pending=stats.pending,
        accepted=stats.accepted,
        rejected=stats.rejected,
        total=stats.total,
    )


@router.get("", response_model=InvitationPage)
async def list_invitations(
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
    invitation_status: Annotated[RequestStatus, Query(alias="status")] = RequestStatus.PENDING,
    cursor: Annotated[int | None, Query(ge=1)] = None,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> InvitationPage:
    """List invitations addressed to the caller."""
    page = unwrap(
        service.list_invitations(
            current_user.id, status=invitation_status, cursor=cursor, limit=limit
        )
    )
    return InvitationPage(
        items=[InvitationResponse.model_validate(item) for item in page.items],
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )


@router.post("/{invitation_id}", response_model=InvitationResponse)
async def handle_invitation(
    invitation_id: int,
    body: ActionRequest,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
) -> InvitationResponse:
    """Accept or decline an invitation."""
    outcome = unwrap(service.handle_invitation(current_user.id, invitation_id, body.action))
    return InvitationResponse.model_validate(outcome.record)


@router.delete("/{invitation_id}", response_model=MessageResponse)
async def revoke_invitation(
    invitation_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
) -> MessageResponse:
    """Delete an invitation as its invitee or as community staff."""
    unwrap(service.revoke_invitation(current_user.id, invitation_id))
    return MessageResponse(message="Invitation deleted")
