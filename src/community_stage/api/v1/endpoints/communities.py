# src/community_stage/api/v1/endpoints/communities.py
"""Community, membership and join-request endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, status

from community_stage.models import CommunityMember, RequestStatus
from community_stage.schemas.common import ActionRequest, MessageResponse
from community_stage.schemas.community import (
    CommunityCreate,
    CommunityDetailResponse,
    CommunityResponse,
    CommunityUpdate,
    JoinRequestPage,
    JoinRequestResponse,
    JoinResponse,
    MembershipStatusResponse,
)
from community_stage.schemas.member import MemberPage, MemberResponse, RoleUpdate

from ..dependencies import CurrentUserDep, MembershipServiceDep, unwrap

router = APIRouter(prefix="/communities", tags=["communities"])

CursorQuery = Annotated[int | None, Query(ge=1, description="Id of the last item seen")]
LimitQuery = Annotated[int | None, Query(ge=1, description="Page size")]


def _member_response(membership: CommunityMember) -> MemberResponse:
    return MemberResponse(
        id=membership.id,
        user_id=membership.user_id,
        community_id=membership.community_id,
        role=membership.role,
        joined_at=membership.joined_at,
        username=membership.user.username,
        display_name=membership.user.display_name,
    )


@router.post("", response_model=CommunityResponse, status_code=status.HTTP_201_CREATED)
async def create_community(
    community_data: CommunityCreate,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
) -> CommunityResponse:
    """Create a community; the caller becomes its first admin."""
    community = unwrap(
        service.create_community(
            current_user.id,
            name=community_data.name,
            description=community_data.description,
            visibility=community_data.visibility,
            image_url=community_data.image_url,
            cover_image_url=community_data.cover_image_url,
        )
    )
    return CommunityResponse.model_validate(community)


@router.get("/{community_id}", response_model=CommunityDetailResponse)
async def get_community(
    community_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
) -> CommunityDetailResponse:
    """Get a community with its member count and the caller's role."""
    view = unwrap(service.get_community(current_user.id, community_id))
    base = CommunityResponse.model_validate(view.community)
    return CommunityDetailResponse(
        **base.model_dump(),
        member_count=view.member_count,
        viewer_role=view.viewer_membership.role if view.viewer_membership else None,
    )


@router.patch("/{community_id}", response_model=CommunityResponse)
async def update_community(
    community_id: int,
    changes: CommunityUpdate,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
) -> CommunityResponse:
    """Update the supplied profile fields of a community."""
    fields = changes.model_dump(exclude_unset=True)
    community = unwrap(service.update_community(current_user.id, community_id, fields))
    return CommunityResponse.model_validate(community)


@router.delete("/{community_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_community(
    community_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
) -> None:
    """Delete a community and everything attached to it."""
    unwrap(service.delete_community(current_user.id, community_id))


@router.post("/{community_id}/join", response_model=JoinResponse)
async def join_community(
    community_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
) -> JoinResponse:
    """Join a public community, or ask to join a private one."""
    outcome = unwrap(service.join_community(current_user.id, community_id))
    return JoinResponse(
        status=outcome.status,
        member_id=outcome.membership.id if outcome.membership else None,
        request_id=outcome.join_request.id if outcome.join_request else None,
    )


@router.delete("/{community_id}/leave", response_model=MessageResponse)
async def leave_community(
    community_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
) -> MessageResponse:
    """Leave a community."""
    unwrap(service.leave_community(current_user.id, community_id))
    return MessageResponse(message="Left community")


@router.get("/{community_id}/membership", response_model=MembershipStatusResponse)
async def membership_status(
    community_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
) -> MembershipStatusResponse:
    """Report the caller's membership, join request and invitation state."""
    state = unwrap(service.get_membership_status(current_user.id, community_id))
    return MembershipStatusResponse(
        community_id=state.community_id,
        is_member=state.is_member,
        role=state.role,
        join_request_status=state.join_request_status,
        pending_invitation_id=state.pending_invitation_id,
    )


@router.get("/{community_id}/members", response_model=MemberPage)
async def list_members(
    community_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
    search: Annotated[str | None, Query(max_length=100)] = None,
    cursor: CursorQuery = None,
    limit: LimitQuery = None,
) -> MemberPage:
    """List members newest first, optionally filtered by name."""
    page = unwrap(
        service.list_members(
            current_user.id, community_id, search=search, cursor=cursor, limit=limit
        )
    )
    return MemberPage(
        items=[_member_response(member) for member in page.items],
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )


@router.patch("/{community_id}/members/{member_id}", response_model=MemberResponse)
async def update_member_role(
    community_id: int,
    member_id: int,
    body: RoleUpdate,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
) -> MemberResponse:
    """Change a member's role."""
    membership = unwrap(
        service.update_member_role(current_user.id, community_id, member_id, body.role)
    )
    return _member_response(membership)


@router.delete("/{community_id}/members/{member_id}", response_model=MessageResponse)
async def remove_member(
    community_id: int,
    member_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
) -> MessageResponse:
    """Remove a member from the community."""
    unwrap(service.remove_member(current_user.id, community_id, member_id))
    return MessageResponse(message="Member removed")


@router.get("/{community_id}/requests", response_model=JoinRequestPage)
async def list_join_requests(
    community_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
    request_status: Annotated[RequestStatus, Query(alias="status")] = RequestStatus.PENDING,
    cursor: CursorQuery = None,
    limit: LimitQuery = None,
) -> JoinRequestPage:
    """List join requests, pending ones by default."""
    page = unwrap(
        service.list_join_requests(
            current_user.id, community_id, status=request_status, cursor=cursor, limit=limit
        )
    )
    return JoinRequestPage(
        items=[JoinRequestResponse.model_validate(item) for item in page.items],
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )


@router.delete("/{community_id}/requests/mine", response_model=MessageResponse)
async def cancel_join_request(
    community_id: int,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
) -> MessageResponse:
    """Withdraw the caller's pending join request."""
    unwrap(service.cancel_join_request(current_user.id, community_id))
    return MessageResponse(message="Join request cancelled")


@router.post("/{community_id}/requests/{request_id}", response_model=JoinRequestResponse)
async def handle_join_request(
    community_id: int,
    request_id: int,
    body: ActionRequest,
    current_user: CurrentUserDep,
    service: MembershipServiceDep,
) -> JoinRequestResponse:
    """Accept or reject a join request."""
    outcome = unwrap(
        service.handle_join_request(
            current_user.id, request_id, body.action, community_id=community_id
        )
    )
    return JoinRequestResponse.model_validate(outcome.record)
