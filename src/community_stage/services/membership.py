"""Membership workflow service.

Every public method takes the acting user's id, runs as one database
transaction and returns a :class:`ServiceResult`. Denials and conflicts are
raised internally as :class:`MembershipError` and converted at the boundary in
:meth:`MembershipService._run`, which also rolls the session back so a failed
operation leaves no partial writes behind.

The last-admin rule is enforced twice: the admin set is read with a row lock
before a demotion or removal, and the count is re-checked after the change is
flushed so that a concurrent writer that slipped past the first check still
causes a rollback.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from community_stage.core.settings import settings
from community_stage.models import (
    Community,
    CommunityInvitation,
    CommunityMember,
    JoinRequest,
    RequestStatus,
    Role,
    User,
    Visibility,
)
from community_stage.models.community import normalize_name
from community_stage.services import authorization
from community_stage.services.authorization import Action
from community_stage.services.errors import ErrorCode, MembershipError, ServiceResult
from community_stage.services.user_service import get_user, get_user_by_username

logger = logging.getLogger(__name__)

T = TypeVar("T")
E = TypeVar("E", bound=enum.Enum)

UPDATABLE_COMMUNITY_FIELDS = frozenset({
    "name",
    "description",
    "visibility",
    "image_url",
    "cover_image_url",
})


class Decision(str, enum.Enum):
    """Answer to a join request or an invitation."""

    ACCEPT = "accept"
    REJECT = "reject"


@dataclass
class JoinOutcome:
    """Which path ``join_community`` took."""

    status: str  # "joined" or "requested"
    membership: CommunityMember | None = None
    join_request: JoinRequest | None = None


@dataclass
class DecisionOutcome(Generic[T]):
    """Result of answering a join request or an invitation."""

    record: T
    membership: CommunityMember | None = None


@dataclass
class CommunityView:
    """A community as seen by one viewer."""

    community: Community
    member_count: int
    viewer_membership: CommunityMember | None = None


@dataclass
class MembershipStatus:
    """Everything a caller needs to render a join/leave control."""

    community_id: int
    role: Role | None = None
    join_request_status: RequestStatus | None = None
    pending_invitation_id: int | None = None

    @property
    def is_member(self) -> bool:
        """True when the viewer holds a membership."""
        return self.role is not None


@dataclass
class Page(Generic[T]):
    """One page of a keyset-paginated listing."""

    items: list[T] = field(default_factory=list)
    next_cursor: int | None = None
    has_more: bool = False


@dataclass
class InvitationStats:
    """Invitation counts for a community."""

    pending: int = 0
    accepted: int = 0
    rejected: int = 0

    @property
    def total(self) -> int:
        """Sum of all statuses."""
        return self.pending + self.accepted + self.rejected


def _coerce(enum_cls: type[E], value: Any, label: str) -> E:
    if isinstance(value, enum_cls):
        return value
    raw = str(value).strip()
    # Decision values are lower-case, model enums upper-case.
    raw = raw.lower() if enum_cls is Decision else raw.upper()
    try:
        return enum_cls(raw)
    except ValueError as err:
        allowed = ", ".join(member.value for member in enum_cls)
        raise MembershipError(
            ErrorCode.VALIDATION_ERROR,
            f"Invalid {label}. Must be one of: {allowed}",
        ) from err


class MembershipService:
    """Orchestrates membership changes against a single session."""

    def __init__(self, db: Session) -> None:
        """Bind the service to a database session owned by the caller."""
        self.db = db

    # ------------------------------------------------------------------
    # Transaction boundary
    # ------------------------------------------------------------------
    def _run(
        self,
        operation: str,
        work: Callable[[], T],
        *,
        conflict: ErrorCode = ErrorCode.UNAVAILABLE,
    ) -> ServiceResult[T]:
        try:
            data = work()
            self.db.commit()
        except MembershipError as exc:
            self.db.rollback()
            logger.info("%s refused: %s", operation, exc.code.value)
            return exc.to_result()
        except IntegrityError:
            self.db.rollback()
            logger.warning("%s hit a constraint conflict", operation, exc_info=True)
            return ServiceResult.failure(conflict)
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("%s failed against the store", operation, exc_info=True)
            return ServiceResult.failure(ErrorCode.UNAVAILABLE)
        return ServiceResult.ok(data)

    def _flush(self, conflict: ErrorCode) -> None:
        try:
            self.db.flush()
        except IntegrityError as err:
            raise MembershipError(conflict) from err

    # ------------------------------------------------------------------
    # Loading helpers
    # ------------------------------------------------------------------
    def _require_actor(self, actor_id: int | None) -> User:
        if actor_id is None:
            raise MembershipError(ErrorCode.NOT_AUTHENTICATED)
        actor = get_user(self.db, actor_id)
        if actor is None:
            raise MembershipError(ErrorCode.NOT_AUTHENTICATED)
        return actor

    def _get_community(self, community_id: int) -> Community:
        community = self.db.get(Community, community_id)
        if community is None:
            raise MembershipError(ErrorCode.NOT_FOUND, "Community not found")
        return community

    def _get_membership(self, user_id: int, community_id: int) -> CommunityMember | None:
        return self.db.scalars(
            select(CommunityMember).where(
                CommunityMember.user_id == user_id,
                CommunityMember.community_id == community_id,
            )
        ).first()

    def _role_of(self, user_id: int, community_id: int) -> Role | None:
        membership = self._get_membership(user_id, community_id)
        return membership.role if membership else None

    def _require_permission(
        self,
        actor_role: Role | None,
        action: Action,
        target_role: Role | None = None,
        code: ErrorCode = ErrorCode.NOT_AUTHORIZED,
    ) -> None:
        if not authorization.is_permitted(actor_role, action, target_role):
            raise MembershipError(code)

    def _get_target_member(self, community_id: int, member_id: int) -> CommunityMember:
        target = self.db.get(CommunityMember, member_id)
        if target is None or target.community_id != community_id:
            raise MembershipError(ErrorCode.NOT_FOUND, "Member not found")
        return target

    def _locked_admin_ids(self, community_id: int) -> list[int]:
        # Row lock on the admin set; a no-op on SQLite.
        return list(
            self.db.scalars(
                select(CommunityMember.id)
                .where(
                    CommunityMember.community_id == community_id,
                    CommunityMember.role == Role.ADMIN,
                )
                .with_for_update()
            )
        )

    def _count_admins(self, community_id: int) -> int:
        return self.db.scalar(
            select(func.count(CommunityMember.id)).where(
                CommunityMember.community_id == community_id,
                CommunityMember.role == Role.ADMIN,
            )
        ) or 0

    def _guard_last_admin(self, community_id: int, code: ErrorCode) -> None:
        if len(self._locked_admin_ids(community_id)) <= 1:
            raise MembershipError(code)

    def _verify_admin_remains(self, community_id: int, code: ErrorCode) -> None:
        self.db.flush()
        if self._count_admins(community_id) < 1:
            logger.warning("Rolled back change that emptied admin set of community %d", community_id)
            raise MembershipError(code)

    def _add_membership(
        self, user_id: int, community_id: int, role: Role = Role.USER
    ) -> CommunityMember:
        membership = CommunityMember(user_id=user_id, community_id=community_id, role=role)
        self.db.add(membership)
        self._flush(ErrorCode.ALREADY_MEMBER)
        return membership

    def _validate_profile(
        self, name: str | None = None, description: str | None = None
    ) -> None:
        if name is not None:
            if not isinstance(name, str):
                raise MembershipError(ErrorCode.VALIDATION_ERROR, "Community name must be text")
            if not name.strip():
                raise MembershipError(ErrorCode.VALIDATION_ERROR, "Community name is required")
            if len(name.strip()) > settings.community_name_max_length:
                raise MembershipError(
                    ErrorCode.VALIDATION_ERROR,
                    f"Community name must be {settings.community_name_max_length} "
                    "characters or less",
                )
        if description is None:
            return
        if not isinstance(description, str):
            raise MembershipError(ErrorCode.VALIDATION_ERROR, "Description must be text")
        if len(description) > settings.community_description_max_length:
            raise MembershipError(
                ErrorCode.VALIDATION_ERROR,
                f"Description must be {settings.community_description_max_length} "
                "characters or less",
            )

    def _name_taken(self, name: str, exclude_id: int | None = None) -> bool:
        stmt = select(Community.id).where(Community.name_key == normalize_name(name))
        if exclude_id is not None:
            stmt = stmt.where(Community.id != exclude_id)
        return self.db.scalars(stmt).first() is not None

    def _ensure_can_view(self, community: Community, actor_id: int) -> CommunityMember | None:
        membership = self._get_membership(actor_id, community.id)
        if community.visibility is Visibility.PRIVATE and membership is None:
            raise MembershipError(ErrorCode.NOT_AUTHORIZED, "Access denied")
        return membership

    # ------------------------------------------------------------------
    # Communities
    # ------------------------------------------------------------------
    def create_community(
        self,
        actor_id: int | None,
        name: str,
        description: str | None = None,
        visibility: Visibility | str = Visibility.PUBLIC,
        image_url: str | None = None,
        cover_image_url: str | None = None,
    ) -> ServiceResult[Community]:
        """Create a community and seed its creator as the first ADMIN."""

        def work() -> Community:
            actor = self._require_actor(actor_id)
            self._validate_profile(name=name or "", description=description)
            mode = _coerce(Visibility, visibility, "visibility")
            clean_name = name.strip()
            if self._name_taken(clean_name):
                raise MembershipError(ErrorCode.NAME_TAKEN)

            community = Community(
                name=clean_name,
                name_key=normalize_name(clean_name),
                description=description or None,
                visibility=mode,
                creator_id=actor.id,
                image_url=image_url,
                cover_image_url=cover_image_url,
            )
            self.db.add(community)
            self._flush(ErrorCode.NAME_TAKEN)
            self._add_membership(actor.id, community.id, Role.ADMIN)
            logger.info("User %d created community %d (%s)", actor.id, community.id, clean_name)
            return community

        return self._run("create_community", work, conflict=ErrorCode.NAME_TAKEN)

    def get_community(self, actor_id: int | None, community_id: int) -> ServiceResult[CommunityView]:
        """Return a community with its member count and the viewer's membership."""

        def work() -> CommunityView:
            actor = self._require_actor(actor_id)
            community = self._get_community(community_id)
            membership = self._ensure_can_view(community, actor.id)
            member_count = self.db.scalar(
                select(func.count(CommunityMember.id)).where(
                    CommunityMember.community_id == community.id
                )
            ) or 0
            return CommunityView(
                community=community,
                member_count=member_count,
                viewer_membership=membership,
            )

        return self._run("get_community", work)

    def update_community(
        self,
        actor_id: int | None,
        community_id: int,
        fields: Mapping[str, Any],
    ) -> ServiceResult[Community]:
        """Apply a partial profile update; only ADMINs may do this."""

        def work() -> Community:
            actor = self._require_actor(actor_id)
            community = self._get_community(community_id)
            self._require_permission(self._role_of(actor.id, community.id), Action.UPDATE_COMMUNITY)

            unknown = set(fields) - UPDATABLE_COMMUNITY_FIELDS
            if unknown:
                raise MembershipError(
                    ErrorCode.VALIDATION_ERROR,
                    f"Unknown fields: {', '.join(sorted(unknown))}",
                )

            if "name" in fields:
                new_name = fields["name"] or ""
                self._validate_profile(name=new_name)
                new_name = new_name.strip()
                if self._name_taken(new_name, exclude_id=community.id):
                    raise MembershipError(ErrorCode.NAME_TAKEN)
                community.name = new_name
                community.name_key = normalize_name(new_name)
            if "description" in fields:
                self._validate_profile(description=fields["description"])
                community.description = fields["description"] or None
            if "visibility" in fields:
                community.visibility = _coerce(Visibility, fields["visibility"], "visibility")
            if "image_url" in fields:
                community.image_url = fields["image_url"]
            if "cover_image_url" in fields:
                community.cover_image_url = fields["cover_image_url"]

            self._flush(ErrorCode.NAME_TAKEN)
            logger.info(
                "User %d updated community %d fields=%s",
                actor.id,
                community.id,
                sorted(fields),
            )
            return community

        return self._run("update_community", work, conflict=ErrorCode.NAME_TAKEN)

    def delete_community(self, actor_id: int | None, community_id: int) -> ServiceResult[None]:
        """Delete a community along with its memberships, requests and invitations."""

        def work() -> None:
            actor = self._require_actor(actor_id)
            community = self._get_community(community_id)
            self._require_permission(self._role_of(actor.id, community.id), Action.DELETE_COMMUNITY)
            self.db.delete(community)
            self.db.flush()
            logger.info("User %d deleted community %d", actor.id, community_id)

        return self._run("delete_community", work)

    # ------------------------------------------------------------------
    # Joining and leaving
    # ------------------------------------------------------------------
    def join_community(self, actor_id: int | None, community_id: int) -> ServiceResult[JoinOutcome]:
        """Join a public community or file a join request for a private one."""

        def work() -> JoinOutcome:
            actor = self._require_actor(actor_id)
            community = self._get_community(community_id)
            if self._get_membership(actor.id, community.id) is not None:
                raise MembershipError(ErrorCode.ALREADY_MEMBER)

            if community.visibility is Visibility.PUBLIC:
                membership = self._add_membership(actor.id, community.id)
                logger.info("User %d joined community %d", actor.id, community.id)
                return JoinOutcome(status="joined", membership=membership)

            request = self.db.scalars(
                select(JoinRequest).where(
                    JoinRequest.community_id == community.id,
                    JoinRequest.user_id == actor.id,
                )
            ).first()
            if request is not None and request.status is RequestStatus.PENDING:
                raise MembershipError(ErrorCode.ALREADY_REQUESTED)
            if request is None:
                request = JoinRequest(community_id=community.id, user_id=actor.id)
                self.db.add(request)
            else:
                # Answered requests are reopened in place.
                request.status = RequestStatus.PENDING
            self._flush(ErrorCode.ALREADY_REQUESTED)
            logger.info("User %d requested to join community %d", actor.id, community.id)
            return JoinOutcome(status="requested", join_request=request)

        return self._run("join_community", work, conflict=ErrorCode.ALREADY_MEMBER)

    def leave_community(self, actor_id: int | None, community_id: int) -> ServiceResult[None]:
        """Remove the actor's own membership unless they are the last ADMIN."""

        def work() -> None:
            actor = self._require_actor(actor_id)
            membership = self._get_membership(actor.id, community_id)
            if membership is None:
                raise MembershipError(ErrorCode.NOT_A_MEMBER)
            if membership.role is Role.ADMIN:
                self._guard_last_admin(community_id, ErrorCode.LAST_ADMIN_CANNOT_LEAVE)

            self.db.delete(membership)
            self._verify_admin_remains(community_id, ErrorCode.LAST_ADMIN_CANNOT_LEAVE)
            logger.info("User %d left community %d", actor.id, community_id)

        return self._run("leave_community", work)

    def get_membership_status(
        self, actor_id: int | None, community_id: int
    ) -> ServiceResult[MembershipStatus]:
        """Report the actor's role, join request state and pending invitation."""

        def work() -> MembershipStatus:
            actor = self._require_actor(actor_id)
            community = self._get_community(community_id)
            status = MembershipStatus(community_id=community.id)
            status.role = self._role_of(actor.id, community.id)
            request_status = self.db.scalar(
                select(JoinRequest.status).where(
                    JoinRequest.community_id == community.id,
                    JoinRequest.user_id == actor.id,
                )
            )
            status.join_request_status = request_status
            status.pending_invitation_id = self.db.scalar(
                select(CommunityInvitation.id).where(
                    CommunityInvitation.community_id == community.id,
                    CommunityInvitation.invitee_id == actor.id,
                    CommunityInvitation.status == RequestStatus.PENDING,
                )
            )
            return status

        return self._run("get_membership_status", work)

    # ------------------------------------------------------------------
    # Roles and removal
    # ------------------------------------------------------------------
    def update_member_role(
        self,
        actor_id: int | None,
        community_id: int,
        member_id: int,
        new_role: Role | str,
    ) -> ServiceResult[CommunityMember]:
        """Change a member's role; ADMIN only, never demoting the last ADMIN."""

        def work() -> CommunityMember:
            actor = self._require_actor(actor_id)
            role = _coerce(Role, new_role, "role")
            self._get_community(community_id)
            self._require_permission(self._role_of(actor.id, community_id), Action.CHANGE_ROLE)
            target = self._get_target_member(community_id, member_id)

            if target.role is role:
                return target
            if target.role is Role.ADMIN:
                self._guard_last_admin(community_id, ErrorCode.LAST_ADMIN_INVARIANT)

            previous = target.role
            target.role = role
            self._verify_admin_remains(community_id, ErrorCode.LAST_ADMIN_INVARIANT)
            logger.info(
                "User %d changed member %d in community %d from %s to %s",
                actor.id,
                target.id,
                community_id,
                previous.value,
                role.value,
            )
            return target

        return self._run("update_member_role", work)

    def remove_member(
        self, actor_id: int | None, community_id: int, member_id: int
    ) -> ServiceResult[None]:
        """Remove a member; moderators may only remove USER-role members."""

        def work() -> None:
            actor = self._require_actor(actor_id)
            self._get_community(community_id)
            actor_role = self._role_of(actor.id, community_id)
            if not authorization.is_staff(actor_role):
                raise MembershipError(ErrorCode.NOT_AUTHORIZED)
            target = self._get_target_member(community_id, member_id)
            self._require_permission(
                actor_role,
                Action.REMOVE_MEMBER,
                target.role,
                code=ErrorCode.INSUFFICIENT_ROLE,
            )
            if target.role is Role.ADMIN:
                self._guard_last_admin(community_id, ErrorCode.LAST_ADMIN_INVARIANT)

            self.db.delete(target)
            self._verify_admin_remains(community_id, ErrorCode.LAST_ADMIN_INVARIANT)
            logger.info(
                "User %d removed member %d from community %d", actor.id, member_id, community_id
            )

        return self._run("remove_member", work)

    def list_members(
        self,
        actor_id: int | None,
        community_id: int,
        search: str | None = None,
        cursor: int | None = None,
        limit: int | None = None,
    ) -> ServiceResult[Page[CommunityMember]]:
        """List memberships newest first; private communities are members-only."""

        def work() -> Page[CommunityMember]:
            actor = self._require_actor(actor_id)
            community = self._get_community(community_id)
            self._ensure_can_view(community, actor.id)
            page_size = settings.clamp_page_size(limit)

            stmt = (
                select(CommunityMember)
                .join(User, User.id == CommunityMember.user_id)
                .where(CommunityMember.community_id == community.id)
            )
            if search:
                pattern = f"%{_escape_like(search.strip())}%"
                stmt = stmt.where(
                    or_(
                        User.username.ilike(pattern, escape="\\"),
                        User.display_name.ilike(pattern, escape="\\"),
                    )
                )
            if cursor is not None:
                stmt = stmt.where(CommunityMember.id < cursor)
            rows = list(
                self.db.scalars(stmt.order_by(CommunityMember.id.desc()).limit(page_size + 1))
            )
            return _page(rows, page_size)

        return self._run("list_members", work)

    # ------------------------------------------------------------------
    # Join requests
    # ------------------------------------------------------------------
    def handle_join_request(
        self,
        actor_id: int | None,
        request_id: int,
        action: Decision | str,
        community_id: int | None = None,
    ) -> ServiceResult[DecisionOutcome[JoinRequest]]:
        """Accept or reject a pending join request as community staff.

        Accepting flips the request to ACCEPTED and creates the USER membership
        in the same transaction; if either write fails neither is kept.
        """

        def work() -> DecisionOutcome[JoinRequest]:
            actor = self._require_actor(actor_id)
            decision = _coerce(Decision, action, "action")
            request = self.db.get(JoinRequest, request_id)
            if request is None or (
                community_id is not None and request.community_id != community_id
            ):
                raise MembershipError(ErrorCode.NOT_FOUND, "Join request not found")
            self._require_permission(
                self._role_of(actor.id, request.community_id), Action.HANDLE_JOIN_REQUEST
            )
            if request.status is not RequestStatus.PENDING:
                raise MembershipError(ErrorCode.ALREADY_PROCESSED)

            if decision is Decision.REJECT:
                request.status = RequestStatus.REJECTED
                self.db.flush()
                logger.info("User %d rejected join request %d", actor.id, request.id)
                return DecisionOutcome(record=request)

            request.status = RequestStatus.ACCEPTED
            membership = self._get_membership(request.user_id, request.community_id)
            if membership is None:
                membership = self._add_membership(request.user_id, request.community_id)
            self.db.flush()
            logger.info(
                "User %d accepted join request %d; user %d joined community %d",
                actor.id,
                request.id,
                request.user_id,
                request.community_id,
            )
            return DecisionOutcome(record=request, membership=membership)

        return self._run("handle_join_request", work, conflict=ErrorCode.ALREADY_MEMBER)

    def cancel_join_request(self, actor_id: int | None, community_id: int) -> ServiceResult[None]:
        """Withdraw the actor's own pending join request."""

        def work() -> None:
            actor = self._require_actor(actor_id)
            request = self.db.scalars(
                select(JoinRequest).where(
                    JoinRequest.community_id == community_id,
                    JoinRequest.user_id == actor.id,
                    JoinRequest.status == RequestStatus.PENDING,
                )
            ).first()
            if request is None or not authorization.is_permitted(
                None, Action.CANCEL_JOIN_REQUEST, acting_on_self=request.user_id == actor.id
            ):
                raise MembershipError(ErrorCode.NO_PENDING_REQUEST)
            self.db.delete(request)
            self.db.flush()
            logger.info("User %d cancelled join request for community %d", actor.id, community_id)

        return self._run("cancel_join_request", work)

    def list_join_requests(
        self,
        actor_id: int | None,
        community_id: int,
        status: RequestStatus | str = RequestStatus.PENDING,
        cursor: int | None = None,
        limit: int | None = None,
    ) -> ServiceResult[Page[JoinRequest]]:
        """List join requests for staff, oldest first."""

        def work() -> Page[JoinRequest]:
            actor = self._require_actor(actor_id)
            wanted = _coerce(RequestStatus, status, "status")
            self._get_community(community_id)
            self._require_permission(
                self._role_of(actor.id, community_id), Action.VIEW_JOIN_REQUESTS
            )
            page_size = settings.clamp_page_size(limit)
            stmt = select(JoinRequest).where(
                JoinRequest.community_id == community_id,
                JoinRequest.status == wanted,
            )
            if cursor is not None:
                stmt = stmt.where(JoinRequest.id > cursor)
            rows = list(self.db.scalars(stmt.order_by(JoinRequest.id).limit(page_size + 1)))
            return _page(rows, page_size)

        return self._run("list_join_requests", work)

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------
    def invite_user(
        self, actor_id: int | None, community_id: int, username: str
    ) -> ServiceResult[CommunityInvitation]:
        """Invite a user by username, re-opening an answered invitation if one exists."""

        def work() -> CommunityInvitation:
            actor = self._require_actor(actor_id)
            self._get_community(community_id)
            self._require_permission(self._role_of(actor.id, community_id), Action.INVITE)
            invitee = get_user_by_username(self.db, username or "")
            if invitee is None:
                raise MembershipError(ErrorCode.USER_NOT_FOUND)
            return self._issue_invitation(actor.id, community_id, invitee)

        return self._run("invite_user", work, conflict=ErrorCode.ALREADY_INVITED)

    def invite_user_id(
        self, actor_id: int | None, community_id: int, invitee_id: int
    ) -> ServiceResult[CommunityInvitation]:
        """Invite a user whose username was already resolved, e.g. by a bulk batch."""

        def work() -> CommunityInvitation:
            actor = self._require_actor(actor_id)
            self._get_community(community_id)
            self._require_permission(self._role_of(actor.id, community_id), Action.INVITE)
            invitee = get_user(self.db, invitee_id)
            if invitee is None:
                raise MembershipError(ErrorCode.USER_NOT_FOUND)
            return self._issue_invitation(actor.id, community_id, invitee)

        return self._run("invite_user_id", work, conflict=ErrorCode.ALREADY_INVITED)

    def _issue_invitation(
        self, actor_id: int, community_id: int, invitee: User
    ) -> CommunityInvitation:
        if self._get_membership(invitee.id, community_id) is not None:
            raise MembershipError(ErrorCode.ALREADY_MEMBER)

        invitation = self.db.scalars(
            select(CommunityInvitation).where(
                CommunityInvitation.community_id == community_id,
                CommunityInvitation.invitee_id == invitee.id,
            )
        ).first()
        if invitation is not None and invitation.status is RequestStatus.PENDING:
            raise MembershipError(ErrorCode.ALREADY_INVITED)
        if invitation is None:
            invitation = CommunityInvitation(
                community_id=community_id,
                inviter_id=actor_id,
                invitee_id=invitee.id,
            )
            self.db.add(invitation)
        else:
            invitation.status = RequestStatus.PENDING
            invitation.inviter_id = actor_id
        self._flush(ErrorCode.ALREADY_INVITED)
        logger.info(
            "User %d invited %s to community %d (invitation %d)",
            actor_id,
            invitee.username,
            community_id,
            invitation.id,
        )
        return invitation

    def handle_invitation(
        self, actor_id: int | None, invitation_id: int, action: Decision | str
    ) -> ServiceResult[DecisionOutcome[CommunityInvitation]]:
        """Accept or reject an invitation addressed to the actor."""

        def work() -> DecisionOutcome[CommunityInvitation]:
            actor = self._require_actor(actor_id)
            decision = _coerce(Decision, action, "action")
            invitation = self.db.get(CommunityInvitation, invitation_id)
            if invitation is None:
                raise MembershipError(ErrorCode.NOT_FOUND, "Invitation not found")
            if invitation.invitee_id != actor.id:
                raise MembershipError(ErrorCode.NOT_AUTHORIZED)
            if invitation.status is not RequestStatus.PENDING:
                raise MembershipError(ErrorCode.ALREADY_PROCESSED)

            if decision is Decision.REJECT:
                invitation.status = RequestStatus.REJECTED
                self.db.flush()
                logger.info("User %d declined invitation %d", actor.id, invitation.id)
                return DecisionOutcome(record=invitation)

            invitation.status = RequestStatus.ACCEPTED
            membership = self._get_membership(actor.id, invitation.community_id)
            if membership is None:
                membership = self._add_membership(actor.id, invitation.community_id)
            self.db.flush()
            logger.info(
                "User %d accepted invitation %d to community %d",
                actor.id,
                invitation.id,
                invitation.community_id,
            )
            return DecisionOutcome(record=invitation, membership=membership)

        return self._run("handle_invitation", work, conflict=ErrorCode.ALREADY_MEMBER)

    def revoke_invitation(self, actor_id: int | None, invitation_id: int) -> ServiceResult[None]:
        """Delete an invitation; allowed for the invitee and for community staff."""

        def work() -> None:
            actor = self._require_actor(actor_id)
            invitation = self.db.get(CommunityInvitation, invitation_id)
            if invitation is None:
                raise MembershipError(ErrorCode.NOT_FOUND, "Invitation not found")
            if invitation.invitee_id != actor.id:
                self._require_permission(
                    self._role_of(actor.id, invitation.community_id), Action.REVOKE_INVITATION
                )
            self.db.delete(invitation)
            self.db.flush()
            logger.info("User %d deleted invitation %d", actor.id, invitation_id)

        return self._run("revoke_invitation", work)

    def list_invitations(
        self,
        actor_id: int | None,
        status: RequestStatus | str = RequestStatus.PENDING,
        cursor: int | None = None,
        limit: int | None = None,
    ) -> ServiceResult[Page[CommunityInvitation]]:
        """List invitations addressed to the actor, newest first."""

        def work() -> Page[CommunityInvitation]:
            actor = self._require_actor(actor_id)
            wanted = _coerce(RequestStatus, status, "status")
            page_size = settings.clamp_page_size(limit)
            stmt = select(CommunityInvitation).where(
                CommunityInvitation.invitee_id == actor.id,
                CommunityInvitation.status == wanted,
            )
            if cursor is not None:
                stmt = stmt.where(CommunityInvitation.id < cursor)
            rows = list(
                self.db.scalars(
                    stmt.order_by(CommunityInvitation.id.desc()).limit(page_size + 1)
                )
            )
            return _page(rows, page_size)

        return self._run("list_invitations", work)

    def invitation_stats(
        self, actor_id: int | None, community_id: int
    ) -> ServiceResult[InvitationStats]:
        """Count a community's invitations by status."""

        def work() -> InvitationStats:
            actor = self._require_actor(actor_id)
            self._get_community(community_id)
            self._require_permission(
                self._role_of(actor.id, community_id), Action.VIEW_INVITATION_STATS
            )
            rows = self.db.execute(
                select(CommunityInvitation.status, func.count(CommunityInvitation.id))
                .where(CommunityInvitation.community_id == community_id)
                .group_by(CommunityInvitation.status)
            ).all()
            counts = {status: count for status, count in rows}
            return InvitationStats(
                pending=counts.get(RequestStatus.PENDING, 0),
                accepted=counts.get(RequestStatus.ACCEPTED, 0),
                rejected=counts.get(RequestStatus.REJECTED, 0),
            )

        return self._run("invitation_stats", work)

    def require_staff(self, actor_id: int | None, community_id: int) -> ServiceResult[Role]:
        """Check that the actor may invite into ``community_id`` and return their role."""

        def work() -> Role:
            actor = self._require_actor(actor_id)
            self._get_community(community_id)
            role = self._role_of(actor.id, community_id)
            self._require_permission(role, Action.INVITE)
            return role  # type: ignore[return-value]

        return self._run("require_staff", work)


def _page(rows: list[T], page_size: int) -> Page[T]:
    has_more = len(rows) > page_size
    items = rows[:page_size]
    next_cursor = getattr(items[-1], "id", None) if has_more and items else None
    return Page(items=items, next_cursor=next_cursor, has_more=has_more)


def _escape_like(term: str) -> str:
    """Make ``%`` and ``_`` in ``term`` match literally under ``escape="\\"``."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
