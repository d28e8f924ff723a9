"""Authorization guard for community actions.

Pure functions only: callers pass the roles they loaded and receive a boolean.
Turning a denial into an error is the membership service's job.
"""

from __future__ import annotations

from enum import Enum

from community_stage.models import Role

ROLE_RANK: dict[Role, int] = {
    Role.USER: 1,
    Role.MODERATOR: 2,
    Role.ADMIN: 3,
}


class Action(str, Enum):
    """Actions gated by the guard."""

    CHANGE_ROLE = "change_role"
    UPDATE_COMMUNITY = "update_community"
    DELETE_COMMUNITY = "delete_community"
    INVITE = "invite"
    REVOKE_INVITATION = "revoke_invitation"
    HANDLE_JOIN_REQUEST = "handle_join_request"
    VIEW_JOIN_REQUESTS = "view_join_requests"
    VIEW_INVITATION_STATS = "view_invitation_stats"
    REMOVE_MEMBER = "remove_member"
    LEAVE = "leave"
    CANCEL_JOIN_REQUEST = "cancel_join_request"


ADMIN_ONLY = frozenset({
    Action.CHANGE_ROLE,
    Action.UPDATE_COMMUNITY,
    Action.DELETE_COMMUNITY,
})

STAFF_ACTIONS = frozenset({
    Action.INVITE,
    Action.REVOKE_INVITATION,
    Action.HANDLE_JOIN_REQUEST,
    Action.VIEW_JOIN_REQUESTS,
    Action.VIEW_INVITATION_STATS,
    Action.REMOVE_MEMBER,
})

SELF_ACTIONS = frozenset({Action.LEAVE, Action.CANCEL_JOIN_REQUEST})


def rank(role: Role | None) -> int:
    """Return the position of ``role`` in the hierarchy; 0 for non-members."""
    if role is None:
        return 0
    return ROLE_RANK[role]


def outranks(actor_role: Role | None, target_role: Role | None) -> bool:
    """True when ``actor_role`` sits strictly above ``target_role``."""
    return rank(actor_role) > rank(target_role)


def is_staff(role: Role | None) -> bool:
    """True for moderators and admins."""
    return rank(role) >= ROLE_RANK[Role.MODERATOR]


def is_permitted(
    actor_role: Role | None,
    action: Action,
    target_role: Role | None = None,
    *,
    acting_on_self: bool = False,
) -> bool:
    """Decide whether an actor holding ``actor_role`` may perform ``action``.

    Args:
        actor_role: The actor's role in the community, or None for non-members.
        action: The action being attempted.
        target_role: Role of the membership being acted on, when there is one.
        acting_on_self: True when the actor targets their own membership or request.

    Returns:
        True if the action is allowed.
    """
    if action in SELF_ACTIONS:
        return acting_on_self

    if action in ADMIN_ONLY:
        return actor_role is Role.ADMIN

    if action is Action.REMOVE_MEMBER:
        if actor_role is Role.ADMIN:
            return True
        # Moderators may only remove members ranked below them.
        return (
            actor_role is Role.MODERATOR
            and target_role is not None
            and outranks(actor_role, target_role)
        )

    if action in STAFF_ACTIONS:
        return is_staff(actor_role)

    return False
