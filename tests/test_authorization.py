"""Tests for the role-based authorization guard."""

import pytest

from community_stage.models import Role
from community_stage.services.authorization import (
    Action,
    is_permitted,
    is_staff,
    outranks,
    rank,
)


def test_rank_orders_roles() -> None:
    assert rank(None) == 0
    assert rank(Role.USER) < rank(Role.MODERATOR) < rank(Role.ADMIN)
    assert outranks(Role.ADMIN, Role.MODERATOR)
    assert not outranks(Role.MODERATOR, Role.MODERATOR)


def test_is_staff() -> None:
    assert is_staff(Role.ADMIN)
    assert is_staff(Role.MODERATOR)
    assert not is_staff(Role.USER)
    assert not is_staff(None)


@pytest.mark.parametrize(
    "action",
    [Action.CHANGE_ROLE, Action.UPDATE_COMMUNITY, Action.DELETE_COMMUNITY],
)
def test_admin_only_actions(action: Action) -> None:
    assert is_permitted(Role.ADMIN, action)
    assert not is_permitted(Role.MODERATOR, action)
    assert not is_permitted(Role.USER, action)
    assert not is_permitted(None, action)


@pytest.mark.parametrize(
    "action",
    [
        Action.INVITE,
        Action.REVOKE_INVITATION,
        Action.HANDLE_JOIN_REQUEST,
        Action.VIEW_JOIN_REQUESTS,
        Action.VIEW_INVITATION_STATS,
    ],
)
def test_staff_actions(action: Action) -> None:
    assert is_permitted(Role.ADMIN, action)
    assert is_permitted(Role.MODERATOR, action)
    assert not is_permitted(Role.USER, action)
    assert not is_permitted(None, action)


@pytest.mark.parametrize(
    ("actor", "target", "allowed"),
    [
        (Role.ADMIN, Role.ADMIN, True),
        (Role.ADMIN, Role.MODERATOR, True),
        (Role.ADMIN, Role.USER, True),
        (Role.MODERATOR, Role.ADMIN, False),
        (Role.MODERATOR, Role.MODERATOR, False),
        (Role.MODERATOR, Role.USER, True),
        (Role.USER, Role.USER, False),
        (None, Role.USER, False),
        (Role.MODERATOR, None, False),
    ],
)
def test_remove_member_matrix(actor: Role | None, target: Role | None, allowed: bool) -> None:
    assert is_permitted(actor, Action.REMOVE_MEMBER, target) is allowed


def test_self_actions_require_acting_on_self() -> None:
    for action in (Action.LEAVE, Action.CANCEL_JOIN_REQUEST):
        assert is_permitted(Role.USER, action, acting_on_self=True)
        assert is_permitted(None, action, acting_on_self=True)
        assert not is_permitted(Role.ADMIN, action)
