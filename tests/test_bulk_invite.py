# mypy: ignore-errors
"""Tests for the bulk invitation orchestrator."""

import threading
import time

from sqlalchemy import func, select

from community_stage.models import CommunityInvitation
from community_stage.services import bulk_invite, membership
from community_stage.services.bulk_invite import (
    ALREADY_INVITED,
    ALREADY_MEMBERS,
    INVITED,
    NOT_FOUND,
    BulkInvitationOrchestrator,
    dedupe_usernames,
)
from community_stage.services.errors import ErrorCode
from community_stage.services.membership import MembershipService
from community_stage.services.user_service import get_users_by_usernames


def _orchestrator(session_factory, workers: int = 1) -> BulkInvitationOrchestrator:
    return BulkInvitationOrchestrator(session_factory, max_workers=workers)


def test_dedupe_usernames_normalizes() -> None:
    assert dedupe_usernames(["Alice", "alice ", "", "BOB", "bob", None]) == ["alice", "bob"]


def test_classifies_every_target(service, session_factory, community, admin_user, make_user) -> None:
    alice = make_user("alice")
    make_user("bob")
    make_user("dave")
    assert service.join_community(alice.id, community.id).success
    assert service.invite_user(admin_user.id, community.id, "bob").success

    result = _orchestrator(session_factory).invite(
        admin_user.id, community.id, ["alice", "bob", "carol", "dave"]
    )

    assert result.success
    outcome = result.data
    assert outcome.invited == ["dave"]
    assert outcome.already_members == ["alice"]
    assert outcome.already_invited == ["bob"]
    assert outcome.not_found == ["carol"]
    assert outcome.failed == []
    assert [inv.username for inv in outcome.invitations] == ["dave"]
    assert outcome.total == 4
    assert outcome.invited_count == 1


def test_too_many_targets_creates_nothing(db_session, session_factory, community, admin_user, make_user) -> None:
    names = [f"user_{i:02d}" for i in range(51)]
    for name in names[:3]:
        make_user(name)

    result = _orchestrator(session_factory).invite(admin_user.id, community.id, names)

    assert result.error_code is ErrorCode.TOO_MANY_TARGETS
    assert result.error.details == {"limit": 50, "received": 51}
    assert db_session.scalar(select(func.count(CommunityInvitation.id))) == 0


def test_duplicates_are_processed_once(db_session, session_factory, community, admin_user, make_user) -> None:
    make_user("erin")

    result = _orchestrator(session_factory).invite(
        admin_user.id, community.id, ["erin", "ERIN", " erin "]
    )

    assert result.data.invited == ["erin"]
    assert result.data.already_invited == []
    assert db_session.scalar(select(func.count(CommunityInvitation.id))) == 1


def test_empty_list_is_rejected(session_factory, community, admin_user) -> None:
    result = _orchestrator(session_factory).invite(admin_user.id, community.id, ["", "  "])
    assert result.error_code is ErrorCode.VALIDATION_ERROR


def test_actor_must_be_staff(session_factory, service, community, test_user, make_user) -> None:
    make_user("frank")
    assert service.join_community(test_user.id, community.id).success

    result = _orchestrator(session_factory).invite(test_user.id, community.id, ["frank"])

    assert result.error_code is ErrorCode.NOT_AUTHORIZED


def test_unknown_community(session_factory, admin_user) -> None:
    result = _orchestrator(session_factory).invite(admin_user.id, 9999, ["anyone"])
    assert result.error_code is ErrorCode.NOT_FOUND


def test_usernames_resolved_in_one_query(session_factory, community, admin_user, make_user, mocker) -> None:
    make_user("hana")
    make_user("ivan")
    batch_lookup = mocker.patch.object(
        bulk_invite, "get_users_by_usernames", wraps=get_users_by_usernames
    )
    single_lookup = mocker.spy(membership, "get_user_by_username")
    invite_one = mocker.spy(BulkInvitationOrchestrator, "_invite_one")

    result = _orchestrator(session_factory).invite(
        admin_user.id, community.id, ["hana", "ivan", "nobody", "ghost"]
    )

    assert result.data.invited == ["hana", "ivan"]
    assert result.data.not_found == ["ghost", "nobody"]
    batch_lookup.assert_called_once()
    single_lookup.assert_not_called()
    assert sorted(call.args[3] for call in invite_one.call_args_list) == ["hana", "ivan"]


def test_all_unknown_skips_workers(session_factory, community, admin_user, mocker) -> None:
    invite_one = mocker.spy(BulkInvitationOrchestrator, "_invite_one")

    result = _orchestrator(session_factory).invite(admin_user.id, community.id, ["ghost", "nobody"])

    assert result.data.not_found == ["ghost", "nobody"]
    assert result.data.invited_count == 0
    assert result.data.total == 2
    invite_one.assert_not_called()


def test_targets_run_in_parallel_and_aggregate(session_factory, community, admin_user, make_user, mocker) -> None:
    running = 0
    peak = 0
    lock = threading.Lock()
    buckets = {
        "t_invited": (INVITED, 11),
        "t_member": (ALREADY_MEMBERS, None),
        "t_pending": (ALREADY_INVITED, None),
        "t_gone": (NOT_FOUND, None),
    }
    for name in (*buckets, "t_broken"):
        make_user(name)

    def fake_invite_one(self, actor_id, community_id, username, user_id):
        nonlocal running, peak
        with lock:
            running += 1
            peak = max(peak, running)
        time.sleep(0.05)
        with lock:
            running -= 1
        if username == "t_broken":
            raise RuntimeError("worker crashed")
        return buckets[username]

    mocker.patch.object(BulkInvitationOrchestrator, "_invite_one", fake_invite_one)

    result = _orchestrator(session_factory, workers=4).invite(
        admin_user.id,
        community.id,
        ["t_invited", "t_member", "t_pending", "t_gone", "t_missing", "t_broken"],
    )

    outcome = result.data
    assert outcome.invited == ["t_invited"]
    assert outcome.already_members == ["t_member"]
    assert outcome.already_invited == ["t_pending"]
    # t_gone was deleted between resolution and its worker.
    assert outcome.not_found == ["t_gone", "t_missing"]
    assert outcome.failed == ["t_broken"]
    assert [(inv.id, inv.username) for inv in outcome.invitations] == [(11, "t_invited")]
    assert 1 < peak <= 4


def test_store_failure_lands_in_failed_bucket(session_factory, community, admin_user, make_user, mocker) -> None:
    make_user("gina")
    mocker.patch.object(
        MembershipService,
        "invite_user_id",
        return_value=mocker.Mock(success=False, data=None, error_code=ErrorCode.UNAVAILABLE),
    )

    result = _orchestrator(session_factory).invite(admin_user.id, community.id, ["gina"])

    assert result.data.failed == ["gina"]
    assert result.data.invited == []
