"""Bulk invitations: one capped batch of usernames, one aggregate result."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from community_stage.core.settings import settings
from community_stage.services.errors import ErrorCode, ServiceResult
from community_stage.services.membership import MembershipService
from community_stage.services.user_service import get_users_by_usernames, normalize_username

logger = logging.getLogger(__name__)

INVITED = "invited"
ALREADY_MEMBERS = "already_members"
ALREADY_INVITED = "already_invited"
NOT_FOUND = "not_found"
FAILED = "failed"

_BUCKET_BY_CODE = {
    ErrorCode.ALREADY_MEMBER: ALREADY_MEMBERS,
    ErrorCode.ALREADY_INVITED: ALREADY_INVITED,
    ErrorCode.USER_NOT_FOUND: NOT_FOUND,
}


@dataclass
class CreatedInvitation:
    """An invitation created by a batch."""

    id: int
    username: str


@dataclass
class BulkInviteOutcome:
    """Per-bucket classification of a batch; every target lands in exactly one bucket."""

    invited: list[str] = field(default_factory=list)
    already_members: list[str] = field(default_factory=list)
    already_invited: list[str] = field(default_factory=list)
    not_found: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    invitations: list[CreatedInvitation] = field(default_factory=list)

    @property
    def invited_count(self) -> int:
        """Number of invitations created or re-opened."""
        return len(self.invited)

    @property
    def total(self) -> int:
        """Number of distinct targets classified."""
        return (
            len(self.invited)
            + len(self.already_members)
            + len(self.already_invited)
            + len(self.not_found)
            + len(self.failed)
        )

    def sort(self) -> None:
        """Order every bucket so results do not depend on completion order."""
        for bucket in (
            self.invited,
            self.already_members,
            self.already_invited,
            self.not_found,
            self.failed,
        ):
            bucket.sort()
        self.invitations.sort(key=lambda item: item.username)


def dedupe_usernames(usernames: Iterable[str]) -> list[str]:
    """Normalize usernames and drop blanks and repeats, keeping first-seen order."""
    seen: dict[str, None] = {}
    for name in usernames:
        key = normalize_username(name or "")
        if key:
            seen.setdefault(key, None)
    return list(seen)


class BulkInvitationOrchestrator:
    """Runs :meth:`MembershipService.invite_user_id` for many usernames.

    Usernames are resolved in a single query before any work starts; unknown
    names go straight to ``not_found``. Each resolved target gets its own
    session and transaction, so one failure never rolls back another target's
    invitation. Targets run on a bounded thread pool; no ordering between them
    is guaranteed.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        max_workers: int | None = None,
        max_targets: int | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.max_workers = max_workers or settings.bulk_invite_max_workers
        self.max_targets = max_targets or settings.bulk_invite_max_targets

    def invite(
        self, actor_id: int | None, community_id: int, usernames: list[str]
    ) -> ServiceResult[BulkInviteOutcome]:
        """Invite every username in ``usernames`` to ``community_id``.

        Args:
            actor_id: The inviting user; must be ADMIN or MODERATOR.
            community_id: Target community.
            usernames: Raw usernames, at most ``max_targets`` of them.

        Returns:
            A result whose payload classifies each distinct username. The
            whole batch fails only for authentication, authorization, a
            missing community, or an empty or oversized list.
        """
        if len(usernames) > self.max_targets:
            logger.info(
                "Rejected bulk invite of %d usernames to community %d (limit %d)",
                len(usernames),
                community_id,
                self.max_targets,
            )
            return ServiceResult.failure(
                ErrorCode.TOO_MANY_TARGETS,
                f"You can invite at most {self.max_targets} users at once",
                details={"limit": self.max_targets, "received": len(usernames)},
            )

        targets = dedupe_usernames(usernames)
        if not targets:
            return ServiceResult.failure(
                ErrorCode.VALIDATION_ERROR, "At least one username is required"
            )

        with self.session_factory() as session:
            allowed = MembershipService(session).require_staff(actor_id, community_id)
            if not allowed.success:
                return ServiceResult(success=False, error=allowed.error)
            resolved = {
                username: user.id
                for username, user in get_users_by_usernames(session, targets).items()
            }

        outcome = BulkInviteOutcome()
        outcome.not_found.extend(name for name in targets if name not in resolved)
        if resolved:
            self._run_pool(actor_id, community_id, resolved, outcome)

        outcome.sort()
        logger.info(
            "Bulk invite to community %d by user %s: invited=%d members=%d pending=%d "
            "unknown=%d failed=%d",
            community_id,
            actor_id,
            len(outcome.invited),
            len(outcome.already_members),
            len(outcome.already_invited),
            len(outcome.not_found),
            len(outcome.failed),
        )
        return ServiceResult.ok(outcome)

    def _run_pool(
        self,
        actor_id: int | None,
        community_id: int,
        resolved: dict[str, int],
        outcome: BulkInviteOutcome,
    ) -> None:
        workers = min(self.max_workers, len(resolved))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_username = {
                executor.submit(self._invite_one, actor_id, community_id, username, user_id): username
                for username, user_id in resolved.items()
            }
            for future in as_completed(future_to_username):
                username = future_to_username[future]
                try:
                    bucket, invitation_id = future.result()
                except Exception:  # pylint: disable=broad-except
                    logger.exception("Bulk invite of %s to community %d crashed", username, community_id)
                    bucket, invitation_id = FAILED, None
                getattr(outcome, bucket).append(username)
                if invitation_id is not None:
                    outcome.invitations.append(CreatedInvitation(id=invitation_id, username=username))

    def _invite_one(
        self, actor_id: int | None, community_id: int, username: str, user_id: int
    ) -> tuple[str, int | None]:
        with self.session_factory() as session:
            result = MembershipService(session).invite_user_id(actor_id, community_id, user_id)
            if result.success and result.data is not None:
                return INVITED, result.data.id
        code = result.error_code
        bucket = _BUCKET_BY_CODE.get(code, FAILED) if code else FAILED
        if bucket == FAILED:
            logger.warning("Bulk invite of %s to community %d failed: %s", username, community_id, code)
        return bucket, None
