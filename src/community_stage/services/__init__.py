"""Business logic services for the Community Stage application."""

from .bulk_invite import BulkInvitationOrchestrator, BulkInviteOutcome
from .errors import ErrorCode, ErrorKind, MembershipError, ServiceError, ServiceResult
from .membership import Decision, MembershipService

__all__ = [
    "BulkInvitationOrchestrator", "BulkInviteOutcome",
    "Decision",
    "ErrorCode", "ErrorKind", "MembershipError", "ServiceError", "ServiceResult",
    "MembershipService",
]
