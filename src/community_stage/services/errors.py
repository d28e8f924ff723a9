"""Result and error types returned by the membership services.

Service operations never raise to their callers. Each one returns a
:class:`ServiceResult` carrying either a payload or a :class:`ServiceError`
whose :class:`ErrorCode` belongs to exactly one :class:`ErrorKind`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Coarse error families callers branch on."""

    NOT_AUTHENTICATED = "NotAuthenticated"
    NOT_AUTHORIZED = "NotAuthorized"
    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    INVARIANT_VIOLATION = "InvariantViolation"
    VALIDATION_ERROR = "ValidationError"
    USER_NOT_FOUND = "UserNotFound"
    UNAVAILABLE = "Unavailable"


class ErrorCode(str, Enum):
    """Specific failure reasons, each mapped to one kind and one message."""

    NOT_AUTHENTICATED = "NotAuthenticated"
    NOT_AUTHORIZED = "NotAuthorized"
    INSUFFICIENT_ROLE = "InsufficientRole"
    NOT_FOUND = "NotFound"
    NOT_A_MEMBER = "NotAMember"
    NO_PENDING_REQUEST = "NoPendingRequest"
    NAME_TAKEN = "NameTaken"
    USERNAME_TAKEN = "UsernameTaken"
    ALREADY_MEMBER = "AlreadyMember"
    ALREADY_REQUESTED = "AlreadyRequested"
    ALREADY_INVITED = "AlreadyInvited"
    ALREADY_PROCESSED = "AlreadyProcessed"
    LAST_ADMIN_CANNOT_LEAVE = "LastAdminCannotLeave"
    LAST_ADMIN_INVARIANT = "LastAdminInvariant"
    VALIDATION_ERROR = "ValidationError"
    TOO_MANY_TARGETS = "TooManyTargets"
    USER_NOT_FOUND = "UserNotFound"
    UNAVAILABLE = "Unavailable"

    @property
    def kind(self) -> ErrorKind:
        """Return the family this code belongs to."""
        return _KINDS[self]

    @property
    def message(self) -> str:
        """Return the default user-facing message for this code."""
        return _MESSAGES[self]


_KINDS: dict[ErrorCode, ErrorKind] = {
    ErrorCode.NOT_AUTHENTICATED: ErrorKind.NOT_AUTHENTICATED,
    ErrorCode.NOT_AUTHORIZED: ErrorKind.NOT_AUTHORIZED,
    ErrorCode.INSUFFICIENT_ROLE: ErrorKind.NOT_AUTHORIZED,
    ErrorCode.NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.NOT_A_MEMBER: ErrorKind.NOT_FOUND,
    ErrorCode.NO_PENDING_REQUEST: ErrorKind.NOT_FOUND,
    ErrorCode.NAME_TAKEN: ErrorKind.CONFLICT,
    ErrorCode.USERNAME_TAKEN: ErrorKind.CONFLICT,
    ErrorCode.ALREADY_MEMBER: ErrorKind.CONFLICT,
    ErrorCode.ALREADY_REQUESTED: ErrorKind.CONFLICT,
    ErrorCode.ALREADY_INVITED: ErrorKind.CONFLICT,
    ErrorCode.ALREADY_PROCESSED: ErrorKind.CONFLICT,
    ErrorCode.LAST_ADMIN_CANNOT_LEAVE: ErrorKind.INVARIANT_VIOLATION,
    ErrorCode.LAST_ADMIN_INVARIANT: ErrorKind.INVARIANT_VIOLATION,
    ErrorCode.VALIDATION_ERROR: ErrorKind.VALIDATION_ERROR,
    ErrorCode.TOO_MANY_TARGETS: ErrorKind.VALIDATION_ERROR,
    ErrorCode.USER_NOT_FOUND: ErrorKind.USER_NOT_FOUND,
    ErrorCode.UNAVAILABLE: ErrorKind.UNAVAILABLE,
}

_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.NOT_AUTHENTICATED: "Sign in to continue.",
    ErrorCode.NOT_AUTHORIZED: "You do not have permission to do that in this community.",
    ErrorCode.INSUFFICIENT_ROLE: "Moderators can only remove regular members.",
    ErrorCode.NOT_FOUND: "The requested item could not be found.",
    ErrorCode.NOT_A_MEMBER: "You are not a member of this community.",
    ErrorCode.NO_PENDING_REQUEST: "You have no pending join request for this community.",
    ErrorCode.NAME_TAKEN: "A community with that name already exists.",
    ErrorCode.USERNAME_TAKEN: "That username is already taken.",
    ErrorCode.ALREADY_MEMBER: "The user is already a member of this community.",
    ErrorCode.ALREADY_REQUESTED: "A join request is already pending.",
    ErrorCode.ALREADY_INVITED: "An invitation is already pending for this user.",
    ErrorCode.ALREADY_PROCESSED: "This request has already been answered.",
    ErrorCode.LAST_ADMIN_CANNOT_LEAVE: (
        "Cannot leave: you are the only admin. Transfer ownership first."
    ),
    ErrorCode.LAST_ADMIN_INVARIANT: (
        "This change would leave the community without an admin. Promote another admin first."
    ),
    ErrorCode.VALIDATION_ERROR: "The submitted data is invalid.",
    ErrorCode.TOO_MANY_TARGETS: "Too many users in one batch.",
    ErrorCode.USER_NOT_FOUND: "No user with that username exists.",
    ErrorCode.UNAVAILABLE: "Something went wrong on our side. Please try again.",
}


@dataclass(frozen=True)
class ServiceError:
    """Error half of a :class:`ServiceResult`."""

    code: ErrorCode
    message: str
    details: dict[str, Any] | None = None

    @property
    def kind(self) -> ErrorKind:
        """Return the error family."""
        return self.code.kind

    @property
    def retryable(self) -> bool:
        """True when the caller may retry the same call unchanged."""
        return self.code.kind is ErrorKind.UNAVAILABLE

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly representation."""
        payload: dict[str, Any] = {
            "code": self.code.value,
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Outcome of a service operation.

    Attributes:
        success: True when ``data`` holds the operation's payload.
        data: Payload for successful operations.
        error: Populated when ``success`` is False.
    """

    success: bool
    data: T | None = None
    error: ServiceError | None = None

    @classmethod
    def ok(cls, data: T | None = None) -> ServiceResult[T]:
        """Build a successful result."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        code: ErrorCode,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> ServiceResult[T]:
        """Build a failed result for ``code``."""
        return cls(
            success=False,
            error=ServiceError(code=code, message=message or code.message, details=details),
        )

    @property
    def error_code(self) -> ErrorCode | None:
        """Shortcut to the failure code, if any."""
        return self.error.code if self.error else None


class MembershipError(Exception):
    """Raised inside service operations and converted to a failed result."""

    def __init__(
        self,
        code: ErrorCode,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message or code.message)
        self.code = code
        self.message = message or code.message
        self.details = details

    def to_result(self) -> ServiceResult[Any]:
        """Return the failed result equivalent to this error."""
        return ServiceResult.failure(self.code, self.message, self.details)
