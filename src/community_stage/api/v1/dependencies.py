"""Shared API dependencies for authentication and service wiring."""

from typing import Annotated, Any, TypeVar

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session, sessionmaker

from community_stage.core.security import decode_subject
from community_stage.db.session import get_db, get_session_factory
from community_stage.models import User
from community_stage.services import BulkInvitationOrchestrator, MembershipService
from community_stage.services.errors import ErrorCode, ErrorKind, ServiceError, ServiceResult

T = TypeVar("T")

# Missing credentials are reported by get_current_user, not by the scheme.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_AUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NOT_AUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INVARIANT_VIOLATION: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.TOO_MANY_TARGETS: status.HTTP_400_BAD_REQUEST,
}


def http_error(error: ServiceError) -> HTTPException:
    """Translate a service error into the HTTP error the API returns."""
    status_code = STATUS_BY_CODE.get(error.code, STATUS_BY_KIND[error.kind])
    detail: dict[str, Any] = {"code": error.code.value, "message": error.message}
    if error.details:
        detail["details"] = error.details
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(status_code=status_code, detail=detail, headers=headers)


def unwrap(result: ServiceResult[T]) -> T:
    """Return the payload of a successful result or raise its HTTP error."""
    if not result.success:
        assert result.error is not None
        raise http_error(result.error)
    return result.data  # type: ignore[return-value]


def http_error_for(code: ErrorCode) -> HTTPException:
    """Build the HTTP error for a bare error code with its default message."""
    return http_error(ServiceError(code=code, message=code.message))


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer token credentials, if any were sent
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        HTTPException: 401 if the token is missing, invalid or names no user
    """
    if credentials is None:
        raise http_error_for(ErrorCode.NOT_AUTHENTICATED)
    user_id = decode_subject(credentials.credentials)
    if user_id is None:
        raise http_error_for(ErrorCode.NOT_AUTHENTICATED)
    user = db.get(User, user_id)
    if user is None:
        raise http_error_for(ErrorCode.NOT_AUTHENTICATED)
    return user


def get_membership_service(db: SessionDep) -> MembershipService:
    """Provide a membership service bound to the request session."""
    return MembershipService(db)


def get_bulk_orchestrator(
    session_factory: Annotated[sessionmaker[Session], Depends(get_session_factory)],
) -> BulkInvitationOrchestrator:
    """Provide a bulk orchestrator whose workers open their own sessions."""
    return BulkInvitationOrchestrator(session_factory)


# Type aliases for dependencies
CurrentUserDep = Annotated[User, Depends(get_current_user)]
MembershipServiceDep = Annotated[MembershipService, Depends(get_membership_service)]
BulkOrchestratorDep = Annotated[BulkInvitationOrchestrator, Depends(get_bulk_orchestrator)]
