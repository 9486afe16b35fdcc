"""Custom exception classes for coordination errors.

Provides structured error handling with error codes and user-friendly messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standard error codes for coordination errors."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"

    # Lookup errors
    EMERGENCY_NOT_FOUND = "EMERGENCY_NOT_FOUND"
    TEAM_MEMBER_NOT_FOUND = "TEAM_MEMBER_NOT_FOUND"

    # Membership errors
    NO_ACTIVE_TOURNAMENT = "NO_ACTIVE_TOURNAMENT"

    # Infrastructure errors
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


class CoordinationError(Exception):
    """Base exception for coordination errors.

    Attributes:
        code: Error code for programmatic handling
        message: User-friendly error message
        details: Additional error details
        status_code: HTTP status the REST layer answers with
    """

    status_code: int = 400

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(CoordinationError):
    """Malformed input. Raised before any state is touched."""

    status_code = 400

    def __init__(
        self,
        issues: list[dict[str, str]],
        message: str = "Validation failed",
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        self.issues = issues
        super().__init__(code=code, message=message, details={"issues": issues})


class InvalidTransitionError(ValidationError):
    """Raised when an emergency status change breaks the lifecycle order."""

    def __init__(self, current: str, target: str):
        super().__init__(
            issues=[{
                "field": "status",
                "message": f"Cannot move from {current} to {target}",
            }],
            message=f"Invalid status transition: {current} -> {target}",
            code=ErrorCode.INVALID_STATUS_TRANSITION,
        )


class NotFoundError(CoordinationError):
    """Referenced entity is absent or outside the caller's tournament."""

    status_code = 404

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, details=details)


class EmergencyNotFoundError(NotFoundError):
    """Raised when an emergency is not found in the caller's tournament."""

    def __init__(self, emergency_id: str):
        super().__init__(
            code=ErrorCode.EMERGENCY_NOT_FOUND,
            message="Emergency not found",
            details={"emergencyId": emergency_id},
        )


class TeamMemberNotFoundError(NotFoundError):
    """Raised when a team member is not found in the caller's tournament."""

    def __init__(self, member_id: str):
        super().__init__(
            code=ErrorCode.TEAM_MEMBER_NOT_FOUND,
            message="Team member not found",
            details={"memberId": member_id},
        )


class ForbiddenError(CoordinationError):
    """Role or ownership check failed."""

    status_code = 403

    def __init__(self, message: str = "Insufficient permissions", details: dict[str, Any] | None = None):
        super().__init__(code=ErrorCode.FORBIDDEN, message=message, details=details)


class NoActiveTournamentError(CoordinationError):
    """Caller has no membership in an ACTIVE tournament."""

    status_code = 403

    def __init__(self, user_id: str | None = None):
        super().__init__(
            code=ErrorCode.NO_ACTIVE_TOURNAMENT,
            message="No active tournament found",
            details={"userId": user_id} if user_id else {},
        )


class UpstreamUnavailableError(CoordinationError):
    """Cache or broadcaster failure. Logged, never surfaced to the caller."""

    status_code = 503

    def __init__(self, component: str, reason: str):
        super().__init__(
            code=ErrorCode.UPSTREAM_UNAVAILABLE,
            message=f"{component} unavailable: {reason}",
            details={"component": component},
        )


class FatalError(CoordinationError):
    """Store unavailable. The operation is aborted with no partial writes."""

    status_code = 503

    def __init__(self, message: str = "Store unavailable"):
        super().__init__(code=ErrorCode.STORE_UNAVAILABLE, message=message)
