# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Domain error taxonomy.

Services and repositories raise these; the HTTP layer maps ``code`` and
``http_status`` onto the error response. Nothing below the controllers
knows about HTTP beyond the status hint carried on each class.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    TEAM_EXISTS = "TEAM_EXISTS"
    PR_EXISTS = "PR_EXISTS"
    PR_MERGED = "PR_MERGED"
    NOT_ASSIGNED = "NOT_ASSIGNED"
    NO_CANDIDATE = "NO_CANDIDATE"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class DomainError(Exception):
    """Base class for every error the service reports to its callers."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    http_status: int = 500
    default_message: str = "internal error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(DomainError):
    code = ErrorCode.NOT_FOUND
    http_status = 404
    default_message = "resource not found"


class ValidationError(DomainError):
    code = ErrorCode.VALIDATION_ERROR
    http_status = 400
    default_message = "validation failed"


class TeamExistsError(DomainError):
    code = ErrorCode.TEAM_EXISTS
    http_status = 409
    default_message = "team already exists"


class PRExistsError(DomainError):
    code = ErrorCode.PR_EXISTS
    http_status = 409
    default_message = "PR already exists"


class PRMergedError(DomainError):
    code = ErrorCode.PR_MERGED
    http_status = 409
    default_message = "operation not allowed on merged PR"


class NotAssignedError(DomainError):
    code = ErrorCode.NOT_ASSIGNED
    http_status = 409
    default_message = "user is not assigned to this PR"


class NoCandidateError(DomainError):
    """No eligible replacement reviewer exists.

    Raised by an explicit reassignment *after* the removal of the old
    reviewer has been committed, so the caller can decide whether an
    unreplaced removal is acceptable.
    """

    code = ErrorCode.NO_CANDIDATE
    http_status = 409
    default_message = "no suitable candidate found for assignment"

    def __init__(self, message: Optional[str] = None, pr_id: Optional[str] = None,
                 removed_user_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.pr_id = pr_id
        self.removed_user_id = removed_user_id


class DeadlineExceededError(DomainError):
    code = ErrorCode.DEADLINE_EXCEEDED
    http_status = 504
    default_message = "operation deadline exceeded"


class InternalError(DomainError):
    code = ErrorCode.INTERNAL_ERROR
    http_status = 500
    default_message = "internal error"
