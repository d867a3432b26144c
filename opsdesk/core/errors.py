"""Error taxonomy for the scheduling engine and its HTTP rendering."""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_SCHEDULE_CONFLICT = "ERR_SCHEDULE_CONFLICT"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_INVALID_STATE = "ERR_INVALID_STATE"
    ERR_DATABASE = "ERR_DATABASE"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ConflictDetail(BaseModel):
    """Identity of the booking that blocked an operation."""

    task_id: str
    slot_id: str
    schedule_id: str | None = None


class ErrorResponse(BaseModel):
    """Structured error response returned to API callers."""

    success: bool = False
    code: str
    message: str
    severity: ErrorSeverity
    field: str | None = None
    conflict: ConflictDetail | None = None


class SchedulingError(Exception):
    """Base class for request-scoped scheduling failures."""

    code: str = ErrorCode.ERR_UNKNOWN
    status_code: int = 500
    severity: ErrorSeverity = ErrorSeverity.MEDIUM

    def to_response(self) -> ErrorResponse:
        """Render this error as a structured response."""
        return ErrorResponse(code=self.code, message=str(self), severity=self.severity)


class ScheduleValidationError(SchedulingError):
    """A required field is missing or malformed."""

    code = ErrorCode.ERR_VALIDATION
    status_code = 400
    severity = ErrorSeverity.LOW

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field

    def to_response(self) -> ErrorResponse:
        """Render with the offending field."""
        response = super().to_response()
        response.field = self.field
        return response


class ScheduleConflictError(SchedulingError):
    """A candidate interval overlaps an existing booking."""

    code = ErrorCode.ERR_SCHEDULE_CONFLICT
    status_code = 409
    severity = ErrorSeverity.LOW

    def __init__(
        self,
        message: str,
        *,
        task_id: str,
        slot_id: str,
        schedule_id: str | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.task_id = task_id
        self.slot_id = slot_id
        self.schedule_id = schedule_id
        self.field = field

    def to_response(self) -> ErrorResponse:
        """Render with the colliding booking's identity."""
        response = super().to_response()
        response.field = self.field
        response.conflict = ConflictDetail(task_id=self.task_id, slot_id=self.slot_id, schedule_id=self.schedule_id)
        return response


class InvalidStateError(SchedulingError):
    """The target is not in a state that permits the operation (e.g. already resolved)."""

    code = ErrorCode.ERR_INVALID_STATE
    status_code = 409
    severity = ErrorSeverity.LOW


def error_response_for(exception: Exception) -> tuple[int, ErrorResponse]:
    """Map any exception raised by the engine to an HTTP status and response body."""
    # Imported here to keep errors importable from db_client without a cycle
    from opsdesk.core.db_client import DatabaseError, RecordNotFoundError

    if isinstance(exception, SchedulingError):
        return exception.status_code, exception.to_response()

    if isinstance(exception, RecordNotFoundError):
        return 404, ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            message=str(exception).strip("'\""),
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, DatabaseError):
        return 500, ErrorResponse(
            code=ErrorCode.ERR_DATABASE,
            message="A storage error occurred. Please try again later.",
            severity=ErrorSeverity.HIGH,
        )

    return 500, ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        severity=ErrorSeverity.MEDIUM,
    )


def conflict_payload(error: ScheduleConflictError) -> dict[str, Any]:
    """Flatten a conflict into event/log context fields."""
    return {"conflict_task_id": error.task_id, "conflict_slot_id": error.slot_id, "schedule_id": error.schedule_id}
