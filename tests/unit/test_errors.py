"""Unit tests for error mapping utilities."""

import pytest

from opsdesk.core.db_client import DatabaseError, RecordNotFoundError
from opsdesk.core.errors import (
    ErrorCode,
    ErrorSeverity,
    InvalidStateError,
    ScheduleConflictError,
    ScheduleValidationError,
    conflict_payload,
    error_response_for,
)


@pytest.mark.unit
class TestErrorResponseFor:
    """Tests for error_response_for."""

    def test_validation_error_names_field(self):
        status, response = error_response_for(ScheduleValidationError("slots[0].end", "is required"))

        assert status == 400
        assert response.code == ErrorCode.ERR_VALIDATION
        assert response.field == "slots[0].end"
        assert response.message == "slots[0].end: is required"
        assert response.conflict is None

    def test_conflict_error_carries_booking_identity(self):
        error = ScheduleConflictError("overlaps", task_id="t1", slot_id="s1", schedule_id="42", field="slots[1]")

        status, response = error_response_for(error)

        assert status == 409
        assert response.code == ErrorCode.ERR_SCHEDULE_CONFLICT
        assert response.field == "slots[1]"
        assert response.conflict.model_dump() == {"task_id": "t1", "slot_id": "s1", "schedule_id": "42"}

    def test_invalid_state(self):
        status, response = error_response_for(InvalidStateError("Extension request already approved"))

        assert status == 409
        assert response.code == ErrorCode.ERR_INVALID_STATE
        assert response.severity == ErrorSeverity.LOW

    def test_not_found(self):
        status, response = error_response_for(RecordNotFoundError("Record not found in tasks: 9"))

        assert status == 404
        assert response.code == ErrorCode.ERR_NOT_FOUND
        assert response.message == "Record not found in tasks: 9"

    def test_database_error_hides_details(self):
        status, response = error_response_for(DatabaseError("disk I/O error at /var/data"))

        assert status == 500
        assert response.code == ErrorCode.ERR_DATABASE
        assert "/var/data" not in response.message
        assert response.severity == ErrorSeverity.HIGH

    def test_unknown_error(self):
        status, response = error_response_for(RuntimeError("boom"))

        assert status == 500
        assert response.code == ErrorCode.ERR_UNKNOWN
        assert "boom" not in response.message


@pytest.mark.unit
def test_conflict_payload():
    error = ScheduleConflictError("overlaps", task_id="t1", slot_id="s1")

    assert conflict_payload(error) == {"conflict_task_id": "t1", "conflict_slot_id": "s1", "schedule_id": None}
