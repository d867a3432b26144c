"""Filter injection through user-supplied ids."""

from unittest.mock import AsyncMock

import pytest

from opsdesk.core import db_client
from opsdesk.modules.scheduling import schedule_index, service


MALICIOUS_ID = 'R" || user_id != "'


@pytest.fixture
def capture_db_queries(monkeypatch):
    """Mocks db_client.list_records to capture query parameters."""
    mock_list = AsyncMock(return_value=[])
    monkeypatch.setattr("opsdesk.core.db_client.list_records", mock_list)
    return mock_list


@pytest.mark.unit
class TestFilterInjection:
    """Ids are escaped before being embedded in filter expressions."""

    def test_sanitize_param_escapes_quotes(self):
        assert db_client.sanitize_param(MALICIOUS_ID) == r'R\" || user_id != \"'

    def test_escaped_value_parses_as_one_literal(self):
        clause, params = db_client.parse_filter(f'user_id = "{db_client.sanitize_param(MALICIOUS_ID)}"')

        assert clause == "user_id = ?"
        assert params == [MALICIOUS_ID]

    def test_separators_inside_values_do_not_split(self):
        clause, params = db_client.parse_filter(
            '(assigner_id = "a && b" || receiver_id = "c || d") && task_name = "x && (y)"'
        )

        assert clause == "(assigner_id = ? OR receiver_id = ?) AND task_name = ?"
        assert params == ["a && b", "c || d", "x && (y)"]

    async def test_schedule_lookup_escapes_task_id(self, capture_db_queries):
        await schedule_index.list_for_task(task_id=MALICIOUS_ID)

        filter_query = capture_db_queries.call_args.kwargs["filter_query"]
        _, params = db_client.parse_filter(filter_query)
        assert params == [MALICIOUS_ID]

    async def test_task_listing_escapes_user_id(self, capture_db_queries):
        await service.list_tasks(user_id=MALICIOUS_ID)

        filter_query = capture_db_queries.call_args.kwargs["filter_query"]
        clause, params = db_client.parse_filter(filter_query)
        assert clause == "is_archived = ? AND (assigner_id = ? OR receiver_id = ?)"
        assert params == [0, MALICIOUS_ID, MALICIOUS_ID]
