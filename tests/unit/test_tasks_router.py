"""Unit tests for the REST surface (FastAPI TestClient over the in-memory store)."""

import pytest
from fastapi.testclient import TestClient

from opsdesk.main import app


@pytest.fixture
def client(patched_db):
    """TestClient without lifespan (no real database or Redis)."""
    return TestClient(app)


def _create(client, start="10:00", end="11:00", receiver_id="R", **extra):
    return client.post(
        "/api/tasks",
        json={
            "assigner_id": "A",
            "receiver_id": receiver_id,
            "task_name": "Inspection",
            "slots": [{"start": start, "end": end, "slot_date": "2025-12-31"}],
            **extra,
        },
    )


@pytest.mark.unit
class TestTaskRoutes:
    """Task CRUD routes."""

    def test_create_returns_envelope(self, client):
        response = _create(client)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["slots"][0]["duration_minutes"] == 60
        assert body["data"]["receiver_id"] == "R"

    def test_conflict_is_409_with_identity(self, client):
        first = _create(client).json()["data"]

        response = _create(client, start="10:30", end="11:30")

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "ERR_SCHEDULE_CONFLICT"
        assert body["conflict"]["task_id"] == first["id"]
        assert body["conflict"]["slot_id"] == first["slots"][0]["id"]

    def test_service_validation_is_400(self, client):
        response = client.post("/api/tasks", json={"receiver_id": "R", "slots": []})

        assert response.status_code == 400
        assert response.json()["code"] == "ERR_VALIDATION"
        assert response.json()["field"] == "assigner_id"

    def test_payload_shape_errors_are_400(self, client):
        response = client.post("/api/tasks", json={"assigner_id": "A", "slots": "10:00"})

        assert response.status_code == 400
        assert response.json()["code"] == "ERR_VALIDATION"
        assert response.json()["field"].startswith("slots")

    def test_unknown_task_is_404(self, client):
        response = client.get("/api/tasks/424242")

        assert response.status_code == 404
        assert response.json()["code"] == "ERR_NOT_FOUND"

    def test_get_list_and_by_date(self, client):
        created = _create(client).json()["data"]

        assert client.get(f"/api/tasks/{created['id']}").json()["data"]["id"] == created["id"]
        listed = client.get("/api/tasks", params={"user_id": "A"}).json()["data"]
        assert [task["id"] for task in listed] == [created["id"]]
        by_date = client.get("/api/tasks/by-date", params={"user_id": "R", "date": "2025-12-31"}).json()["data"]
        assert [task["id"] for task in by_date] == [created["id"]]

    def test_edit_status_and_archive_cycle(self, client):
        task_id = _create(client).json()["data"]["id"]

        edited = client.put(f"/api/tasks/{task_id}", json={"task_name": "Re-inspection"})
        status = client.put(f"/api/tasks/{task_id}/status", json={"status": "in_progress"})
        archived = client.put(f"/api/tasks/{task_id}/archive", json={"actor_user_id": "A"})
        archived_again = client.put(f"/api/tasks/{task_id}/archive", json={"actor_user_id": "A"})
        restored = client.put(f"/api/tasks/{task_id}/unarchive")

        assert edited.json()["data"]["task_name"] == "Re-inspection"
        assert status.json()["data"]["status"] == "in_progress"
        assert archived.json()["data"]["is_archived"] is True
        assert archived_again.status_code == 409
        assert archived_again.json()["code"] == "ERR_INVALID_STATE"
        assert restored.json()["data"]["is_archived"] is False


@pytest.mark.unit
class TestExtensionRoutes:
    """Extension request and response routes."""

    def test_request_then_approve(self, client):
        task = _create(client).json()["data"]
        slot_id = task["slots"][0]["id"]
        base = f"/api/tasks/{task['id']}/slots/{slot_id}/extensions"

        requested = client.post(base, json={"requested_by": "R", "minutes": "30", "reason": "traffic"})
        extension_id = requested.json()["data"]["slots"][0]["extension_requests"][-1]["id"]
        approved = client.put(f"{base}/{extension_id}/respond", json={"responded_by": "A", "status": "approved"})
        repeated = client.put(f"{base}/{extension_id}/respond", json={"responded_by": "A", "status": "rejected"})

        assert requested.status_code == 201
        assert approved.status_code == 200
        assert approved.json()["data"]["adjustment_minutes"] == 30
        assert approved.json()["data"]["task"]["slots"][0]["end"] == "11:30"
        assert repeated.status_code == 409
        assert repeated.json()["code"] == "ERR_INVALID_STATE"

    def test_bad_minutes_is_400(self, client):
        task = _create(client).json()["data"]
        slot_id = task["slots"][0]["id"]

        response = client.post(
            f"/api/tasks/{task['id']}/slots/{slot_id}/extensions",
            json={"requested_by": "R", "minutes": 0},
        )

        assert response.status_code == 400
        assert response.json()["field"] == "minutes"


@pytest.mark.unit
class TestAvailabilityRoute:
    """GET /api/availability."""

    def test_requires_user(self, client):
        response = client.get("/api/availability")

        assert response.status_code == 400
        assert response.json()["field"] == "user_id"

    def test_returns_suggestions_and_bookings(self, client):
        _create(client, start="2999-01-01T09:00:00Z", end="2999-01-01T17:00:00Z")

        response = client.get(
            "/api/availability",
            params={"user_id": "R", "date": "2999-01-01", "lookahead_days": "1", "max_suggestions": "3"},
        )

        data = response.json()["data"]
        assert response.status_code == 200
        assert len(data["bookings"]) == 1
        assert [s["start"][11:16] for s in data["suggestions"]] == ["00:00", "17:00"]


@pytest.mark.unit
def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
