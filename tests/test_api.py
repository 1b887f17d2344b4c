"""
Tests for the WorkTrace API.

The orchestrator runs against the test database with a fake git; the
lifespan is not entered, so no real roots are tracked.
"""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from worktrace.api.app import create_app
from worktrace.db.connection import get_db
from worktrace.db.repositories import AllocationRepository
from worktrace.models.db import WorkItem
from worktrace.tracker.idle_policy import IdleConfig, IdlePolicy
from worktrace.tracker.orchestrator import WorkspaceOrchestrator

T0 = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def orchestrator(session_factory, fake_git) -> WorkspaceOrchestrator:
    return WorkspaceOrchestrator(
        session_factory=session_factory,
        git=fake_git,
        policy=IdlePolicy(IdleConfig(threshold_minutes=5)),
        backfill_days=0,
        watch_commits=False,
    )


@pytest.fixture
def api_client(session_maker, orchestrator) -> TestClient:
    """Create a test client with the database dependency overridden."""
    app = create_app(orchestrator=orchestrator, roots=[])

    def override_get_db():
        session = session_maker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


class TestHealth:
    def test_health(self, api_client: TestClient):
        with patch("worktrace.api.app.check_connection", return_value=True):
            response = api_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health_degraded(self, api_client: TestClient):
        with patch("worktrace.api.app.check_connection", return_value=False):
            response = api_client.get("/health")

        assert response.json() == {
            "status": "degraded",
            "database": "unhealthy",
            "version": "0.1.0",
        }


class TestWorkspacesApi:
    def test_add_and_list(self, api_client: TestClient, tmp_path):
        response = api_client.post("/workspaces", json={"root": str(tmp_path), "name": "billing"})

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "billing"
        assert data["is_tracked"] is True
        assert data["repo"] == tmp_path.name

        listed = api_client.get("/workspaces").json()
        assert [w["id"] for w in listed] == [data["id"]]

    def test_add_missing_directory(self, api_client: TestClient, tmp_path):
        response = api_client.post("/workspaces", json={"root": str(tmp_path / "nope")})

        assert response.status_code == 422

    def test_remove(self, api_client: TestClient, tmp_path):
        api_client.post("/workspaces", json={"root": str(tmp_path)})

        response = api_client.delete("/workspaces", params={"root": str(tmp_path)})
        again = api_client.delete("/workspaces", params={"root": str(tmp_path)})

        assert response.status_code == 204
        assert again.status_code == 404
        listed = api_client.get("/workspaces").json()
        assert listed[0]["is_tracked"] is False


class TestActivityApi:
    def test_activity_for_tracked_root(self, api_client: TestClient, tmp_path):
        api_client.post("/workspaces", json={"root": str(tmp_path)})

        response = api_client.post(
            "/activity", json={"root": str(tmp_path), "type": "file_save"}
        )

        assert response.status_code == 200
        assert response.json() == {"accepted": True}

    def test_activity_for_unknown_root(self, api_client: TestClient, tmp_path):
        response = api_client.post(
            "/activity",
            json={"root": str(tmp_path), "type": "text_change", "timestamp": T0.isoformat()},
        )

        assert response.json() == {"accepted": False}

    def test_timestamp_without_offset_is_utc(
        self, api_client: TestClient, orchestrator, tmp_path
    ):
        api_client.post("/workspaces", json={"root": str(tmp_path)})

        response = api_client.post(
            "/activity",
            json={"root": str(tmp_path), "type": "file_save", "timestamp": "2025-03-10T09:00:00"},
        )
        summary = api_client.get("/tracking/summary")

        assert response.json() == {"accepted": True}
        assert summary.status_code == 200
        last = orchestrator.registry.get(tmp_path).aggregator.last_activity
        assert last == T0
        assert last.tzinfo is not None

    def test_invalid_activity_type(self, api_client: TestClient, tmp_path):
        response = api_client.post("/activity", json={"root": str(tmp_path), "type": "scroll"})

        assert response.status_code == 422

    def test_summary(self, api_client: TestClient, tmp_path):
        api_client.post("/workspaces", json={"root": str(tmp_path), "name": "billing"})

        data = api_client.get("/tracking/summary").json()

        assert data["workspace_count"] == 1
        assert data["workspaces"] == ["billing"]
        assert data["idle_threshold_minutes"] == 5


class TestWorkItemsAndAllocations:
    @pytest.fixture
    def workspace_id(self, sample_workspace, make_session) -> str:
        make_session(T0, 5400)
        return str(sample_workspace.id)

    def test_submit_work_item_allocates(self, api_client: TestClient, workspace_id):
        response = api_client.post(
            "/work-items",
            json={
                "workspace_id": workspace_id,
                "title": "Quarterly invoice run",
                "occurred_at": (T0 + timedelta(hours=3)).isoformat(),
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["work_item"]["type"] == "manual"
        assert data["work_item"]["repo"] == "billing"
        assert [a["hours"] for a in data["allocations"]] == [1.5]
        assert data["allocations"][0]["date"] == "2025-03-10"

    def test_submit_occurred_at_without_offset(self, api_client: TestClient, workspace_id):
        response = api_client.post(
            "/work-items",
            json={
                "workspace_id": workspace_id,
                "title": "Quarterly invoice run",
                "occurred_at": "2025-03-10T12:00:00",
            },
        )

        assert response.status_code == 201
        raw = response.json()["work_item"]["occurred_at"]
        occurred_at = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        assert occurred_at == T0 + timedelta(hours=3)

    def test_submit_with_empty_session_ids(self, api_client: TestClient, workspace_id):
        response = api_client.post(
            "/work-items",
            json={"workspace_id": workspace_id, "title": "Docs only", "session_ids": []},
        )

        assert response.status_code == 201
        assert response.json()["allocations"] == []

    def test_submit_unknown_workspace(self, api_client: TestClient):
        response = api_client.post(
            "/work-items", json={"workspace_id": str(uuid.uuid4()), "title": "x"}
        )

        assert response.status_code == 404

    def test_recent_and_patch_allocation(
        self, api_client: TestClient, db_session: Session, workspace_id
    ):
        api_client.post(
            "/work-items",
            json={
                "workspace_id": workspace_id,
                "title": "Quarterly invoice run",
                "occurred_at": (T0 + timedelta(hours=3)).isoformat(),
            },
        )

        recent = api_client.get("/allocations/recent", params={"workspace_id": workspace_id})
        allocation_id = recent.json()["id"]
        patched = api_client.patch(
            f"/allocations/{allocation_id}",
            json={"hours": 2.004, "note": "includes review", "tag": "ops"},
        )

        assert patched.status_code == 200
        assert patched.json()["hours"] == 2.0
        assert patched.json()["note"] == "includes review"
        assert patched.json()["tag"] == "ops"
        db_session.expire_all()
        stored = AllocationRepository(db_session).get(uuid.UUID(allocation_id))
        assert stored.tag == "ops"
        assert db_session.query(WorkItem).count() == 1

    def test_recent_allocation_none(self, api_client: TestClient, workspace_id):
        response = api_client.get("/allocations/recent", params={"workspace_id": workspace_id})

        assert response.status_code == 200
        assert response.json() is None

    def test_patch_validation(self, api_client: TestClient):
        missing = api_client.patch(f"/allocations/{uuid.uuid4()}", json={"note": "x"})
        empty = api_client.patch(f"/allocations/{uuid.uuid4()}", json={})
        negative = api_client.patch(f"/allocations/{uuid.uuid4()}", json={"hours": -1})

        assert missing.status_code == 404
        assert empty.status_code == 422
        assert negative.status_code == 422
