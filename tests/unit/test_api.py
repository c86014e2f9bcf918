"""Tests for the posture API routes."""

import pytest
from fastapi.testclient import TestClient

from recoverability.api.routes.posture import get_store
from recoverability.core.config import Settings, get_settings
from recoverability.main import app
from recoverability.posture.store import JsonSnapshotStore


@pytest.fixture
def api_settings(tmp_path):
    return Settings(ORGANIZATION="Contoso", OUTPUT_DIR=str(tmp_path / "exports"))


@pytest.fixture
def store(tmp_path):
    return JsonSnapshotStore(tmp_path / "history")


@pytest.fixture
def client(api_settings, store):
    """Test client with settings and snapshot store overridden."""
    app.dependency_overrides[get_settings] = lambda: api_settings
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def client_without_history(api_settings):
    app.dependency_overrides[get_settings] = lambda: api_settings
    app.dependency_overrides[get_store] = lambda: None
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health_check(client):
    """Test basic health check endpoint."""
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert "trend_enabled" in data


class TestRunAssessment:
    """Tests for POST /api/v1/posture/assessments."""

    def test_manual_csv_assessment(self, client, manual_csv):
        """Test an assessment over a manual CSV."""
        response = client.post(
            "/api/v1/posture/assessments",
            json={"manual_csv_paths": [str(manual_csv)], "sla_platforms": ["Azure", "AWS"]},
        )

        assert response.status_code == 200
        bundle = response.json()["bundle"]
        assert bundle["organization"] == "Contoso"
        assert bundle["summary"]["total_tests"] == 3
        assert bundle["trend_status"] == "baseline"
        assert [f["category"] for f in bundle["findings"] if f["severity"] == "High"] == [
            "Recovery Failure"
        ]
        assert response.json()["exports"] == {}

    def test_second_assessment_is_compared(self, client, manual_csv):
        """Test a repeat request is compared with the first."""
        body = {"manual_csv_paths": [str(manual_csv)]}
        first = client.post("/api/v1/posture/assessments", json=body).json()["bundle"]
        second = client.post("/api/v1/posture/assessments", json=body).json()["bundle"]

        assert second["trend_status"] == "compared"
        assert second["delta"]["prior_run_id"] == first["run_id"]

    def test_export_requested(self, client, manual_csv, tmp_path):
        """Test exports are written to the configured output directory."""
        response = client.post(
            "/api/v1/posture/assessments",
            json={"manual_csv_paths": [str(manual_csv)], "export": True},
        )

        exports = response.json()["exports"]
        assert set(exports) == {"results", "findings", "bundle"}
        assert exports["bundle"][0].startswith(str(tmp_path / "exports"))

    def test_notify_disabled(self, client, manual_csv):
        """Test a notify request reports that notifications are disabled."""
        response = client.post(
            "/api/v1/posture/assessments",
            json={"manual_csv_paths": [str(manual_csv)], "notify": True},
        )

        assert response.json()["notification"]["error"] == "Notifications disabled"

    def test_empty_request(self, client):
        """Test a request naming no sources is rejected."""
        response = client.post("/api/v1/posture/assessments", json={})

        assert response.status_code == 422
        assert response.json()["detail"] == "No result sources specified"

    def test_nothing_ingested(self, client, tmp_path):
        """Test a request whose sources yield nothing lists the skips."""
        response = client.post(
            "/api/v1/posture/assessments",
            json={"results_dir": str(tmp_path / "missing")},
        )

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["skipped"][0]["reason"] == "directory does not exist"

    def test_invalid_platform(self, client, manual_csv):
        response = client.post(
            "/api/v1/posture/assessments",
            json={"manual_csv_paths": [str(manual_csv)], "sla_platforms": ["Mainframe"]},
        )

        assert response.status_code == 422


class TestSnapshots:
    """Tests for the snapshot endpoints."""

    def test_latest_snapshot(self, client, manual_csv):
        """Test the latest snapshot is the most recent assessment."""
        run = client.post(
            "/api/v1/posture/assessments", json={"manual_csv_paths": [str(manual_csv)]}
        ).json()["bundle"]

        response = client.get("/api/v1/posture/snapshots/latest")

        assert response.status_code == 200
        assert response.json()["run_id"] == run["run_id"]

    def test_latest_snapshot_missing(self, client):
        response = client.get("/api/v1/posture/snapshots/latest", params={"organization": "Nobody"})

        assert response.status_code == 404

    def test_history_limit(self, client, manual_csv):
        """Test history is newest first and honors the limit."""
        body = {"manual_csv_paths": [str(manual_csv)]}
        runs = [client.post("/api/v1/posture/assessments", json=body).json()["bundle"] for _ in range(3)]

        response = client.get("/api/v1/posture/snapshots", params={"limit": 2})

        assert response.status_code == 200
        assert [s["run_id"] for s in response.json()] == [runs[2]["run_id"], runs[1]["run_id"]]

    def test_history_not_configured(self, client_without_history):
        """Test snapshot endpoints report missing history configuration."""
        response = client_without_history.get("/api/v1/posture/snapshots")

        assert response.status_code == 404
        assert response.json()["detail"] == "Snapshot history is not configured"
