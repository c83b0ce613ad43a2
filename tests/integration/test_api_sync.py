"""Integration tests for sync control API endpoints."""

from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker

from estate_feed.api.dependencies import get_db, get_settings
from estate_feed.api.main import create_app
from estate_feed.config import AppSettings, ConfigError
from estate_feed.database.engine import get_engine, reset_engine
from estate_feed.models.db_models import Base, SyncJob
from estate_feed.models.pydantic_models import SyncMode, SyncStatus


# Mock the background task to prevent a real Telegram connection
@pytest.fixture(autouse=True)
def mock_background_sync():
    """Mock the background sync task."""
    with patch("estate_feed.api.routes.sync.run_sync_job") as mock:

        async def noop(*args, **kwargs):
            pass

        mock.side_effect = noop
        yield mock


@pytest.fixture
def test_engine(tmp_path: Path):
    """Create a test database engine."""
    db_path = tmp_path / "test.db"
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def session_factory(test_engine):
    """Create a session factory for the test database."""
    return sessionmaker(bind=test_engine)


@pytest.fixture
def client(session_factory):
    """Create a test client with overridden database dependency."""
    app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: AppSettings()
    return TestClient(app)


@pytest.fixture
def finished_job(session_factory) -> int:
    """Create a failed check_deleted job and return its ID."""
    session = session_factory()
    job = SyncJob(
        mode=SyncMode.CHECK_DELETED,
        status=SyncStatus.FAILED,
        error_message="Deleted-check aborted by safety guard",
    )
    session.add(job)
    session.commit()
    job_id = job.id
    session.close()
    return job_id


class TestStartSync:
    """Tests for POST /api/sync/jobs endpoint."""

    def test_start_accepted(self, client: TestClient, mock_background_sync) -> None:
        response = client.post("/api/sync/jobs", json={"mode": "backfill"})

        assert response.status_code == 202
        data = response.json()
        assert data["ok"] is True
        assert data["job"]["mode"] == "backfill"
        assert data["job"]["status"] == "pending"
        assert data["state"]["running"] is True
        assert data["state"]["mode"] == "backfill"
        mock_background_sync.assert_called_once()
        assert mock_background_sync.call_args.kwargs["mode"] == SyncMode.BACKFILL

    def test_default_mode_is_incremental(self, client: TestClient) -> None:
        response = client.post("/api/sync/jobs", json={})

        assert response.status_code == 202
        assert response.json()["job"]["mode"] == "incremental"

    def test_conflict_while_running(self, client: TestClient) -> None:
        first = client.post("/api/sync/jobs", json={"mode": "incremental"})

        response = client.post("/api/sync/jobs", json={"mode": "check_deleted"})

        assert response.status_code == 409
        data = response.json()
        assert data["ok"] is False
        assert data["job"]["id"] == first.json()["job"]["id"]
        assert data["state"]["running"] is True
        assert data["state"]["mode"] == "incremental"

    def test_invalid_mode(self, client: TestClient) -> None:
        response = client.post("/api/sync/jobs", json={"mode": "everything"})

        assert response.status_code == 422


class TestSyncStatus:
    """Tests for GET /api/sync/status endpoint."""

    def test_never_ran(self, client: TestClient) -> None:
        response = client.get("/api/sync/status")

        assert response.status_code == 200
        data = response.json()
        assert data["running"] is False
        assert data["mode"] is None
        assert data["last_exit"] is None

    def test_last_failure(self, client: TestClient, finished_job: int) -> None:
        data = client.get("/api/sync/status").json()

        assert data["running"] is False
        assert data["mode"] == "check_deleted"
        assert data["last_exit"] == "error"
        assert data["last_error"] == "Deleted-check aborted by safety guard"


class TestSyncJobs:
    """Tests for GET /api/sync/jobs endpoints."""

    def test_list_jobs(self, client: TestClient, finished_job: int) -> None:
        client.post("/api/sync/jobs", json={"mode": "incremental"})

        data = client.get("/api/sync/jobs").json()

        assert data["count"] == 2
        assert data["jobs"][1]["id"] == finished_job

    def test_list_jobs_limit(self, client: TestClient, finished_job: int) -> None:
        client.post("/api/sync/jobs", json={"mode": "incremental"})

        data = client.get("/api/sync/jobs", params={"limit": 1}).json()

        assert data["count"] == 1
        assert data["jobs"][0]["mode"] == "incremental"

    def test_get_job(self, client: TestClient, finished_job: int) -> None:
        response = client.get(f"/api/sync/jobs/{finished_job}")

        assert response.status_code == 200
        assert response.json()["status"] == "failed"

    def test_get_job_not_found(self, client: TestClient) -> None:
        response = client.get("/api/sync/jobs/99999")

        assert response.status_code == 404


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestStartup:
    """Tests for the application startup checks."""

    @pytest.fixture
    def app_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
        reset_engine()
        db_path = tmp_path / "api.db"
        monkeypatch.delenv("ESTATE_FEED_CONFIG", raising=False)
        monkeypatch.setenv("ESTATE_FEED_DB_PATH", str(db_path))
        monkeypatch.setenv("ESTATE_FEED_MEDIA_DIR", str(tmp_path / "media"))
        monkeypatch.setenv("ESTATE_FEED_STORAGE_BACKEND", "local")
        monkeypatch.setenv("TELEGRAM_API_ID", "12345")
        monkeypatch.setenv("TELEGRAM_API_HASH", "0123456789abcdef")
        monkeypatch.setenv("TELEGRAM_SESSION_STRING", "1BVtsOK4Bu0")
        monkeypatch.setenv("TELEGRAM_CHANNEL", "tbilisiflats")
        yield db_path
        reset_engine()

    def test_missing_credentials_fail_startup(
        self, app_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("TELEGRAM_SESSION_STRING")

        with pytest.raises(ConfigError, match="TELEGRAM_SESSION_STRING"):
            with TestClient(create_app()):
                pass

    def test_startup_creates_schema(self, app_env: Path) -> None:
        with TestClient(create_app()) as client:
            response = client.get("/health")

        assert response.status_code == 200
        assert "sync_jobs" in inspect(get_engine()).get_table_names()
