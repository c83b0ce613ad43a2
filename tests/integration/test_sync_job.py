"""Tests for the background sync job run by the API."""

from unittest.mock import AsyncMock, patch

import pytest

from estate_feed.api.routes.sync import run_sync_job
from estate_feed.config import AppSettings
from estate_feed.models.pydantic_models import SyncMode, SyncProgress, SyncResult, SyncStatus
from estate_feed.services.job_service import JobService
from estate_feed.services.sync_service import DeletionGuardError, SyncInterruptedError


@pytest.fixture
def job_id(session_factory) -> int:
    """Create a pending incremental job and return its ID."""
    session = session_factory()
    job = JobService(session).start_job(SyncMode.INCREMENTAL)
    job_id = job.id
    session.close()
    return job_id


@pytest.fixture
def job_db(session_factory):
    """Point the background job at the test database."""
    with patch(
        "estate_feed.database.engine.get_session_factory", return_value=session_factory
    ):
        yield session_factory


def job_state(session_factory):
    session = session_factory()
    try:
        return JobService(session).get_state()
    finally:
        session.close()


class TestRunSyncJob:
    @pytest.mark.asyncio
    async def test_success_records_progress(self, job_db, job_id: int) -> None:
        statuses_seen: list[SyncStatus] = []

        async def fake_execute_sync(session, mode, settings, progress_callback=None):
            statuses_seen.append(JobService(session).get_job(job_id).status)
            progress_callback(SyncProgress(mode=mode, processed_messages=4, listings_touched=3))
            return SyncResult(mode=mode, processed_messages=5, listings_touched=3), None

        with patch(
            "estate_feed.services.sync_runner.execute_sync", side_effect=fake_execute_sync
        ):
            await run_sync_job(job_id, SyncMode.INCREMENTAL, AppSettings())

        assert statuses_seen == [SyncStatus.RUNNING]
        session = job_db()
        job = JobService(session).get_job(job_id)
        assert job.status == SyncStatus.COMPLETED
        assert job.processed_messages == 5
        assert job.listings_touched == 3
        session.close()
        assert job_state(job_db).last_exit == "success"

    @pytest.mark.asyncio
    async def test_progress_written_while_running(self, job_db, job_id: int) -> None:
        seen: list[int] = []

        async def fake_execute_sync(session, mode, settings, progress_callback=None):
            progress_callback(SyncProgress(mode=mode, processed_messages=7, listings_touched=2))
            other = job_db()
            seen.append(JobService(other).get_job(job_id).processed_messages)
            other.close()
            raise ConnectionError("connection lost")

        with patch(
            "estate_feed.services.sync_runner.execute_sync", side_effect=fake_execute_sync
        ):
            await run_sync_job(job_id, SyncMode.INCREMENTAL, AppSettings())

        assert seen == [7]
        assert job_state(job_db).last_error == "connection lost"

    @pytest.mark.asyncio
    async def test_guard_failure_marks_job_failed(self, job_db, job_id: int) -> None:
        with patch(
            "estate_feed.services.sync_runner.execute_sync",
            new=AsyncMock(side_effect=DeletionGuardError(checked=25, missing=20, max_ratio=0.6)),
        ):
            await run_sync_job(job_id, SyncMode.CHECK_DELETED, AppSettings())

        state = job_state(job_db)
        assert state.running is False
        assert state.last_exit == "error"
        assert "safety guard" in state.last_error
        assert "20/25" in state.last_error

    @pytest.mark.asyncio
    async def test_interrupted_sync_is_not_reported_as_success(
        self, job_db, job_id: int
    ) -> None:
        error = SyncInterruptedError(SyncMode.INCREMENTAL, processed=2, watermark=12)
        with patch(
            "estate_feed.services.sync_runner.execute_sync", new=AsyncMock(side_effect=error)
        ):
            await run_sync_job(job_id, SyncMode.INCREMENTAL, AppSettings())

        state = job_state(job_db)
        assert state.last_exit == "error"
        assert "interrupted" in state.last_error
        session = job_db()
        assert JobService(session).get_job(job_id).status == SyncStatus.FAILED
        session.close()
