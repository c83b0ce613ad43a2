"""Service layer for sync job management."""

from sqlalchemy.orm import Session

from estate_feed.database.repository import SyncJobRepository
from estate_feed.models.db_models import SyncJob
from estate_feed.models.pydantic_models import (
    SyncJobRead,
    SyncMode,
    SyncResult,
    SyncState,
    SyncStatus,
)

ACTIVE_STATUSES = (SyncStatus.PENDING, SyncStatus.RUNNING)


class SyncAlreadyRunningError(Exception):
    """Raised when a sync is requested while another one is in progress."""

    def __init__(self, job: SyncJobRead) -> None:
        self.job = job
        super().__init__(f"Sync job {job.id} ({job.mode.value}) is already running")


class JobService:
    """Service for sync job operations.

    Provides a clean interface for job management, wrapping the repository
    and converting between ORM models and Pydantic models. At most one job
    may be pending or running at a time.
    """

    def __init__(self, session: Session) -> None:
        """Initialize with database session.

        Args:
            session: SQLAlchemy session instance.
        """
        self._session = session
        self._repo = SyncJobRepository(session)

    def _to_pydantic(self, job: SyncJob) -> SyncJobRead:
        """Convert ORM model to Pydantic model.

        Args:
            job: SyncJob ORM instance.

        Returns:
            SyncJobRead Pydantic model.
        """
        return SyncJobRead.model_validate(job)

    def start_job(self, mode: SyncMode) -> SyncJobRead:
        """Create a pending job unless one is already active.

        Args:
            mode: Sync mode to run.

        Returns:
            Created job as SyncJobRead.

        Raises:
            SyncAlreadyRunningError: If a job is pending or running.
        """
        active = self._repo.get_active_job()
        if active is not None:
            raise SyncAlreadyRunningError(self._to_pydantic(active))

        job = self._repo.create_job(mode)
        return self._to_pydantic(job)

    def get_job(self, job_id: int) -> SyncJobRead | None:
        """Get a job by ID.

        Args:
            job_id: Job ID.

        Returns:
            SyncJobRead if found, None otherwise.
        """
        job = self._repo.get_job(job_id)
        if job is None:
            return None
        return self._to_pydantic(job)

    def get_recent_jobs(self, limit: int = 20) -> list[SyncJobRead]:
        """Get recent jobs, newest first.

        Args:
            limit: Maximum number of jobs to return.

        Returns:
            List of SyncJobRead objects.
        """
        jobs = self._repo.get_recent_jobs(limit=limit)
        return [self._to_pydantic(job) for job in jobs]

    def update_status(self, job_id: int, status: SyncStatus) -> SyncJobRead | None:
        job = self._repo.update_status(job_id, status)
        if job is None:
            return None
        return self._to_pydantic(job)

    def update_progress(
        self,
        job_id: int,
        processed_messages: int | None = None,
        listings_touched: int | None = None,
    ) -> SyncJobRead | None:
        job = self._repo.update_progress(
            job_id,
            processed_messages=processed_messages,
            listings_touched=listings_touched,
        )
        if job is None:
            return None
        return self._to_pydantic(job)

    def complete_job(self, job_id: int, result: SyncResult) -> SyncJobRead | None:
        """Mark job as completed with the counters of its result.

        Args:
            job_id: Job ID.
            result: Result of the sync run.

        Returns:
            Updated SyncJobRead if found, None otherwise.
        """
        job = self._repo.complete_job(
            job_id,
            processed_messages=result.processed_messages,
            listings_touched=result.listings_touched,
            deleted_listings=result.deleted_listings,
        )
        if job is None:
            return None
        return self._to_pydantic(job)

    def fail_job(self, job_id: int, error_message: str) -> SyncJobRead | None:
        """Mark job as failed.

        Args:
            job_id: Job ID.
            error_message: Error description.

        Returns:
            Updated SyncJobRead if found, None otherwise.
        """
        job = self._repo.fail_job(job_id, error_message=error_message)
        if job is None:
            return None
        return self._to_pydantic(job)

    def get_state(self) -> SyncState:
        """Summarize the most recent job for the control surface.

        Returns:
            SyncState; all fields empty when no job ever ran.
        """
        job = self._repo.get_latest_job()
        if job is None:
            return SyncState()

        status = SyncStatus(job.status)
        last_exit = None
        if status == SyncStatus.COMPLETED:
            last_exit = "success"
        elif status == SyncStatus.FAILED:
            last_exit = "error"

        return SyncState(
            running=status in ACTIVE_STATUSES,
            mode=SyncMode(job.mode),
            started_at=job.started_at or job.created_at,
            finished_at=job.completed_at,
            last_error=job.error_message if status == SyncStatus.FAILED else None,
            last_exit=last_exit,
        )

    def fail_stale_jobs(self) -> int:
        """Fail jobs left pending or running by a previous process.

        Returns:
            Number of jobs marked failed.
        """
        return self._repo.fail_stale_jobs()

    def cleanup_old_jobs(self, days: int = 30) -> int:
        """Delete completed/failed jobs older than specified days.

        Args:
            days: Delete jobs older than this many days.

        Returns:
            Number of deleted jobs.
        """
        return self._repo.cleanup_old_jobs(days=days)
