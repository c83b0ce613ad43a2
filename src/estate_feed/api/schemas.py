"""API request and response schemas."""

from pydantic import BaseModel, Field

from estate_feed.models.pydantic_models import ListingRead, SyncJobRead, SyncMode, SyncState


class PaginatedListings(BaseModel):
    """Paginated listings response."""

    listings: list[ListingRead]
    count: int = Field(description="Number of listings in this response")
    total: int = Field(description="Total number of listings matching filters")
    limit: int = Field(description="Maximum results per page")
    offset: int = Field(description="Number of results skipped")


class DeleteResponse(BaseModel):
    """Response for delete operations."""

    success: bool
    message: str


class SyncJobCreate(BaseModel):
    """Request body for starting a sync."""

    mode: SyncMode = Field(SyncMode.INCREMENTAL, description="Sync mode to run")


class SyncStartResponse(BaseModel):
    """Response for an accepted sync request."""

    ok: bool = True
    job: SyncJobRead
    state: SyncState


class SyncJobListResponse(BaseModel):
    """Response for listing sync jobs."""

    jobs: list[SyncJobRead]
    count: int = Field(description="Number of jobs in this response")
