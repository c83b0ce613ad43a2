"""Listings API endpoints."""

from fastapi import APIRouter, HTTPException, Query

from estate_feed.api.dependencies import ListingServiceDep
from estate_feed.api.schemas import DeleteResponse, PaginatedListings
from estate_feed.models.pydantic_models import Condition, ListingRead, ListingUpdate, PropertyType
from estate_feed.services.listing_service import ListingNotFoundError

router = APIRouter()


@router.get("", response_model=PaginatedListings)
async def list_listings(
    service: ListingServiceDep,
    source_id: int | None = Query(None, description="Filter by source"),
    property_type: PropertyType | None = Query(None, description="Filter by property type"),
    price_min: float | None = Query(None, ge=0, description="Minimum price in USD"),
    price_max: float | None = Query(None, ge=0, description="Maximum price in USD"),
    area_min: float | None = Query(None, ge=0, description="Minimum area in m²"),
    area_max: float | None = Query(None, ge=0, description="Maximum area in m²"),
    rooms: str | None = Query(
        None, max_length=20, description="Rooms layout such as 2+1, or studio"
    ),
    floor_min: int | None = Query(None, description="Lowest floor"),
    floor_max: int | None = Query(None, description="Highest floor"),
    condition: Condition | None = Query(None, description="Normalized condition"),
    district: str | None = Query(None, min_length=2, max_length=100, description="District contains"),
    street: str | None = Query(None, min_length=2, max_length=100, description="Street contains"),
    search: str | None = Query(
        None, min_length=2, max_length=100, description="Search in title and description"
    ),
    sort_by: str | None = Query(
        None,
        pattern="^(posted|price|area|price_per_m2)$",
        description="Field to sort by",
    ),
    sort_order: str = Query(
        "desc", pattern="^(asc|desc)$", description="Sort direction (asc, desc)"
    ),
    limit: int = Query(20, ge=1, le=100, description="Results per page"),
    offset: int = Query(0, ge=0, description="Results to skip"),
) -> PaginatedListings:
    """Get paginated listings with optional filters.

    Filters cover the extracted fields: price, area, rooms, floor,
    condition, district and street. Without ``sort_by`` the newest post
    comes first; listings missing the sorted field come last.
    """
    listings, total = service.get_listings(
        source_id=source_id,
        property_type=property_type,
        price_min=price_min,
        price_max=price_max,
        area_min=area_min,
        area_max=area_max,
        rooms=rooms,
        floor_min=floor_min,
        floor_max=floor_max,
        condition=condition,
        district=district,
        street=street,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )

    return PaginatedListings(
        listings=listings,
        count=len(listings),
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{listing_id}", response_model=ListingRead)
async def get_listing(listing_id: int, service: ListingServiceDep) -> ListingRead:
    """Get a single listing by ID.

    Raises:
        HTTPException: 404 if listing not found.
    """
    listing = service.get_listing(listing_id)
    if listing is None:
        raise HTTPException(status_code=404, detail=f"Listing {listing_id} not found")
    return listing


@router.patch("/{listing_id}", response_model=ListingRead)
async def update_listing(
    listing_id: int,
    update: ListingUpdate,
    service: ListingServiceDep,
) -> ListingRead:
    """Edit typed fields of a listing.

    Only fields present in the body are changed. Unknown fields are rejected.

    Raises:
        HTTPException: 404 if listing not found.
    """
    try:
        return service.update_listing(listing_id, update)
    except ListingNotFoundError:
        raise HTTPException(status_code=404, detail=f"Listing {listing_id} not found") from None


@router.delete("/{listing_id}", response_model=DeleteResponse)
async def delete_listing(
    listing_id: int,
    service: ListingServiceDep,
    reason: str | None = Query(None, max_length=200, description="Why the listing is removed"),
    deleted_by: str | None = Query(None, max_length=100, description="Operator identifier"),
) -> DeleteResponse:
    """Delete a listing and block its post from being ingested again.

    Raises:
        HTTPException: 404 if listing not found.
    """
    try:
        service.delete_listing(listing_id, reason=reason, deleted_by=deleted_by)
    except ListingNotFoundError:
        raise HTTPException(status_code=404, detail=f"Listing {listing_id} not found") from None

    return DeleteResponse(success=True, message=f"Listing {listing_id} deleted")
