"""
Listing routes: the property data source behind map search sessions.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import ListingRepository
from dependencies import get_db
from api.schemas import (
    BulkListingRequest,
    BulkListingResponse,
    ListingPage,
    ListingResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/", response_model=ListingPage)
async def list_listings(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    """List raw listings with pagination."""
    repo = ListingRepository(db)
    listings = repo.list_page(page=page, page_size=page_size)
    return ListingPage(
        listings=[ListingResponse.model_validate(listing) for listing in listings],
        total=repo.count(),
        page=page,
        page_size=page_size,
    )


@router.get("/{listing_id}", response_model=ListingResponse)
async def get_listing(listing_id: int, db: Session = Depends(get_db)):
    """Get a single raw listing."""
    listing = ListingRepository(db).get(listing_id)
    if listing is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    return ListingResponse.model_validate(listing)


@router.post("/bulk", response_model=BulkListingResponse, status_code=201)
async def bulk_create_listings(
    request: BulkListingRequest, db: Session = Depends(get_db)
):
    """Create many listings at once. Prices are kept in their original encoding."""
    created = ListingRepository(db).bulk_create(
        listing.model_dump() for listing in request.listings
    )
    return BulkListingResponse(
        created=len(created), ids=[listing.id for listing in created]
    )
