"""
Statistics routes: one-off summaries without a search session.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from database import ListingRepository
from dependencies import get_db
from models import MapStatistics
from api.schemas import StatisticsRequest
from api.services.price_normalizer import normalize_properties
from api.services.viewport_sync import derive_state

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/summary", response_model=MapStatistics)
async def get_summary(request: StatisticsRequest, db: Session = Depends(get_db)):
    """Statistics for all listings inside ``bounds`` and the settings' price range."""
    records = ListingRepository(db).load_records()
    properties = normalize_properties(records)
    derived = await run_in_threadpool(
        derive_state, properties, request.bounds, request.settings
    )
    logger.info(
        "Summary over %d listings: %d match", len(properties), derived.statistics.total_count
    )
    return derived.statistics
