"""
Dashboard API Routes
====================

GET /api/dashboard/performance         - Per-listing scorecards
GET /api/dashboard/trends              - Rating trends by period
GET /api/dashboard/issues              - Flagged problems grouped by category
GET /api/dashboard/quick-stats         - Headline numbers
GET /api/dashboard/report/{listing_id} - Narrative report for one listing
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..data.store import ReviewStore
from ..reviews.analytics import ReviewAnalytics
from .db import get_store
from .shared import split_ids, success, to_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get("/performance")
async def property_performance(
    timeframe: str = Query("30d", description="7d, 30d, 90d or 1y"),
    listingIds: Optional[str] = Query(None, description="Comma-separated listing ids"),
    store: ReviewStore = Depends(get_store),
):
    try:
        data = await ReviewAnalytics(store).property_performance(timeframe, split_ids(listingIds))
        return success(data)
    except Exception as e:
        raise to_http_error(e, "compute property performance")


@router.get("/trends")
async def rating_trends(
    listingId: Optional[str] = Query(None),
    interval: str = Query("month", description="day, week, month or year"),
    store: ReviewStore = Depends(get_store),
):
    try:
        return success(await ReviewAnalytics(store).trends(listingId, interval))
    except Exception as e:
        raise to_http_error(e, "compute trends")


@router.get("/issues")
async def issues(
    priority: str = Query("all", pattern="^(all|high|medium|low)$"),
    listingId: Optional[str] = Query(None),
    store: ReviewStore = Depends(get_store),
):
    try:
        return success(await ReviewAnalytics(store).issues(priority, listingId))
    except Exception as e:
        raise to_http_error(e, "compute issues")


@router.get("/quick-stats")
async def quick_stats(
    timeframe: str = Query("30d", description="7d, 30d, 90d, 1y or all"),
    listingId: Optional[str] = Query(None),
    store: ReviewStore = Depends(get_store),
):
    try:
        return success(await ReviewAnalytics(store).quick_stats(timeframe, listingId))
    except Exception as e:
        raise to_http_error(e, "compute quick stats")


@router.get("/report/{listing_id}")
async def listing_report(
    listing_id: str,
    timeframe: str = Query("90d"),
    store: ReviewStore = Depends(get_store),
):
    try:
        return success(await ReviewAnalytics(store).listing_report(listing_id, timeframe))
    except Exception as e:
        raise to_http_error(e, "build listing report")
