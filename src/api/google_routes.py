"""
Google Places API Routes
========================

GET  /api/google/reviews - Place reviews for a listing or place id (cached)
GET  /api/google/search  - Find places by text
POST /api/google/connect - Attach a place to a listing and pull its reviews
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..data.places_service import PlacesReviewService
from ..data.store import ReviewStore
from .db import get_store
from .models import ConnectPlaceRequest
from .shared import success, to_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/google", tags=["Google"])


@router.get("/reviews")
async def place_reviews(
    placeId: Optional[str] = Query(None),
    listingId: Optional[str] = Query(None),
    forceRefresh: bool = Query(False),
    store: ReviewStore = Depends(get_store),
):
    """Stored reviews while fresh, otherwise a sync from the Places API."""
    try:
        data = await PlacesReviewService(store).get_reviews(placeId, listingId, force_refresh=forceRefresh)
        return success(data)
    except Exception as e:
        raise to_http_error(e, "fetch Google reviews")


@router.get("/search")
async def search_places(
    query: str = Query(..., min_length=1),
    location: Optional[str] = Query(None, description="lat,lng bias"),
    store: ReviewStore = Depends(get_store),
):
    try:
        return success(await PlacesReviewService(store).search(query, location))
    except Exception as e:
        raise to_http_error(e, "search places")


@router.post("/connect")
async def connect_place(request: ConnectPlaceRequest, store: ReviewStore = Depends(get_store)):
    try:
        data = await PlacesReviewService(store).connect_listing(request.listingId, request.placeId)
        return success(data, message="Google Place connected successfully")
    except Exception as e:
        raise to_http_error(e, "connect Google place")
