"""
Review API Routes
=================

GET    /api/reviews                     - Filtered, paginated reviews
GET    /api/reviews/insights            - Reviews with per-review insight blocks
GET    /api/reviews/metadata            - Distinct channels, categories, statuses
GET    /api/reviews/summary             - Per-listing counts and averages
GET    /api/reviews/export              - JSON or CSV export
POST   /api/reviews/analyze             - Text analysis of stored reviews
POST   /api/reviews/sync                - Pull and ingest channel-manager reviews
GET    /api/reviews/public/{listing_id} - Approved public reviews for one listing
GET    /api/reviews/{review_id}         - One review
PATCH  /api/reviews/{review_id}/status  - Moderation
DELETE /api/reviews/{review_id}         - Archive
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from ..data.config import get_settings
from ..data.hostaway_client import HostawayClient
from ..data.ingestion_pipeline import IngestionPipeline
from ..data.store import ReviewStore
from ..reviews.review_service import ReviewFilters, ReviewService
from .db import get_store
from .models import AnalyzeRequest, ReviewStatusUpdate
from .shared import parse_date, split_ids, success, to_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reviews", tags=["Reviews"])


def _service(store: ReviewStore) -> ReviewService:
    return ReviewService(store, max_page_size=get_settings().api.max_page_size)


def review_filters(
    listingId: Optional[str] = Query(None, description="Listing id"),
    channel: Optional[str] = Query(None, description="hostaway, google, airbnb, booking or direct"),
    approved: Optional[bool] = Query(None, description="Approval state"),
    minRating: Optional[float] = Query(None, ge=0),
    maxRating: Optional[float] = Query(None, ge=0),
    startDate: Optional[str] = Query(None, description="ISO date or datetime"),
    endDate: Optional[str] = Query(None, description="ISO date or datetime"),
    category: Optional[str] = Query(None, description="Category rating name"),
) -> ReviewFilters:
    return ReviewFilters(
        listing_id=listingId,
        channel=channel,
        is_approved=approved,
        min_rating=minRating,
        max_rating=maxRating,
        start_date=parse_date(startDate, "startDate"),
        end_date=parse_date(endDate, "endDate"),
        category=category,
    )


@router.get("")
async def list_reviews(
    filters: ReviewFilters = Depends(review_filters),
    page: int = Query(1, description="1-based page"),
    limit: int = Query(20, description="Page size (capped at 100)"),
    store: ReviewStore = Depends(get_store),
):
    """Reviews matching the filters, newest first."""
    try:
        result = await _service(store).list_reviews(filters, page=page, limit=limit)
        return success([r.to_dict() for r in result.items], pagination=result.pagination())
    except Exception as e:
        raise to_http_error(e, "fetch reviews")


@router.get("/insights")
async def list_reviews_with_insights(
    filters: ReviewFilters = Depends(review_filters),
    store: ReviewStore = Depends(get_store),
):
    try:
        return success(await _service(store).reviews_with_insights(filters))
    except Exception as e:
        raise to_http_error(e, "fetch review insights")


@router.get("/metadata")
async def get_metadata(store: ReviewStore = Depends(get_store)):
    try:
        return success(await _service(store).metadata())
    except Exception as e:
        raise to_http_error(e, "fetch review metadata")


@router.get("/summary")
async def get_summary(
    listingIds: Optional[str] = Query(None, description="Comma-separated listing ids"),
    store: ReviewStore = Depends(get_store),
):
    try:
        return success(await _service(store).summary(split_ids(listingIds)))
    except Exception as e:
        raise to_http_error(e, "summarize reviews")


@router.get("/export")
async def export_reviews(
    format: str = Query("json", pattern="^(json|csv)$"),
    filters: ReviewFilters = Depends(review_filters),
    store: ReviewStore = Depends(get_store),
):
    """Every matching review, as JSON or as a CSV attachment."""
    try:
        service = _service(store)
        reviews = await service.export(filters)
        if format == "csv":
            return Response(
                content=service.to_csv(reviews),
                media_type="text/csv",
                headers={"Content-Disposition": "attachment; filename=reviews.csv"},
            )
        return success([r.to_dict() for r in reviews], count=len(reviews))
    except Exception as e:
        raise to_http_error(e, "export reviews")


@router.post("/analyze")
async def analyze_reviews(request: AnalyzeRequest, store: ReviewStore = Depends(get_store)):
    try:
        results = await _service(store).analyze_reviews(
            request.reviewIds, request.includeSentiment, request.includeKeywords,
        )
        return success(results)
    except Exception as e:
        raise to_http_error(e, "analyze reviews")


@router.post("/sync")
async def sync_reviews(store: ReviewStore = Depends(get_store)):
    """Pull channel-manager reviews (mock data without an API key) and ingest them."""
    try:
        client = HostawayClient()
        result = await IngestionPipeline(store).sync_source(client, "hostaway")
        message = f"Sync completed: {result.imported} new, {result.updated} updated, {result.failed} errors"
        return success(result.to_dict(), message=message, isMockData=client.using_mock)
    except Exception as e:
        raise to_http_error(e, "sync reviews")


@router.get("/public/{listing_id}")
async def public_reviews(listing_id: str, store: ReviewStore = Depends(get_store)):
    """Display feed: approved and public reviews only."""
    try:
        reviews = await _service(store).public_reviews(listing_id)
        return success([r.to_dict() for r in reviews], count=len(reviews))
    except Exception as e:
        raise to_http_error(e, "fetch public reviews")


@router.get("/{review_id}")
async def get_review(review_id: str, store: ReviewStore = Depends(get_store)):
    try:
        review = await _service(store).get_review(review_id)
        return success(review.to_dict())
    except Exception as e:
        raise to_http_error(e, "fetch review")


@router.patch("/{review_id}/status")
async def update_review_status(
    review_id: str,
    update: ReviewStatusUpdate,
    store: ReviewStore = Depends(get_store),
):
    """
    Apply a moderation decision.

    Only the supplied fields change; listing rollups follow approval changes.
    """
    try:
        review = await _service(store).update_status(
            review_id,
            is_approved=update.isApproved,
            is_public=update.isPublic,
            manager_notes=update.managerNotes,
            status=update.status.value if update.status else None,
        )
        return success(review.to_dict(), message="Review status updated successfully")
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_error(e, "update review status")


@router.delete("/{review_id}")
async def archive_review(review_id: str, store: ReviewStore = Depends(get_store)):
    """Soft delete: the review is archived and hidden, never removed."""
    try:
        review = await _service(store).archive_review(review_id)
        return success(review.to_dict(), message="Review archived successfully")
    except Exception as e:
        raise to_http_error(e, "archive review")
