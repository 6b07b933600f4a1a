"""
Review Service
==============

Query and moderation operations behind the review endpoints.

Features:
    - Filtered, paginated review listing (newest first)
    - Moderation: approve / publish / annotate / archive (never hard-delete)
    - Public display feed (approved AND public only)
    - Metadata, per-listing summary, CSV export and ad-hoc text analysis

Usage:
    service = ReviewService(store)
    page = await service.list_reviews(ReviewFilters(listing_id="..."), page=1, limit=20)
    review = await service.update_status(review_id, is_approved=True, is_public=True)
"""

import csv
import io
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..data.store import LISTINGS, REVIEWS, ReviewStore
from .listing_resolver import ListingResolver
from .review_insights import review_insight
from .review_models import Review, ReviewStatus, ReviewValidationError, utc_now
from .review_signals import extract_keywords, score_sentiment

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
MAX_MANAGER_NOTES = 500

CSV_HEADERS = [
    "ID", "Guest Name", "Rating", "Review", "Listing",
    "Submitted At", "Channel", "Status", "Approved", "Public",
]


class ReviewNotFoundError(LookupError):
    """Raised when a review id does not resolve."""

    def __init__(self, review_id: str):
        super().__init__(f"Review not found: {review_id}")
        self.review_id = review_id


@dataclass
class ReviewFilters:
    """Optional constraints for review listings and exports."""
    listing_id: Optional[str] = None
    channel: Optional[str] = None
    is_approved: Optional[bool] = None
    min_rating: Optional[float] = None
    max_rating: Optional[float] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    category: Optional[str] = None

    def to_filter(self) -> Dict[str, Any]:
        filter: Dict[str, Any] = {}
        if self.listing_id:
            filter["listing_id"] = self.listing_id
        if self.channel:
            filter["channel"] = self.channel
        if self.is_approved is not None:
            filter["is_approved"] = self.is_approved
        if self.min_rating is not None or self.max_rating is not None:
            rating: Dict[str, Any] = {}
            if self.min_rating is not None:
                rating["$gte"] = self.min_rating
            if self.max_rating is not None:
                rating["$lte"] = self.max_rating
            filter["rating"] = rating
        if self.start_date or self.end_date:
            submitted: Dict[str, Any] = {}
            if self.start_date:
                submitted["$gte"] = self.start_date
            if self.end_date:
                submitted["$lte"] = self.end_date
            filter["submitted_at"] = submitted
        if self.category:
            filter["category_ratings.category"] = self.category
        return filter


@dataclass
class ReviewPage:
    items: List[Review]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> Dict[str, int]:
        return {"page": self.page, "limit": self.limit, "total": self.total, "pages": self.pages}


def clamp_page(page: Optional[int], limit: Optional[int], max_limit: int = MAX_PAGE_SIZE) -> tuple:
    """page >= 1 and 1 <= limit <= max_limit."""
    page = max(int(page or 1), 1)
    limit = int(limit or DEFAULT_PAGE_SIZE)
    return page, min(max(limit, 1), max_limit)


class ReviewService:
    """Review queries and moderation over a ReviewStore."""

    def __init__(self, store: ReviewStore, resolver: Optional[ListingResolver] = None, max_page_size: int = MAX_PAGE_SIZE):
        self.store = store
        self.resolver = resolver or ListingResolver(store)
        self.max_page_size = max_page_size

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_reviews(
        self,
        filters: Optional[ReviewFilters] = None,
        page: Optional[int] = 1,
        limit: Optional[int] = DEFAULT_PAGE_SIZE,
    ) -> ReviewPage:
        """
        Filtered reviews, newest first.

        Args:
            filters: Optional constraints
            page: 1-based page number (values below 1 read as 1)
            limit: Page size, capped at the configured maximum

        Returns:
            ReviewPage with items and pagination totals
        """
        page, limit = clamp_page(page, limit, self.max_page_size)
        filter = (filters or ReviewFilters()).to_filter()
        docs = await self.store.find(
            REVIEWS, filter, sort=[("submitted_at", -1)], skip=(page - 1) * limit, limit=limit
        )
        total = await self.store.count(REVIEWS, filter)
        return ReviewPage(items=[Review.from_doc(d) for d in docs], page=page, limit=limit, total=total)

    async def get_review(self, review_id: str) -> Review:
        doc = await self.store.find_one(REVIEWS, {"id": review_id})
        if doc is None:
            raise ReviewNotFoundError(review_id)
        return Review.from_doc(doc)

    async def public_reviews(self, listing_id: str) -> List[Review]:
        """Display feed for one listing: approved and public only."""
        docs = await self.store.find(
            REVIEWS,
            {"listing_id": listing_id, "is_approved": True, "is_public": True},
            sort=[("submitted_at", -1)],
        )
        return [Review.from_doc(d) for d in docs]

    async def reviews_with_insights(self, filters: Optional[ReviewFilters] = None) -> List[Dict[str, Any]]:
        docs = await self.store.find(REVIEWS, (filters or ReviewFilters()).to_filter(), sort=[("submitted_at", -1)])
        results = []
        for doc in docs:
            review = Review.from_doc(doc)
            results.append({**review.to_dict(), "insights": review_insight(review)})
        return results

    # =========================================================================
    # Moderation
    # =========================================================================

    async def update_status(
        self,
        review_id: str,
        is_approved: Optional[bool] = None,
        is_public: Optional[bool] = None,
        manager_notes: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Review:
        """
        Apply a moderation decision. Only supplied fields change.

        Raises:
            ReviewNotFoundError: Unknown review id
            ReviewValidationError: Notes too long or unknown status
        """
        changes: Dict[str, Any] = {}
        if is_approved is not None:
            changes["is_approved"] = bool(is_approved)
        if is_public is not None:
            changes["is_public"] = bool(is_public)
        if manager_notes is not None:
            if len(manager_notes) > MAX_MANAGER_NOTES:
                raise ReviewValidationError(f"managerNotes cannot exceed {MAX_MANAGER_NOTES} characters")
            changes["manager_notes"] = manager_notes
        if status is not None:
            try:
                changes["status"] = ReviewStatus(status).value
            except ValueError:
                raise ReviewValidationError(f"Unknown status: {status}")

        if not changes:
            return await self.get_review(review_id)

        changes["updated_at"] = utc_now()
        doc = await self.store.update_one(REVIEWS, {"id": review_id}, changes)
        if doc is None:
            raise ReviewNotFoundError(review_id)

        review = Review.from_doc(doc)
        logger.info(
            f"Review {review.external_id} moderated: {sorted(k for k in changes if k != 'updated_at')}",
            extra={"external_id": review.external_id, "listing_id": review.listing_id},
        )
        if review.listing_id and ("is_approved" in changes or "status" in changes):
            await self.resolver.recompute_stats(review.listing_id)
        return review

    async def archive_review(self, review_id: str) -> Review:
        """Soft delete: archived, hidden and unapproved; the row stays."""
        return await self.update_status(
            review_id, is_approved=False, is_public=False, status=ReviewStatus.ARCHIVED.value
        )

    # =========================================================================
    # Reporting helpers
    # =========================================================================

    async def metadata(self) -> Dict[str, Any]:
        return {
            "channels": await self.store.distinct(REVIEWS, "channel"),
            "categories": await self.store.distinct(REVIEWS, "category_ratings.category"),
            "statuses": await self.store.distinct(REVIEWS, "status"),
            "types": await self.store.distinct(REVIEWS, "type"),
            "counts": {
                "total": await self.store.count(REVIEWS),
                "approved": await self.store.count(REVIEWS, {"is_approved": True}),
                "public": await self.store.count(REVIEWS, {"is_public": True}),
            },
        }

    async def summary(self, listing_ids: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Per-listing review count, mean rating and approval rate."""
        filter: Dict[str, Any] = {}
        if listing_ids:
            filter["listing_id"] = {"$in": list(listing_ids)}
        docs = await self.store.find(REVIEWS, filter)
        listing_docs = await self.store.find(LISTINGS, filter)
        names = {d["listing_id"]: d.get("name") for d in listing_docs}

        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for doc in docs:
            grouped.setdefault(doc.get("listing_id") or "", []).append(doc)

        summary = []
        for listing_id, items in sorted(grouped.items()):
            ratings = [d["rating"] for d in items if d.get("rating") is not None]
            approved = sum(1 for d in items if d.get("is_approved"))
            summary.append({
                "listingId": listing_id,
                "listingName": names.get(listing_id) or "Unknown",
                "totalReviews": len(items),
                "averageRating": round(sum(ratings) / len(ratings), 2) if ratings else 0.0,
                "approvalRate": round(approved / len(items) * 100, 2),
            })
        return summary

    async def export(self, filters: Optional[ReviewFilters] = None) -> List[Review]:
        docs = await self.store.find(REVIEWS, (filters or ReviewFilters()).to_filter(), sort=[("submitted_at", -1)])
        return [Review.from_doc(d) for d in docs]

    @staticmethod
    def to_csv(reviews: List[Review]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_HEADERS)
        for r in reviews:
            writer.writerow([
                r.id or "",
                r.guest_name,
                "" if r.rating is None else f"{r.rating:g}",
                r.text,
                r.listing_name,
                r.submitted_at.isoformat(),
                r.channel,
                r.status,
                "Yes" if r.is_approved else "No",
                "Yes" if r.is_public else "No",
            ])
        return buffer.getvalue()

    @staticmethod
    def analyze_text(text: str, with_sentiment: bool = True, with_keywords: bool = True) -> Dict[str, Any]:
        return {
            "sentiment": score_sentiment(text) if with_sentiment else None,
            "wordCount": len(text.split()),
            "characterCount": len(text),
            "keywords": extract_keywords(text) if with_keywords else [],
        }

    async def analyze_reviews(
        self, review_ids: List[str], with_sentiment: bool = True, with_keywords: bool = True
    ) -> List[Dict[str, Any]]:
        docs = await self.store.find(REVIEWS, {"id": {"$in": list(review_ids)}})
        results = []
        for doc in docs:
            review = Review.from_doc(doc)
            analysis = self.analyze_text(review.text, with_sentiment, with_keywords)
            analysis.update({"reviewId": review.id, "rating": review.rating})
            results.append(analysis)
        return results
