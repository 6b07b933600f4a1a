"""
Review Analytics Engine
=======================

Read-only dashboard computations over the review store.

Views:
    - property_performance: per-listing scorecards over a timeframe
    - trends: rating and sentiment share per day / week / month / year
    - issues: flagged problems flattened from individual reviews
    - quick_stats: headline counts and rates
    - listing_report: narrative report for one listing

All views are scoped to approved reviews except quick_stats, which reports
across every status, and listing_report, which covers everything submitted
in its window. Empty inputs produce zeros and empty lists, never errors.

Usage:
    analytics = ReviewAnalytics(store)
    performance = await analytics.property_performance(timeframe="90d")
    trends = await analytics.trends(listing_id="2b-n1-a-29-shoreditch-heights", interval="week")
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from ..data.store import LISTINGS, PERIOD_FORMATS, REVIEWS, ReviewStore, period_key
from .listing_resolver import ListingResolver
from .review_insights import (
    business_recommendations,
    category_breakdown,
    channel_breakdown,
    identify_improvement_areas,
    identify_strengths,
    mean_rating,
    performance_recommendations,
    rating_distribution,
    recurring_issues,
    response_rate,
    review_issue_entries,
    sentiment_balance,
)
from .review_models import Listing, Review, utc_now

logger = logging.getLogger(__name__)

TIMEFRAME_DAYS = {"7d": 7, "30d": 30, "90d": 90}
DEFAULT_TIMEFRAME = "30d"
PERFORMANCE_TIMEFRAMES = ("7d", "30d", "90d", "1y")
DEFAULT_INTERVAL = "month"
PRIORITIES = ("high", "medium", "low")
RECENT_ISSUES_LIMIT = 20
TOP_N = 5


def resolve_window(timeframe: Optional[str], now: Optional[datetime] = None) -> Tuple[Optional[datetime], datetime]:
    """
    Map a timeframe tag to (start, end).

    7d / 30d / 90d / 1y; "all" gives an unbounded start; anything else 30d.
    """
    end = now or utc_now()
    if timeframe == "all":
        return None, end
    if timeframe == "1y":
        try:
            return end.replace(year=end.year - 1), end
        except ValueError:
            # Feb 29 -> Feb 28
            return end.replace(year=end.year - 1, day=28), end
    days = TIMEFRAME_DAYS.get(timeframe or DEFAULT_TIMEFRAME, TIMEFRAME_DAYS[DEFAULT_TIMEFRAME])
    return end - timedelta(days=days), end


def window_filter(start: Optional[datetime], end: datetime) -> Dict[str, Any]:
    condition: Dict[str, Any] = {"$lte": end}
    if start is not None:
        condition["$gte"] = start
    return condition


def percentage(part: int, whole: int, digits: int = 2) -> float:
    if whole == 0:
        return 0.0
    return round(part / whole * 100, digits)


class ReviewAnalytics:
    """Dashboard analytics over a ReviewStore."""

    def __init__(self, store: ReviewStore, resolver: Optional[ListingResolver] = None):
        self.store = store
        self.resolver = resolver or ListingResolver(store)

    async def _reviews(self, filter: Dict[str, Any], sort=None) -> List[Review]:
        docs = await self.store.find(REVIEWS, filter, sort=sort)
        return [Review.from_doc(doc) for doc in docs]

    # =========================================================================
    # Property performance
    # =========================================================================

    @staticmethod
    def summarize_property(listing: Listing, reviews: List[Review]) -> Dict[str, Any]:
        """Scorecard for one listing over an already-windowed review set."""
        categories = category_breakdown(reviews)
        return {
            "listingId": listing.listing_id,
            "listingName": listing.name,
            "address": listing.address or "Unknown",
            "totalReviews": len(reviews),
            "averageRating": round(mean_rating(reviews), 2),
            "sentimentScore": round(sentiment_balance(reviews), 2),
            "categoryAverages": sorted(categories, key=lambda c: c["averageRating"], reverse=True),
            "channelBreakdown": channel_breakdown(reviews),
            "issues": [issue.to_dict() for issue in recurring_issues(reviews)],
            "recommendations": performance_recommendations(reviews, categories),
        }

    async def property_performance(
        self,
        timeframe: str = DEFAULT_TIMEFRAME,
        listing_ids: Optional[List[str]] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Per-listing scorecards for active listings, best rated first.

        Args:
            timeframe: 7d, 30d, 90d or 1y; anything else (including "all") is 30d
            listing_ids: Restrict to these listings
            now: Window end (defaults to the current time)

        Returns:
            {"timeframe": {start, end}, "overall": {...}, "properties": [...]}
        """
        if timeframe not in PERFORMANCE_TIMEFRAMES:
            timeframe = DEFAULT_TIMEFRAME
        start, end = resolve_window(timeframe, now)
        listings = await self.resolver.list_listings(active_only=True, listing_ids=listing_ids)

        properties = []
        for listing in listings:
            reviews = await self._reviews({
                "listing_id": listing.listing_id,
                "submitted_at": window_filter(start, end),
                "is_approved": True,
            })
            properties.append(self.summarize_property(listing, reviews))

        properties.sort(key=lambda p: p["averageRating"], reverse=True)

        overall_avg = (
            sum(p["averageRating"] for p in properties) / len(properties) if properties else 0.0
        )
        logger.info(f"Performance computed for {len(properties)} listings ({timeframe})")
        return {
            "timeframe": {"start": start.isoformat() if start else None, "end": end.isoformat()},
            "overall": {
                "totalProperties": len(properties),
                "totalReviews": sum(p["totalReviews"] for p in properties),
                "averageRating": round(overall_avg, 2),
                "topPerforming": properties[:TOP_N],
                "needsAttention": list(reversed(properties[-TOP_N:])),
            },
            "properties": properties,
        }

    # =========================================================================
    # Trends
    # =========================================================================

    async def trends(self, listing_id: Optional[str] = None, interval: str = DEFAULT_INTERVAL) -> List[Dict[str, Any]]:
        """
        Approved reviews bucketed by period, oldest first.

        Buckets use strftime keys: day %Y-%m-%d, week %Y-%U (Sunday-start
        weeks), month %Y-%m, year %Y. Unknown intervals fall back to month.
        """
        if interval not in PERIOD_FORMATS:
            interval = DEFAULT_INTERVAL
        filter: Dict[str, Any] = {"is_approved": True}
        if listing_id:
            filter["listing_id"] = listing_id

        buckets = await self.store.aggregate_by_period(REVIEWS, filter, "submitted_at", interval)
        return [
            {
                "date": bucket["period"],
                "avgRating": round(bucket["rating_sum"] / bucket["rating_count"], 2) if bucket["rating_count"] else 0.0,
                "totalReviews": bucket["count"],
                "positivePercentage": percentage(bucket["positive"], bucket["count"]),
                "negativePercentage": percentage(bucket["negative"], bucket["count"]),
            }
            for bucket in buckets
        ]

    # =========================================================================
    # Issues
    # =========================================================================

    async def issues(self, priority: str = "all", listing_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Issue rows from approved reviews, grouped by (listing, category).

        Args:
            priority: "all", "high", "medium" or "low"
            listing_id: Restrict to one listing
        """
        filter: Dict[str, Any] = {"is_approved": True}
        if listing_id:
            filter["listing_id"] = listing_id

        entries = []
        for review in await self._reviews(filter):
            entries.extend(review_issue_entries(review))
        if priority and priority != "all":
            entries = [e for e in entries if e.priority == priority]

        groups: Dict[Tuple[str, str], Dict[str, Any]] = {}
        for entry in entries:
            key = (entry.listing_id, entry.category)
            group = groups.get(key)
            if group is None:
                group = groups[key] = {
                    "listingId": entry.listing_id,
                    "category": entry.category,
                    "issues": [],
                    "count": 0,
                    "priorityCounts": {p: 0 for p in PRIORITIES},
                }
            group["issues"].append(entry.to_dict())
            group["count"] += 1
            group["priorityCounts"][entry.priority] = group["priorityCounts"].get(entry.priority, 0) + 1

        recent = sorted(entries, key=lambda e: e.submitted_at, reverse=True)[:RECENT_ISSUES_LIMIT]
        return {
            "totalIssues": len(entries),
            "byPriority": {p: sum(1 for e in entries if e.priority == p) for p in PRIORITIES},
            "byCategory": sorted(groups.values(), key=lambda g: g["count"], reverse=True),
            "recentIssues": [e.to_dict() for e in recent],
        }

    # =========================================================================
    # Quick stats
    # =========================================================================

    async def quick_stats(
        self,
        timeframe: str = DEFAULT_TIMEFRAME,
        listing_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Headline numbers across every status; "all" drops the time bound."""
        start, end = resolve_window(timeframe, now)
        scope: Dict[str, Any] = {"submitted_at": window_filter(start, end)}
        if listing_id:
            scope["listing_id"] = listing_id

        reviews = await self._reviews(scope)
        total = len(reviews)
        approved = sum(1 for r in reviews if r.is_approved)

        last_week_start = end - timedelta(days=7)
        if start is not None and start > last_week_start:
            last_week_start = start
        last_week = [r for r in reviews if r.submitted_at >= last_week_start]

        listing_scope: Dict[str, Any] = {"is_active": True}
        if listing_id:
            listing_scope["listing_id"] = listing_id

        return {
            "totals": {
                "reviews": total,
                "approved": approved,
                "pending": total - approved,
                "listings": await self.store.count(LISTINGS, listing_scope),
                "channels": len({r.channel for r in reviews}),
            },
            "averages": {
                "rating": round(mean_rating(reviews), 2),
                "approvalRate": percentage(approved, total, digits=1),
            },
            "recent": {
                "last7Days": len(last_week),
                "newReviews": sum(1 for r in last_week if not r.is_approved),
            },
            "health": {
                "responseRate": round(response_rate(reviews), 1),
                "issues": sum(1 for r in reviews if r.rating is not None and r.rating <= 2),
            },
        }

    # =========================================================================
    # Listing report
    # =========================================================================

    @staticmethod
    def category_trends(reviews: List[Review]) -> List[Dict[str, Any]]:
        """Monthly average per category, ordered by category then month."""
        buckets: Dict[Tuple[str, str], List[float]] = defaultdict(list)
        for review in reviews:
            month = period_key(review.submitted_at, "month")
            for cat in review.category_ratings:
                buckets[(cat.category, month)].append(cat.rating)
        return [
            {"category": category, "date": month, "avgRating": round(sum(s) / len(s), 2), "count": len(s)}
            for (category, month), s in sorted(buckets.items())
        ]

    async def listing_report(
        self,
        listing_id: str,
        timeframe: str = DEFAULT_TIMEFRAME,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Narrative report for one listing.

        Raises:
            ListingNotFoundError: If the listing does not exist
        """
        listing = await self.resolver.get_listing(listing_id)
        start, end = resolve_window(timeframe, now)
        reviews = await self._reviews({"listing_id": listing_id, "submitted_at": window_filter(start, end)})
        approved = await self._reviews({"listing_id": listing_id, "is_approved": True})
        categories = category_breakdown(reviews)

        return {
            "listing": {
                "listingId": listing.listing_id,
                "name": listing.name,
                "address": listing.address,
                "totalReviews": listing.total_reviews,
                "averageRating": listing.average_rating,
            },
            "timeframe": {"start": start.isoformat() if start else None, "end": end.isoformat()},
            "summary": {
                "totalReviews": len(reviews),
                "averageRating": round(mean_rating(reviews), 2),
                "ratingDistribution": rating_distribution(reviews),
                "categoryBreakdown": categories,
            },
            "trends": {
                "monthly": await self.trends(listing_id=listing_id, interval="month"),
                "category": self.category_trends(approved),
            },
            "insights": {
                "strengths": identify_strengths(reviews, categories),
                "areasForImprovement": identify_improvement_areas(reviews, categories),
                "recommendations": business_recommendations(reviews, categories),
            },
            "notableReviews": {
                "best": [r.to_dict() for r in reviews if r.rating == 5][:TOP_N],
                "critical": [r.to_dict() for r in reviews if r.rating is not None and r.rating <= 2][:TOP_N],
            },
        }
