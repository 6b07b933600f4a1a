"""
Guest Review Engine
===================

Canonical review model, normalization and analytics for guest reviews
collected from booking channels.

Modules:
    review_models - Review, Listing, SyncResult, Issue, IssueEntry and channel enums
    review_signals - Deterministic sentiment and keyword heuristics
    normalizer - Channel payload -> canonical Review
    listing_resolver - Listing ids, lazy listing creation, rollup stats
    review_insights - Pure aggregation over review sets
    analytics - Dashboard views over the store
    review_service - Listing, moderation and export operations
"""

from .review_models import (
    CategoryRating,
    Channel,
    Issue,
    IssueEntry,
    Listing,
    Review,
    ReviewStatus,
    ReviewType,
    SyncResult,
)
from .review_signals import score_sentiment, detect_keyword_mentions, ISSUE_KEYWORDS
from .listing_resolver import ListingResolver, ListingNotFoundError, slugify
from .normalizer import ReviewNormalizer, UnsupportedSourceError
from .analytics import ReviewAnalytics
from .review_service import ReviewService, ReviewFilters, ReviewNotFoundError
