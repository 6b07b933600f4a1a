"""
Place Review Service
====================

Serves Google place reviews for a listing or a raw place id, reusing stored
reviews while they are fresh and re-syncing through the ingestion pipeline
otherwise.

Freshness is judged on the most recently updated stored review for the
target listing; the window is `GOOGLE_FRESHNESS_HOURS` (default 24).

Usage:
    service = PlacesReviewService(store)
    result = await service.get_reviews(listing_id="2b-n1-a-29-shoreditch-heights")
    print(result["source"], result["statistics"]["averageRating"])
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .config import GoogleConfig, get_settings
from .google_places_client import GooglePlacesClient
from .ingestion_pipeline import IngestionPipeline
from .store import REVIEWS, ReviewStore
from ..reviews.listing_resolver import ListingNotFoundError, ListingResolver
from ..reviews.review_models import Channel, Review, ReviewValidationError, utc_now

logger = logging.getLogger(__name__)

CACHED_REVIEW_LIMIT = 10


def rating_statistics(reviews: List[Review]) -> Dict[str, Any]:
    ratings = [r.rating for r in reviews if r.rating is not None]
    return {
        "total": len(reviews),
        "averageRating": round(sum(ratings) / len(ratings), 2) if ratings else 0.0,
        "byRating": {star: sum(1 for r in ratings if r == star) for star in (5, 4, 3, 2, 1)},
    }


class PlacesReviewService:
    """Cached access to place reviews."""

    def __init__(
        self,
        store: ReviewStore,
        client: Optional[GooglePlacesClient] = None,
        pipeline: Optional[IngestionPipeline] = None,
        config: Optional[GoogleConfig] = None,
    ):
        self.store = store
        self.config = config or get_settings().google
        self.client = client or GooglePlacesClient(self.config)
        self.pipeline = pipeline or IngestionPipeline(store)
        self.resolver = self.pipeline.resolver

    async def resolve_place(self, place_id: Optional[str], listing_id: Optional[str]) -> str:
        """
        Raises:
            ReviewValidationError: Neither a place nor a listing was given
            ListingNotFoundError: The listing is unknown or has no place attached
        """
        if place_id:
            return place_id
        if not listing_id:
            raise ReviewValidationError("Either placeId or listingId is required")
        listing = await self.resolver.get_listing(listing_id)
        if not listing.google_place_id:
            raise ListingNotFoundError(listing_id, "Google Place ID not configured for this listing")
        return listing.google_place_id

    def is_fresh(self, updated_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
        if updated_at is None:
            return False
        age = (now or utc_now()) - updated_at
        return age < timedelta(hours=self.config.freshness_hours)

    async def stored_reviews(self, listing_id: str, limit: Optional[int] = CACHED_REVIEW_LIMIT) -> List[Review]:
        docs = await self.store.find(
            REVIEWS,
            {"channel": Channel.GOOGLE.value, "listing_id": listing_id},
            sort=[("updated_at", -1)],
            limit=limit,
        )
        return [Review.from_doc(doc) for doc in docs]

    async def get_reviews(
        self,
        place_id: Optional[str] = None,
        listing_id: Optional[str] = None,
        force_refresh: bool = False,
    ) -> Dict[str, Any]:
        """
        Place reviews plus rating statistics.

        Returns:
            {"placeId", "listingId", "reviews", "statistics", "lastUpdated",
             "source": "cache" | "google-api" | "mock", "isMockData", "sync"}
        """
        target_place = await self.resolve_place(place_id, listing_id)
        target_listing = listing_id or f"google-{target_place}"

        if not force_refresh:
            cached = await self.stored_reviews(target_listing)
            if cached and self.is_fresh(cached[0].updated_at):
                logger.info(
                    f"Using cached Google reviews ({len(cached)} reviews)",
                    extra={"listing_id": target_listing, "channel": "google"},
                )
                return {
                    "placeId": target_place,
                    "listingId": target_listing,
                    "reviews": [r.to_dict() for r in cached],
                    "statistics": rating_statistics(cached),
                    "lastUpdated": cached[0].updated_at.isoformat(),
                    "source": "cache",
                    "isMockData": False,
                    "sync": None,
                }

        payloads = await asyncio.to_thread(self.client.fetch_batch, target_place, listing_id)
        result = await self.pipeline.sync_batch(payloads, Channel.GOOGLE.value)
        reviews = await self.stored_reviews(target_listing, limit=None)

        return {
            "placeId": target_place,
            "listingId": target_listing,
            "reviews": [r.to_dict() for r in reviews],
            "statistics": rating_statistics(reviews),
            "lastUpdated": utc_now().isoformat(),
            "source": "mock" if self.client.using_mock else "google-api",
            "isMockData": self.client.using_mock,
            "sync": result.to_dict(),
        }

    async def search(self, query: str, location: Optional[str] = None) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self.client.search_place, query, location)

    async def connect_listing(self, listing_id: str, place_id: str) -> Dict[str, Any]:
        """
        Attach a place to a listing and pull its reviews straight away.

        Raises:
            ListingNotFoundError: Unknown listing
        """
        listing = await self.resolver.connect_place(listing_id, place_id)
        reviews = await self.get_reviews(place_id=place_id, listing_id=listing_id, force_refresh=True)
        return {"listing": listing.to_dict(), "reviews": reviews}
