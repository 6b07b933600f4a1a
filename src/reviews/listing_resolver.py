"""
Listing Resolver
================

Derives stable listing identifiers from display names, makes sure a listing
row exists before its reviews land, and keeps the per-listing rollups
(total approved rated reviews, mean rating, last sync time) in step with the
review set.

Usage:
    resolver = ListingResolver(store)
    await resolver.ensure_listing("2b-n1-a-29-shoreditch-heights", "2B N1 A - 29 Shoreditch Heights")
    listing = await resolver.recompute_stats("2b-n1-a-29-shoreditch-heights")
"""

import logging
import re
from typing import List, Optional

from ..data.store import LISTINGS, REVIEWS, ReviewStore
from .review_models import Listing, utc_now

logger = logging.getLogger(__name__)

PLACEHOLDER = "TBD"


class ListingNotFoundError(LookupError):
    """Raised when an operation targets a listing that does not exist."""

    def __init__(self, listing_id: str, reason: str = "Listing not found"):
        super().__init__(f"{reason}: {listing_id}")
        self.listing_id = listing_id


def slugify(name: Optional[str]) -> str:
    """
    Lowercase, non-alphanumerics to '-', collapse runs, trim edge dashes.

    Idempotent: slugify(slugify(x)) == slugify(x).
    """
    if not name:
        return ""
    slug = re.sub(r"[^a-z0-9]", "-", name.lower())
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def placeholder_listing(listing_id: str, name: Optional[str] = None, source: Optional[str] = None) -> dict:
    """Fields a listing gets when it is first created from a review."""
    now = utc_now()
    return {
        "listing_id": listing_id,
        "name": name or listing_id,
        "address": PLACEHOLDER,
        "city": PLACEHOLDER,
        "country": PLACEHOLDER,
        "source": source,
        "google_place_id": None,
        "total_reviews": 0,
        "average_rating": 0.0,
        "last_review_sync": None,
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }


class ListingResolver:
    """Listing lookup, lazy creation and rollup maintenance over a ReviewStore."""

    def __init__(self, store: ReviewStore):
        self.store = store

    async def ensure_listing(self, listing_id: str, display_name: str, source: Optional[str] = None) -> bool:
        """
        Create the listing with placeholder details if it does not exist yet.

        An existing listing is left untouched.

        Returns:
            True if a listing was created
        """
        _, created = await self.store.upsert(
            LISTINGS,
            {"listing_id": listing_id},
            {},
            defaults=placeholder_listing(listing_id, display_name, source),
        )
        if created:
            logger.info(f"Created listing {listing_id} ({display_name})", extra={"listing_id": listing_id})
        return created

    async def recompute_stats(self, listing_id: str) -> Listing:
        """
        Recompute rollups from approved reviews with a rating.

        Always an upsert: a listing missing at this point is created with
        placeholder details rather than silently skipped.
        """
        reviews = await self.store.find(
            REVIEWS,
            {"listing_id": listing_id, "is_approved": True, "rating": {"$ne": None}},
        )
        ratings = [doc["rating"] for doc in reviews]
        now = utc_now()
        stats = {
            "total_reviews": len(ratings),
            "average_rating": sum(ratings) / len(ratings) if ratings else 0.0,
            "last_review_sync": now,
            "updated_at": now,
        }
        doc, _ = await self.store.upsert(
            LISTINGS,
            {"listing_id": listing_id},
            stats,
            defaults=placeholder_listing(listing_id),
        )
        logger.debug(
            f"Listing {listing_id}: {stats['total_reviews']} approved reviews, avg {stats['average_rating']:.2f}",
            extra={"listing_id": listing_id},
        )
        return Listing.from_doc(doc)

    async def get_listing(self, listing_id: str) -> Listing:
        doc = await self.store.find_one(LISTINGS, {"listing_id": listing_id})
        if doc is None:
            raise ListingNotFoundError(listing_id)
        return Listing.from_doc(doc)

    async def list_listings(self, active_only: bool = True, listing_ids: Optional[List[str]] = None) -> List[Listing]:
        filter = {}
        if active_only:
            filter["is_active"] = True
        if listing_ids:
            filter["listing_id"] = {"$in": list(listing_ids)}
        docs = await self.store.find(LISTINGS, filter, sort=[("listing_id", 1)])
        return [Listing.from_doc(doc) for doc in docs]

    async def connect_place(self, listing_id: str, place_id: str) -> Listing:
        """Attach a places-provider id to an existing listing."""
        doc = await self.store.update_one(
            LISTINGS,
            {"listing_id": listing_id},
            {"google_place_id": place_id, "updated_at": utc_now()},
        )
        if doc is None:
            raise ListingNotFoundError(listing_id)
        logger.info(f"Connected listing {listing_id} to place {place_id}", extra={"listing_id": listing_id})
        return Listing.from_doc(doc)
