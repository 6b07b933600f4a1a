"""
Guest Review Ingestion Pipeline
===============================

Turns a batch of raw channel payloads into stored canonical reviews and
up-to-date listing rollups.

Per record, strictly in order:
    1. Normalize the payload for its channel
    2. Make sure the listing exists (placeholder details on first sight)
    3. Upsert the review keyed by (external_id, channel)
    4. Recompute the listing's rollup stats

Features:
    - Idempotent: replaying a batch updates rows, never duplicates them
    - Per-record error isolation: one bad payload never aborts the batch
    - Provider sync: fetch from a client, then run the batch

Usage:
    pipeline = IngestionPipeline(store)
    result = await pipeline.sync_batch(raw_reviews, "hostaway")
    print(f"{result.imported} new, {result.updated} updated, {result.failed} failed")
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Protocol

from .store import REVIEWS, ReviewStore
from ..orchestrator.logging_config import bind
from ..reviews.listing_resolver import ListingResolver
from ..reviews.normalizer import ReviewNormalizer
from ..reviews.review_models import Review, SyncResult, utc_now

logger = logging.getLogger(__name__)


class ReviewProvider(Protocol):
    """Anything that can hand over a batch of raw channel payloads."""

    def fetch_batch(self) -> List[Dict[str, Any]]:
        ...


def record_identifier(raw: Any, source: str, review: Optional[Review] = None) -> str:
    """Best available handle for a record in error reports."""
    if review is not None:
        return review.external_id
    if isinstance(raw, dict):
        if raw.get("externalId"):
            return str(raw["externalId"])
        if raw.get("id") is not None:
            return f"{source}-{raw['id']}"
    return f"unknown-{int(time.time() * 1000)}"


class IngestionPipeline:
    """
    Orchestrates review ingestion into a ReviewStore.

    Stateless between calls; all state lives in the store.
    """

    def __init__(
        self,
        store: ReviewStore,
        normalizer: Optional[ReviewNormalizer] = None,
        resolver: Optional[ListingResolver] = None,
    ):
        self.store = store
        self.normalizer = normalizer or ReviewNormalizer()
        self.resolver = resolver or ListingResolver(store)

    async def upsert_review(self, review: Review) -> bool:
        """
        Write a normalized review. Returns True when it was newly created.

        The update replaces every field the normalizer owns, including
        is_approved / is_public / status. A moderation decision made since the
        last sync is therefore overwritten by a replay of the same record;
        manager_notes and the row id are kept.
        """
        now = utc_now()
        document = review.to_doc()
        document["updated_at"] = now
        _, created = await self.store.upsert(
            REVIEWS,
            {"external_id": review.external_id, "channel": review.channel},
            document,
            defaults={"created_at": now, "manager_notes": None},
        )
        return created

    async def process_review(self, review: Review, result: SyncResult):
        log = bind(logger, source=review.channel, external_id=review.external_id, listing_id=review.listing_id)

        if review.listing_id and review.listing_name:
            await self.resolver.ensure_listing(review.listing_id, review.listing_name, review.channel)

        if await self.upsert_review(review):
            result.imported += 1
            log.debug("Imported review")
        else:
            result.updated += 1
            log.debug("Updated review")

        if review.listing_id:
            await self.resolver.recompute_stats(review.listing_id)

        result.processed += 1

    async def sync_batch(self, raw_records: List[Dict[str, Any]], source: str) -> SyncResult:
        """
        Ingest one batch of raw payloads from a single channel.

        Args:
            raw_records: Channel-native payloads
            source: Channel tag shared by the whole batch

        Returns:
            SyncResult with processed / imported / updated counts and
            per-record errors
        """
        result = SyncResult(source=str(source))
        log = bind(logger, source=str(source))
        log.info(f"Starting sync of {len(raw_records)} {source} reviews")

        for raw in raw_records:
            review: Optional[Review] = None
            try:
                review = self.normalizer.normalize(raw, source)
                await self.process_review(review, result)
            except Exception as e:
                identifier = record_identifier(raw, str(source), review)
                result.add_error(identifier, str(e))
                log.error(f"Error processing review {identifier}: {e}", extra={"external_id": identifier})

        result.complete()
        log.info(
            f"Sync complete: {result.processed} processed, {result.imported} imported, "
            f"{result.updated} updated, {result.failed} failed",
            extra={"duration": round(result.duration_seconds, 3)},
        )
        return result

    async def sync_source(self, provider: ReviewProvider, source: str) -> SyncResult:
        """
        Pull a batch from a provider and ingest it.

        Provider failures propagate: a sync that could not fetch anything is
        the caller's error, not a per-record one.
        """
        raw_records = await asyncio.to_thread(provider.fetch_batch)
        return await self.sync_batch(raw_records, source)
