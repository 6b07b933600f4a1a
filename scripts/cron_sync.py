#!/usr/bin/env python3
"""
Guest Review Hub Cron Sync
==========================

Pulls channel-manager reviews, then refreshes Google reviews for every
active listing that has a place attached.

Cron: Schedule every 6-12h
    Command: python scripts/cron_sync.py

Env vars:
    STORE_BACKEND / DATABASE_*: Store connection
    HOSTAWAY_API_KEY: Channel manager key (mock data when unset)
    GOOGLE_API_KEY: Places key (mock data when unset)
"""

import asyncio
import logging
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv
load_dotenv(project_root / ".env")

from src.data.config import get_settings
from src.data.hostaway_client import HostawayAPIError, HostawayClient
from src.data.google_places_client import GooglePlacesError
from src.data.ingestion_pipeline import IngestionPipeline
from src.data.places_service import PlacesReviewService
from src.data.store_factory import create_store
from src.orchestrator.logging_config import setup_logging
from src.reviews.review_models import utc_now

logger = logging.getLogger("guest_reviews.cron_sync")


async def run() -> int:
    store = await create_store()
    failures = 0
    try:
        pipeline = IngestionPipeline(store)

        try:
            result = await pipeline.sync_source(HostawayClient(), "hostaway")
            logger.info(
                f"hostaway: {result.imported} new, {result.updated} updated, {result.failed} errors"
            )
            failures += result.failed
        except HostawayAPIError as e:
            logger.error(f"hostaway sync failed: {e}")
            failures += 1

        places = PlacesReviewService(store, pipeline=pipeline)
        listings = await pipeline.resolver.list_listings(active_only=True)
        for listing in listings:
            if not listing.google_place_id:
                continue
            try:
                payload = await places.get_reviews(
                    place_id=listing.google_place_id,
                    listing_id=listing.listing_id,
                    force_refresh=True,
                )
                logger.info(f"google: {listing.listing_id} -> {len(payload['reviews'])} reviews")
            except GooglePlacesError as e:
                logger.error(f"google sync failed for {listing.listing_id}: {e}")
                failures += 1
    finally:
        await store.close()

    return 1 if failures else 0


def main():
    cfg = get_settings().logging
    setup_logging(level=cfg.level, json_output=cfg.json_logs, log_file=cfg.log_file)

    logger.info("=" * 60)
    logger.info(f"REVIEW SYNC CRON: {utc_now().isoformat()}")
    logger.info("=" * 60)

    return asyncio.run(run())


if __name__ == "__main__":
    sys.exit(main())
