"""
Guest Review Hub Data Module
============================

Configuration, the document-store seam, and the channel providers that feed
the ingestion pipeline.

This module provides:
    - ReviewStore: async document-store contract (+ InMemoryStore, PostgresStore)
    - IngestionPipeline: normalize, upsert and roll up review batches
    - HostawayClient / GooglePlacesClient: provider clients with mock fallbacks
    - PlacesReviewService: cached place reviews with a freshness window

Quick Start:
    from src.data.memory_store import InMemoryStore
    from src.data.ingestion_pipeline import IngestionPipeline
    from src.data.hostaway_client import HostawayClient

    pipeline = IngestionPipeline(InMemoryStore())
    result = await pipeline.sync_source(HostawayClient(), "hostaway")
    print(f"Imported {result.imported}, updated {result.updated}")

Configuration:
    Set environment variables or create a .env file.
    See .env.example for all available options.

Only configuration and the store contract are re-exported here; the pipeline
and providers depend on src.reviews, which itself depends on the store.
"""

from .config import settings, get_settings, Settings
from .store import ReviewStore, StoreError, REVIEWS, LISTINGS

__version__ = "1.0.0"

__all__ = [
    # Configuration
    "settings",
    "get_settings",
    "Settings",
    # Store
    "ReviewStore",
    "StoreError",
    "REVIEWS",
    "LISTINGS",
]
