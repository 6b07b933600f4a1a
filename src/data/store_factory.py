"""
Store selection: builds the configured ReviewStore backend.
"""

import logging
from typing import Optional

from .config import Settings, get_settings
from .memory_store import InMemoryStore
from .postgres_store import PostgresStore
from .store import ReviewStore

logger = logging.getLogger(__name__)


async def create_store(settings: Optional[Settings] = None) -> ReviewStore:
    """
    Instantiate and prepare the backend named by STORE_BACKEND.

    The postgres backend has its tables created if missing.
    """
    settings = settings or get_settings()
    if settings.store.backend == "memory":
        logger.info("Using in-memory review store")
        return InMemoryStore()

    store = PostgresStore(settings.database)
    await store.ensure_schema()
    return store
