"""
Guest Review Hub Store Access
=============================

Process-wide ReviewStore for the API layer. Routes receive it through
`Depends(get_store)`; tests swap it with `set_store` or FastAPI's
dependency overrides.
"""

import logging
from typing import Any, Dict, Optional

from ..data.config import get_settings
from ..data.store import ReviewStore, StoreError
from ..data.store_factory import create_store

logger = logging.getLogger(__name__)

_store: Optional[ReviewStore] = None


async def get_store() -> ReviewStore:
    """Get or create the store (lazy singleton)."""
    global _store
    if _store is None:
        _store = await create_store()
    return _store


def set_store(store: Optional[ReviewStore]):
    """Install a specific store, or None to force re-creation."""
    global _store
    _store = store


async def close_store():
    """Close the store and release its connections."""
    global _store
    if _store is not None:
        await _store.close()
        _store = None
        logger.info("Store closed")


async def check_health() -> Dict[str, Any]:
    """
    Check store health. Returns status dict.
    Non-blocking: returns 'disconnected' if the store is not reachable.
    """
    backend = get_settings().store.backend
    try:
        store = await get_store()
        healthy = await store.ping()
    except (StoreError, ValueError) as e:
        logger.warning(f"Store health check failed: {e}")
        return {"status": "disconnected", "backend": backend, "error": str(e)}
    return {"status": "connected" if healthy else "disconnected", "backend": backend}
