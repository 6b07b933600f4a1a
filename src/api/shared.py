"""
Shared helpers reused across route modules.
"""

import logging
from datetime import datetime
from typing import Any, List, Optional

from fastapi import HTTPException

from ..data.google_places_client import GooglePlacesError
from ..data.hostaway_client import HostawayAPIError
from ..reviews.listing_resolver import ListingNotFoundError
from ..reviews.normalizer import UnsupportedSourceError
from ..reviews.review_models import ReviewValidationError, as_utc
from ..reviews.review_service import ReviewNotFoundError

logger = logging.getLogger(__name__)


def success(data: Any = None, **extra) -> dict:
    """Standard `{"status": "success", "data": ...}` envelope."""
    body = {"status": "success", "data": data}
    body.update(extra)
    return body


def split_ids(value: Optional[str]) -> Optional[List[str]]:
    """Comma-separated query value -> list, None when empty."""
    if not value:
        return None
    ids = [part.strip() for part in value.split(",") if part.strip()]
    return ids or None


def parse_date(value: Optional[str], name: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return as_utc(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {value}")


def to_http_error(e: Exception, action: str) -> HTTPException:
    """
    Map a domain exception onto an HTTP error.

    Not-found -> 404, rejected input -> 400, upstream provider -> 502.
    Anything else, including stray ValueErrors from internal code, is
    logged and reported as a generic 500.
    """
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, (ReviewNotFoundError, ListingNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (HostawayAPIError, GooglePlacesError)):
        logger.error(f"{action} failed upstream: {e}")
        return HTTPException(status_code=502, detail=str(e))
    if isinstance(e, (ReviewValidationError, UnsupportedSourceError)):
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"{action} failed: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Failed to {action}")
