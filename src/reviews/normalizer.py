"""
Review Normalizer
=================

Maps channel-specific review payloads onto the canonical `Review`.

Each supported channel has exactly one mapper in `ReviewNormalizer.MAPPERS`;
an unknown source tag raises `UnsupportedSourceError`. Malformed payloads
never raise: missing fields fall back to safe defaults so one bad record
cannot take down a batch.

Usage:
    normalizer = ReviewNormalizer()
    review = normalizer.normalize(raw_payload, "hostaway")
"""

import hashlib
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .listing_resolver import slugify
from .review_models import (
    CategoryRating,
    Channel,
    Review,
    ReviewStatus,
    ReviewType,
    utc_now,
)
from .review_signals import score_sentiment

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 5000
MAX_GUEST_NAME_LENGTH = 100


class UnsupportedSourceError(ValueError):
    """Raised when a payload is tagged with a channel we have no mapper for."""

    def __init__(self, source: Any):
        super().__init__(f"Unsupported review source: {source}")
        self.source = source


# =============================================================================
# FIELD HYGIENE
# =============================================================================

def clean_text(text: Any) -> str:
    """Collapse whitespace runs, trim, and cap at MAX_TEXT_LENGTH characters."""
    if not isinstance(text, str):
        return ""
    return re.sub(r"\s+", " ", text).strip()[:MAX_TEXT_LENGTH]


def clean_guest_name(name: Any) -> str:
    """Keep ASCII letters and spaces only, trim, cap at MAX_GUEST_NAME_LENGTH."""
    if not isinstance(name, str):
        return ""
    return re.sub(r"[^a-zA-Z\s]", "", name).strip()[:MAX_GUEST_NAME_LENGTH]


def parse_timestamp(value: Any) -> datetime:
    """
    Accepts datetimes, ISO-8601 strings ("2020-08-21 22:45:14",
    "2024-01-15T10:00:00Z") and unix seconds. Naive values are taken as UTC.
    Anything else yields the current time.
    """
    parsed: Optional[datetime] = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            parsed = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.debug(f"Out-of-range epoch {value!r}, defaulting to now")
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparseable timestamp {value!r}, defaulting to now")

    if parsed is None:
        return utc_now()
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_rating(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        rating = float(value)
    except (TypeError, ValueError):
        return None
    return rating if math.isfinite(rating) else None


def parse_categories(entries: Any) -> List[CategoryRating]:
    """Drop entries without a category name or a numeric score."""
    if not isinstance(entries, list):
        return []
    ratings = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        category = entry.get("category")
        score = parse_rating(entry.get("rating"))
        if isinstance(category, str) and category and score is not None:
            ratings.append(CategoryRating(category=category, rating=score))
    return ratings


def coerce_enum(enum_cls, value: Any, default):
    try:
        return enum_cls(value).value
    except ValueError:
        return default.value


def fallback_native_id(raw: Dict[str, Any], *fields: str) -> str:
    """
    Stable stand-in for a missing native id: a short digest of the fields that
    identify the review, so re-ingesting the same payload maps to the same row.
    """
    material = "|".join(str(raw.get(f, "")) for f in fields)
    return hashlib.sha1(material.encode("utf-8")).hexdigest()[:12]


def _native_id(raw: Dict[str, Any], *fields: str) -> str:
    native = raw.get("id")
    if native is None or native == "":
        return fallback_native_id(raw, *fields)
    return str(native)


def _resolve_listing_id(raw: Dict[str, Any], source: str, listing_name: str) -> str:
    """Supplied listingId wins, then the channel's own listing id, then the name slug."""
    if raw.get("listingId"):
        return str(raw["listingId"])
    if raw.get("listing_id"):
        return f"{source}-{raw['listing_id']}"
    return slugify(listing_name)


# =============================================================================
# PER-CHANNEL MAPPERS
# =============================================================================
# Each returns the Review minus sentiment; approval flags are applied afterwards.

def _map_hostaway(raw: Dict[str, Any]) -> Review:
    listing_name = clean_text(raw.get("listingName"))
    return Review(
        external_id=f"hostaway-{_native_id(raw, 'submittedAt', 'guestName', 'publicReview')}",
        channel=Channel.HOSTAWAY.value,
        type=coerce_enum(ReviewType, raw.get("type"), ReviewType.GUEST_TO_PROPERTY),
        status=coerce_enum(ReviewStatus, raw.get("status"), ReviewStatus.PENDING),
        rating=parse_rating(raw.get("rating")),
        text=clean_text(raw.get("publicReview")),
        category_ratings=parse_categories(raw.get("reviewCategory")),
        submitted_at=parse_timestamp(raw.get("submittedAt")),
        guest_name=clean_guest_name(raw.get("guestName")),
        listing_name=listing_name,
        listing_id=slugify(listing_name),
    )


def _map_google(raw: Dict[str, Any]) -> Review:
    place_id = raw.get("place_id") or "unknown"
    listing_name = clean_text(raw.get("listingName")) or "Google Review"
    return Review(
        external_id=f"google-{place_id}-{raw.get('time', fallback_native_id(raw, 'author_name', 'text'))}",
        channel=Channel.GOOGLE.value,
        type=ReviewType.GUEST_TO_PROPERTY.value,
        status=ReviewStatus.PUBLISHED.value,
        rating=parse_rating(raw.get("rating")),
        text=clean_text(raw.get("text")),
        category_ratings=[],
        submitted_at=parse_timestamp(raw.get("time")),
        guest_name=clean_guest_name(raw.get("author_name")) or "Google User",
        listing_name=listing_name,
        listing_id=str(raw.get("listingId") or f"google-{place_id}"),
    )


def _map_airbnb(raw: Dict[str, Any]) -> Review:
    reviewer = raw.get("reviewer") if isinstance(raw.get("reviewer"), dict) else {}
    listing = raw.get("listing") if isinstance(raw.get("listing"), dict) else {}
    listing_name = clean_text(listing.get("name")) or "Airbnb Listing"
    return Review(
        external_id=f"airbnb-{_native_id(raw, 'created_at', 'comments')}",
        channel=Channel.AIRBNB.value,
        type=ReviewType.GUEST_TO_PROPERTY.value,
        status=ReviewStatus.PENDING.value,
        rating=parse_rating(raw.get("rating")),
        text=clean_text(raw.get("comments")),
        category_ratings=parse_categories(raw.get("categories")),
        submitted_at=parse_timestamp(raw.get("created_at")),
        guest_name=clean_guest_name(reviewer.get("name")) or "Anonymous",
        listing_name=listing_name,
        listing_id=_resolve_listing_id(raw, Channel.AIRBNB.value, listing_name),
    )


def _map_generic(source: Channel) -> Callable[[Dict[str, Any]], Review]:
    """Mapper for channels that deliver the loose booking/direct shape."""

    def mapper(raw: Dict[str, Any]) -> Review:
        listing_name = clean_text(raw.get("listingName")) or f"{source.value.capitalize()} Review"
        guest = clean_guest_name(raw.get("guestName") or raw.get("author_name"))
        return Review(
            external_id=f"{source.value}-{_native_id(raw, 'submittedAt', 'created_at', 'guestName', 'text')}",
            channel=source.value,
            type=ReviewType.GUEST_TO_PROPERTY.value,
            status=ReviewStatus.PENDING.value,
            rating=parse_rating(raw.get("rating")),
            text=clean_text(raw.get("publicReview") or raw.get("text")),
            category_ratings=parse_categories(raw.get("reviewCategory") or raw.get("categories")),
            submitted_at=parse_timestamp(raw.get("submittedAt") or raw.get("created_at")),
            guest_name=guest or "Guest",
            listing_name=listing_name,
            listing_id=_resolve_listing_id(raw, source.value, listing_name),
        )

    return mapper


def _is_auto_approved(raw: Dict[str, Any], channel: Channel) -> bool:
    """Places reviews are public already; channel-manager ones when published upstream."""
    if channel is Channel.GOOGLE:
        return True
    if channel is Channel.HOSTAWAY:
        return raw.get("status") == ReviewStatus.PUBLISHED.value
    return False


class ReviewNormalizer:
    """
    Stateless mapper from raw channel payloads to canonical reviews.
    """

    MAPPERS: Dict[Channel, Callable[[Dict[str, Any]], Review]] = {
        Channel.HOSTAWAY: _map_hostaway,
        Channel.GOOGLE: _map_google,
        Channel.AIRBNB: _map_airbnb,
        Channel.BOOKING: _map_generic(Channel.BOOKING),
        Channel.DIRECT: _map_generic(Channel.DIRECT),
    }

    @staticmethod
    def resolve_channel(source: Any) -> Channel:
        """Coerce a source tag to a Channel or raise UnsupportedSourceError."""
        if isinstance(source, Channel):
            return source
        try:
            return Channel(str(source).lower())
        except ValueError:
            raise UnsupportedSourceError(source)

    def normalize(self, raw: Dict[str, Any], source: Any) -> Review:
        """
        Map one raw payload to a Review.

        Args:
            raw: Channel-native payload
            source: Channel tag (str or Channel)

        Returns:
            Review with hygienic text, recomputed sentiment and approval flags set

        Raises:
            UnsupportedSourceError: If the source tag is not a known channel
        """
        channel = self.resolve_channel(source)
        if not isinstance(raw, dict):
            raw = {}

        review = self.MAPPERS[channel](raw)
        review.sentiment_score = score_sentiment(review.text)

        approved = _is_auto_approved(raw, channel)
        review.is_approved = approved
        review.is_public = approved
        return review
