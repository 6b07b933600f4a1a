"""
Guest Review Data Models
========================

Canonical shapes shared by the normalizer, the ingestion pipeline, the
analytics engine and the API. Every channel-specific payload is reduced to a
`Review`; every property that reviews point at is a `Listing`.

Store documents use the snake_case attribute names below. Dates are kept as
timezone-aware UTC datetimes in memory and as ISO-8601 strings in JSON
backends; `from_doc` accepts both.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class Channel(str, Enum):
    """Booking channels a review can originate from."""
    HOSTAWAY = "hostaway"
    GOOGLE = "google"
    AIRBNB = "airbnb"
    BOOKING = "booking"
    DIRECT = "direct"


class ReviewType(str, Enum):
    HOST_TO_GUEST = "host-to-guest"
    GUEST_TO_HOST = "guest-to-host"
    GUEST_TO_PROPERTY = "guest-to-property"


class ReviewStatus(str, Enum):
    PUBLISHED = "published"
    UNPUBLISHED = "unpublished"
    PENDING = "pending"
    ARCHIVED = "archived"


class ReviewValidationError(ValueError):
    """Caller-supplied input was rejected (surfaced as HTTP 400)."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Any) -> Optional[datetime]:
    """Coerce a datetime or ISO string to an aware UTC datetime (None passes through)."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class CategoryRating:
    """One sub-score, e.g. cleanliness 9/10."""
    category: str
    rating: float

    def to_doc(self) -> Dict[str, Any]:
        return {"category": self.category, "rating": self.rating}


@dataclass
class Review:
    """A single normalized guest review."""
    external_id: str
    channel: str
    type: str
    status: str
    rating: Optional[float]          # overall score on the 1-5 scale, None when the channel has none
    text: str
    submitted_at: datetime
    guest_name: str
    listing_name: str
    listing_id: str
    category_ratings: List[CategoryRating] = field(default_factory=list)
    is_approved: bool = False
    is_public: bool = False
    manager_notes: Optional[str] = None
    sentiment_score: float = 0.0

    # Store bookkeeping
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_displayable(self) -> bool:
        """Public display requires both the approval and the visibility flag."""
        return self.is_approved and self.is_public

    def to_doc(self) -> Dict[str, Any]:
        """
        Fields owned by ingestion. Bookkeeping (`id`, `created_at`) and
        `manager_notes` are left out so an upsert never resets them.
        """
        return {
            "external_id": self.external_id,
            "channel": self.channel,
            "type": self.type,
            "status": self.status,
            "rating": self.rating,
            "text": self.text,
            "category_ratings": [c.to_doc() for c in self.category_ratings],
            "submitted_at": self.submitted_at,
            "guest_name": self.guest_name,
            "listing_name": self.listing_name,
            "listing_id": self.listing_id,
            "is_approved": self.is_approved,
            "is_public": self.is_public,
            "sentiment_score": self.sentiment_score,
        }

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Review":
        return cls(
            external_id=doc["external_id"],
            channel=doc["channel"],
            type=doc.get("type", ReviewType.GUEST_TO_PROPERTY.value),
            status=doc.get("status", ReviewStatus.PENDING.value),
            rating=doc.get("rating"),
            text=doc.get("text", ""),
            submitted_at=as_utc(doc["submitted_at"]),
            guest_name=doc.get("guest_name", ""),
            listing_name=doc.get("listing_name", ""),
            listing_id=doc.get("listing_id", ""),
            category_ratings=[
                CategoryRating(category=c["category"], rating=c["rating"])
                for c in doc.get("category_ratings") or []
            ],
            is_approved=bool(doc.get("is_approved", False)),
            is_public=bool(doc.get("is_public", False)),
            manager_notes=doc.get("manager_notes"),
            sentiment_score=doc.get("sentiment_score", 0.0),
            id=doc.get("id"),
            created_at=as_utc(doc.get("created_at")),
            updated_at=as_utc(doc.get("updated_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Full camelCase view for API responses and exports."""
        return {
            "id": self.id,
            "externalId": self.external_id,
            "channel": self.channel,
            "type": self.type,
            "status": self.status,
            "rating": self.rating,
            "publicReview": self.text,
            "categoryRatings": [c.to_doc() for c in self.category_ratings],
            "submittedAt": self.submitted_at.isoformat(),
            "guestName": self.guest_name,
            "listingName": self.listing_name,
            "listingId": self.listing_id,
            "isApproved": self.is_approved,
            "isPublic": self.is_public,
            "managerNotes": self.manager_notes,
            "sentimentScore": self.sentiment_score,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class Listing:
    """A property, created on first sight of a review and carrying cached rollups."""
    listing_id: str
    name: str
    address: str = "TBD"
    city: str = "TBD"
    country: str = "TBD"
    google_place_id: Optional[str] = None
    source: Optional[str] = None
    total_reviews: int = 0
    average_rating: float = 0.0
    last_review_sync: Optional[datetime] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Listing":
        return cls(
            listing_id=doc["listing_id"],
            name=doc.get("name") or doc["listing_id"],
            address=doc.get("address", "TBD"),
            city=doc.get("city", "TBD"),
            country=doc.get("country", "TBD"),
            google_place_id=doc.get("google_place_id"),
            source=doc.get("source"),
            total_reviews=doc.get("total_reviews", 0),
            average_rating=doc.get("average_rating", 0.0),
            last_review_sync=as_utc(doc.get("last_review_sync")),
            is_active=bool(doc.get("is_active", True)),
            created_at=as_utc(doc.get("created_at")),
            updated_at=as_utc(doc.get("updated_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "listingId": self.listing_id,
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "country": self.country,
            "googlePlaceId": self.google_place_id,
            "source": self.source,
            "totalReviews": self.total_reviews,
            "averageRating": self.average_rating,
            "lastReviewSync": self.last_review_sync.isoformat() if self.last_review_sync else None,
            "isActive": self.is_active,
        }


@dataclass
class SyncResult:
    """Results from one ingestion batch."""
    source: str
    processed: int = 0
    imported: int = 0
    updated: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    started_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    def add_error(self, identifier: str, message: str):
        """Record a per-record failure."""
        self.errors.append({"review": identifier, "error": message})

    def complete(self):
        """Mark the batch as complete."""
        self.completed_at = utc_now()

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def duration_seconds(self) -> float:
        """Batch duration in seconds."""
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "processed": self.processed,
            "imported": self.imported,
            "updated": self.updated,
            "errors": list(self.errors),
        }


@dataclass
class Issue:
    """A recurring complaint pattern across one listing's reviews."""
    category: str
    pattern: str
    count: int
    severity: str                   # high | medium
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "pattern": self.pattern,
            "count": self.count,
            "severity": self.severity,
            "description": self.description,
        }


@dataclass
class IssueEntry:
    """One flagged problem on a single review, as shown in the issues view."""
    type: str                       # low_rating | category_issue | negative_feedback
    priority: str                   # high | medium
    review_id: Optional[str]
    listing_id: str
    guest_name: str
    description: str
    details: str
    submitted_at: datetime
    category: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "priority": self.priority,
            "reviewId": self.review_id,
            "listingId": self.listing_id,
            "guestName": self.guest_name,
            "description": self.description,
            "details": self.details,
            "submittedAt": self.submitted_at.isoformat(),
            "category": self.category,
        }
