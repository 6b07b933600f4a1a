"""
Document Store Contract
=======================

The persistence seam the core talks to. Two collections are used:
`reviews` (keyed by `external_id`) and `listings` (keyed by `listing_id`).

Filters use a small Mongo-style language:
    {"listing_id": "29-shoreditch-heights"}              equality
    {"rating": {"$gte": 4, "$lte": 5}}                   ranges ($gt/$gte/$lt/$lte)
    {"status": {"$ne": "archived"}}                      inequality
    {"channel": {"$in": ["google", "airbnb"]}}           membership
    {"google_place_id": {"$exists": True}}               presence (non-null)
    {"category_ratings.category": "cleanliness"}         dotted path; any list element

Null never satisfies a range operator. `matches_filter` is the reference
semantics; backends must agree with it.

Implementations:
    - InMemoryStore   (src.data.memory_store)
    - PostgresStore   (src.data.postgres_store)
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

REVIEWS = "reviews"
LISTINGS = "listings"

COLLECTION_KEYS = {
    REVIEWS: "external_id",
    LISTINGS: "listing_id",
}

RANGE_OPERATORS = ("$gt", "$gte", "$lt", "$lte")
SUPPORTED_OPERATORS = RANGE_OPERATORS + ("$ne", "$in", "$exists")

# strftime patterns for period bucketing
PERIOD_FORMATS = {
    "day": "%Y-%m-%d",
    "week": "%Y-%U",
    "month": "%Y-%m",
    "year": "%Y",
}

Filter = Dict[str, Any]
Sort = Sequence[Tuple[str, int]]


class StoreError(Exception):
    """Backend unavailable or rejected an operation."""
    pass


def check_collection(collection: str):
    if collection not in COLLECTION_KEYS:
        raise StoreError(f"Unknown collection: {collection}")


def resolve_path(doc: Dict[str, Any], path: str) -> List[Any]:
    """
    All values reachable at a dotted path. Lists encountered on the way are
    flattened, so "category_ratings.category" yields every category name.
    """
    values: List[Any] = [doc]
    for part in path.split("."):
        next_values = []
        for value in values:
            if isinstance(value, list):
                candidates = value
            else:
                candidates = [value]
            for candidate in candidates:
                if isinstance(candidate, dict) and part in candidate:
                    next_values.append(candidate[part])
        values = next_values
    flattened = []
    for value in values:
        if isinstance(value, list):
            flattened.extend(value)
        else:
            flattened.append(value)
    return flattened


def _compare(value: Any, op: str, operand: Any) -> bool:
    if value is None or operand is None:
        return False
    try:
        if op == "$gt":
            return value > operand
        if op == "$gte":
            return value >= operand
        if op == "$lt":
            return value < operand
        return value <= operand
    except TypeError:
        return False


def _matches_condition(values: List[Any], condition: Any) -> bool:
    if not isinstance(condition, dict) or not any(k.startswith("$") for k in condition):
        if condition is None:
            return not values or any(v is None for v in values)
        return any(v == condition for v in values)

    for op, operand in condition.items():
        if op not in SUPPORTED_OPERATORS:
            raise StoreError(f"Unsupported filter operator: {op}")
        if op in RANGE_OPERATORS:
            if not any(_compare(v, op, operand) for v in values):
                return False
        elif op == "$ne":
            if operand is None:
                if not values or all(v is None for v in values):
                    return False
            elif any(v == operand for v in values):
                return False
        elif op == "$in":
            if not any(v in operand for v in values):
                return False
        elif op == "$exists":
            present = any(v is not None for v in values)
            if present != bool(operand):
                return False
    return True


def matches_filter(doc: Dict[str, Any], filter: Optional[Filter]) -> bool:
    """Reference filter semantics (see module docstring)."""
    for path, condition in (filter or {}).items():
        if not _matches_condition(resolve_path(doc, path), condition):
            return False
    return True


def equality_fields(filter: Optional[Filter]) -> Dict[str, Any]:
    """Plain top-level equality entries of a filter; seeds a freshly inserted document."""
    return {
        key: value for key, value in (filter or {}).items()
        if "." not in key and not (isinstance(value, dict) and any(k.startswith("$") for k in value))
    }


def period_key(value: datetime, interval: str) -> str:
    return value.strftime(PERIOD_FORMATS.get(interval, PERIOD_FORMATS["month"]))


class ReviewStore(ABC):
    """
    Asynchronous document store used by the ingestion pipeline, the listing
    resolver, the analytics engine and the review service.
    """

    @abstractmethod
    async def find(
        self,
        collection: str,
        filter: Optional[Filter] = None,
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Matching documents, sorted by (field, 1|-1) pairs."""

    @abstractmethod
    async def find_one(self, collection: str, filter: Filter) -> Optional[Dict[str, Any]]:
        """First matching document or None."""

    @abstractmethod
    async def upsert(
        self,
        collection: str,
        filter: Filter,
        document: Dict[str, Any],
        defaults: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Dict[str, Any], bool]:
        """
        Set `document`'s fields on the first match, or insert
        defaults + equality fields of `filter` + document.

        Returns:
            (stored document, created)
        """

    @abstractmethod
    async def update_one(
        self,
        collection: str,
        filter: Filter,
        changes: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """Set `changes` on the first match; None when nothing matched."""

    @abstractmethod
    async def count(self, collection: str, filter: Optional[Filter] = None) -> int:
        """Number of matching documents."""

    @abstractmethod
    async def distinct(self, collection: str, field: str, filter: Optional[Filter] = None) -> List[Any]:
        """Sorted distinct non-null values at a (dotted) path."""

    @abstractmethod
    async def aggregate_by_period(
        self,
        collection: str,
        filter: Optional[Filter],
        date_field: str,
        interval: str,
    ) -> List[Dict[str, Any]]:
        """
        Bucket matching reviews by period of `date_field`.

        Returns:
            List of {"period", "count", "rating_sum", "rating_count",
            "positive", "negative"} sorted by period, where positive counts
            ratings >= 4 and negative counts ratings <= 2.
        """

    async def ping(self) -> bool:
        return True

    async def close(self):
        pass
