"""
In-Memory Review Store
======================

A `ReviewStore` backed by per-collection lists of dicts. Used by the test
suite, by `STORE_BACKEND=memory` local runs, and as the executable
definition of the filter language.

Documents are deep-copied on the way in and out so callers can never
mutate stored state by accident.
"""

import copy
import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from .store import (
    COLLECTION_KEYS,
    Filter,
    ReviewStore,
    Sort,
    check_collection,
    equality_fields,
    matches_filter,
    period_key,
    resolve_path,
)

logger = logging.getLogger(__name__)


def _sort_key(field: str):
    def key(doc: Dict[str, Any]):
        values = resolve_path(doc, field)
        value = values[0] if values else None
        # None sorts first ascending, like the JSONB null ordering we mirror
        return (value is not None, value)
    return key


class InMemoryStore(ReviewStore):
    """Dict-of-lists document store."""

    def __init__(self):
        self._collections: Dict[str, List[Dict[str, Any]]] = {name: [] for name in COLLECTION_KEYS}

    def _docs(self, collection: str) -> List[Dict[str, Any]]:
        check_collection(collection)
        return self._collections[collection]

    def _match(self, collection: str, filter: Optional[Filter]) -> List[Dict[str, Any]]:
        return [doc for doc in self._docs(collection) if matches_filter(doc, filter)]

    async def find(
        self,
        collection: str,
        filter: Optional[Filter] = None,
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        docs = self._match(collection, filter)
        # Stable multi-key sort: apply keys last to first
        for field, direction in reversed(list(sort or [])):
            docs.sort(key=_sort_key(field), reverse=direction < 0)
        docs = docs[skip:]
        if limit is not None:
            docs = docs[:limit]
        return copy.deepcopy(docs)

    async def find_one(self, collection: str, filter: Filter) -> Optional[Dict[str, Any]]:
        docs = self._match(collection, filter)
        return copy.deepcopy(docs[0]) if docs else None

    async def upsert(
        self,
        collection: str,
        filter: Filter,
        document: Dict[str, Any],
        defaults: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Dict[str, Any], bool]:
        docs = self._match(collection, filter)
        if docs:
            docs[0].update(copy.deepcopy(document))
            return copy.deepcopy(docs[0]), False

        new_doc = {"id": uuid.uuid4().hex}
        new_doc.update(copy.deepcopy(defaults or {}))
        new_doc.update(copy.deepcopy(equality_fields(filter)))
        new_doc.update(copy.deepcopy(document))
        self._docs(collection).append(new_doc)
        return copy.deepcopy(new_doc), True

    async def update_one(
        self,
        collection: str,
        filter: Filter,
        changes: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        docs = self._match(collection, filter)
        if not docs:
            return None
        docs[0].update(copy.deepcopy(changes))
        return copy.deepcopy(docs[0])

    async def count(self, collection: str, filter: Optional[Filter] = None) -> int:
        return len(self._match(collection, filter))

    async def distinct(self, collection: str, field: str, filter: Optional[Filter] = None) -> List[Any]:
        values = set()
        for doc in self._match(collection, filter):
            values.update(v for v in resolve_path(doc, field) if v is not None)
        return sorted(values)

    async def aggregate_by_period(
        self,
        collection: str,
        filter: Optional[Filter],
        date_field: str,
        interval: str,
    ) -> List[Dict[str, Any]]:
        buckets: Dict[str, Dict[str, Any]] = {}
        for doc in self._match(collection, filter):
            stamp = doc.get(date_field)
            if stamp is None:
                continue
            key = period_key(stamp, interval)
            bucket = buckets.setdefault(key, {
                "period": key, "count": 0, "rating_sum": 0.0,
                "rating_count": 0, "positive": 0, "negative": 0,
            })
            bucket["count"] += 1
            rating = doc.get("rating")
            if rating is not None:
                bucket["rating_sum"] += rating
                bucket["rating_count"] += 1
                if rating >= 4:
                    bucket["positive"] += 1
                if rating <= 2:
                    bucket["negative"] += 1
        return [buckets[k] for k in sorted(buckets)]

    def clear(self):
        for docs in self._collections.values():
            docs.clear()
