"""
Tests for the in-memory store and the reference filter semantics.

Usage:
    pytest tests/test_memory_store.py -v
"""

import asyncio
from datetime import datetime, timezone

import pytest

from src.data.memory_store import InMemoryStore
from src.data.store import LISTINGS, REVIEWS, StoreError, matches_filter, period_key, resolve_path


def make_doc(external_id: str, rating=None, **fields) -> dict:
    doc = {
        "external_id": external_id,
        "channel": "direct",
        "rating": rating,
        "listing_id": "canal-loft",
        "category_ratings": [],
        "submitted_at": datetime(2024, 5, 1, tzinfo=timezone.utc),
    }
    doc.update(fields)
    return doc


class TestFilterSemantics:
    """matches_filter is the contract every backend follows."""

    def test_equality(self):
        assert matches_filter({"channel": "google"}, {"channel": "google"})
        assert not matches_filter({"channel": "google"}, {"channel": "airbnb"})

    def test_ranges(self):
        doc = {"rating": 4}
        assert matches_filter(doc, {"rating": {"$gte": 4, "$lte": 5}})
        assert not matches_filter(doc, {"rating": {"$gt": 4}})

    def test_null_never_satisfies_a_range(self):
        assert not matches_filter({"rating": None}, {"rating": {"$lte": 5}})
        assert not matches_filter({}, {"rating": {"$gte": 0}})

    def test_ne_none_means_present(self):
        assert matches_filter({"rating": 3}, {"rating": {"$ne": None}})
        assert not matches_filter({"rating": None}, {"rating": {"$ne": None}})
        assert not matches_filter({}, {"rating": {"$ne": None}})

    def test_ne_value(self):
        assert matches_filter({"status": "published"}, {"status": {"$ne": "archived"}})
        assert not matches_filter({"status": "archived"}, {"status": {"$ne": "archived"}})

    def test_in(self):
        assert matches_filter({"channel": "google"}, {"channel": {"$in": ["google", "airbnb"]}})
        assert not matches_filter({"channel": "direct"}, {"channel": {"$in": []}})

    def test_exists(self):
        assert matches_filter({"google_place_id": "P1"}, {"google_place_id": {"$exists": True}})
        assert matches_filter({"google_place_id": None}, {"google_place_id": {"$exists": False}})

    def test_null_equality_matches_missing(self):
        assert matches_filter({}, {"manager_notes": None})
        assert matches_filter({"manager_notes": None}, {"manager_notes": None})
        assert not matches_filter({"manager_notes": "x"}, {"manager_notes": None})

    def test_dotted_path_matches_any_list_element(self):
        doc = {"category_ratings": [{"category": "cleanliness"}, {"category": "value"}]}
        assert matches_filter(doc, {"category_ratings.category": "value"})
        assert not matches_filter(doc, {"category_ratings.category": "location"})
        assert resolve_path(doc, "category_ratings.category") == ["cleanliness", "value"]

    def test_unknown_operator(self):
        with pytest.raises(StoreError):
            matches_filter({"rating": 1}, {"rating": {"$regex": "x"}})

    def test_period_keys(self):
        stamp = datetime(2024, 1, 7, tzinfo=timezone.utc)  # a Sunday
        assert period_key(stamp, "day") == "2024-01-07"
        assert period_key(stamp, "week") == "2024-01"
        assert period_key(datetime(2024, 1, 6, tzinfo=timezone.utc), "week") == "2024-00"
        assert period_key(stamp, "month") == "2024-01"
        assert period_key(stamp, "year") == "2024"
        assert period_key(stamp, "fortnight") == "2024-01"


class TestInMemoryStore:

    def setup_method(self):
        self.store = InMemoryStore()

    def run(self, coro):
        return asyncio.run(coro)

    def test_upsert_inserts_then_updates(self):
        doc, created = self.run(self.store.upsert(
            REVIEWS, {"external_id": "direct-1"}, make_doc("direct-1", 4), defaults={"created_at": "t0"},
        ))
        assert created is True
        assert doc["id"]
        assert doc["created_at"] == "t0"

        again, created = self.run(self.store.upsert(
            REVIEWS, {"external_id": "direct-1"}, {"rating": 5}, defaults={"created_at": "t1"},
        ))
        assert created is False
        assert again["id"] == doc["id"]
        assert again["rating"] == 5
        assert again["created_at"] == "t0"
        assert self.run(self.store.count(REVIEWS)) == 1

    def test_insert_carries_filter_equality_fields(self):
        doc, _ = self.run(self.store.upsert(LISTINGS, {"listing_id": "canal-loft"}, {}, defaults={"name": "Canal"}))
        assert doc["listing_id"] == "canal-loft"
        assert doc["name"] == "Canal"

    def test_returned_documents_are_copies(self):
        self.run(self.store.upsert(REVIEWS, {"external_id": "direct-1"}, make_doc("direct-1", 4)))
        doc = self.run(self.store.find_one(REVIEWS, {"external_id": "direct-1"}))
        doc["rating"] = 1
        assert self.run(self.store.find_one(REVIEWS, {"external_id": "direct-1"}))["rating"] == 4

    def test_find_sort_skip_limit(self):
        for i, rating in enumerate([3, None, 5, 1]):
            self.run(self.store.upsert(REVIEWS, {"external_id": f"d-{i}"}, make_doc(f"d-{i}", rating)))

        ascending = self.run(self.store.find(REVIEWS, sort=[("rating", 1)]))
        assert [d["rating"] for d in ascending] == [None, 1, 3, 5]

        descending = self.run(self.store.find(REVIEWS, sort=[("rating", -1)], skip=1, limit=2))
        assert [d["rating"] for d in descending] == [3, 1]

    def test_multi_key_sort(self):
        self.run(self.store.upsert(REVIEWS, {"external_id": "a"}, make_doc("a", 4, listing_id="x")))
        self.run(self.store.upsert(REVIEWS, {"external_id": "b"}, make_doc("b", 5, listing_id="y")))
        self.run(self.store.upsert(REVIEWS, {"external_id": "c"}, make_doc("c", 5, listing_id="x")))

        docs = self.run(self.store.find(REVIEWS, sort=[("rating", -1), ("listing_id", 1)]))
        assert [d["external_id"] for d in docs] == ["c", "b", "a"]

    def test_update_one(self):
        self.run(self.store.upsert(REVIEWS, {"external_id": "a"}, make_doc("a", 4)))
        updated = self.run(self.store.update_one(REVIEWS, {"external_id": "a"}, {"is_approved": True}))
        assert updated["is_approved"] is True
        assert self.run(self.store.update_one(REVIEWS, {"external_id": "zzz"}, {"x": 1})) is None

    def test_distinct_flattens_lists_and_skips_nulls(self):
        self.run(self.store.upsert(REVIEWS, {"external_id": "a"}, make_doc(
            "a", 4, category_ratings=[{"category": "value", "rating": 8}, {"category": "cleanliness", "rating": 9}],
        )))
        self.run(self.store.upsert(REVIEWS, {"external_id": "b"}, make_doc("b", None, channel="google")))

        assert self.run(self.store.distinct(REVIEWS, "category_ratings.category")) == ["cleanliness", "value"]
        assert self.run(self.store.distinct(REVIEWS, "channel")) == ["direct", "google"]
        assert self.run(self.store.distinct(REVIEWS, "rating")) == [4]

    def test_aggregate_by_period(self):
        stamps = [
            (datetime(2024, 5, 10, tzinfo=timezone.utc), 5),
            (datetime(2024, 5, 20, tzinfo=timezone.utc), 1),
            (datetime(2024, 5, 21, tzinfo=timezone.utc), None),
            (datetime(2024, 6, 1, tzinfo=timezone.utc), 4),
        ]
        for i, (stamp, rating) in enumerate(stamps):
            self.run(self.store.upsert(REVIEWS, {"external_id": f"d-{i}"}, make_doc(f"d-{i}", rating, submitted_at=stamp)))

        buckets = self.run(self.store.aggregate_by_period(REVIEWS, {}, "submitted_at", "month"))
        assert buckets == [
            {"period": "2024-05", "count": 3, "rating_sum": 6.0, "rating_count": 2, "positive": 1, "negative": 1},
            {"period": "2024-06", "count": 1, "rating_sum": 4.0, "rating_count": 1, "positive": 1, "negative": 0},
        ]

    def test_unknown_collection(self):
        with pytest.raises(StoreError):
            self.run(self.store.find("bookings"))

    def test_clear(self):
        self.run(self.store.upsert(REVIEWS, {"external_id": "a"}, make_doc("a")))
        self.store.clear()
        assert self.run(self.store.count(REVIEWS)) == 0
