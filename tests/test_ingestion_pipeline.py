"""
Tests for the ingestion pipeline: normalize, ensure listing, upsert, rollup.

Usage:
    pytest tests/test_ingestion_pipeline.py -v
"""

import asyncio
from copy import deepcopy

from src.data.hostaway_client import MOCK_REVIEWS, HostawayClient
from src.data.config import HostawayConfig
from src.data.ingestion_pipeline import IngestionPipeline, record_identifier
from src.data.memory_store import InMemoryStore
from src.data.store import LISTINGS, REVIEWS
from src.reviews.normalizer import ReviewNormalizer
from src.reviews.review_service import ReviewService

SHOREDITCH = "2b-n1-a-29-shoreditch-heights"


class ExplodingNormalizer(ReviewNormalizer):
    """Fails on one specific payload id."""

    def __init__(self, bad_id):
        self.bad_id = bad_id

    def normalize(self, raw, source):
        if raw.get("id") == self.bad_id:
            raise ValueError("corrupt payload")
        return super().normalize(raw, source)


class StaticProvider:
    def __init__(self, records):
        self.records = records

    def fetch_batch(self):
        return deepcopy(self.records)


class TestSyncBatch:

    def setup_method(self):
        self.store = InMemoryStore()
        self.pipeline = IngestionPipeline(self.store)

    def run(self, coro):
        return asyncio.run(coro)

    def sync(self, records=None, source="hostaway"):
        return self.run(self.pipeline.sync_batch(deepcopy(records or MOCK_REVIEWS), source))

    def test_first_sync_imports_everything(self):
        result = self.sync()

        assert result.processed == 5
        assert result.imported == 5
        assert result.updated == 0
        assert result.errors == []
        assert result.completed_at is not None
        assert self.run(self.store.count(REVIEWS)) == 5

    def test_replay_is_idempotent(self):
        self.sync()
        result = self.sync()

        assert result.imported == 0
        assert result.updated == 5
        assert self.run(self.store.count(REVIEWS)) == 5

    def test_listings_created_with_rollups(self):
        self.sync()

        listings = self.run(self.store.find(LISTINGS, sort=[("listing_id", 1)]))
        assert [l["listing_id"] for l in listings] == [
            SHOREDITCH, "luxury-studio-central-london", "modern-2br-near-shoreditch",
        ]

        shoreditch = next(l for l in listings if l["listing_id"] == SHOREDITCH)
        # 7453 has no rating, so only 7454 counts
        assert shoreditch["total_reviews"] == 1
        assert shoreditch["average_rating"] == 4.8
        assert shoreditch["name"] == "2B N1 A - 29 Shoreditch Heights"

        studio = next(l for l in listings if l["listing_id"] == "luxury-studio-central-london")
        assert studio["total_reviews"] == 2
        assert studio["average_rating"] == 2.75

    def test_one_bad_record_does_not_abort_the_batch(self):
        self.pipeline.normalizer = ExplodingNormalizer(bad_id=7455)
        result = self.sync()

        assert result.processed == 4
        assert result.failed == 1
        assert result.errors == [{"review": "hostaway-7455", "error": "corrupt payload"}]
        assert self.run(self.store.count(REVIEWS)) == 4

    def test_unsupported_source_reported_per_record(self):
        result = self.sync(source="tripadvisor")

        assert result.processed == 0
        assert result.failed == 5
        assert result.errors[0]["review"] == "tripadvisor-7453"
        assert "Unsupported review source" in result.errors[0]["error"]

    def test_empty_batch(self):
        result = self.run(self.pipeline.sync_batch([], "hostaway"))
        assert result.processed == 0
        assert result.to_dict()["errors"] == []

    def test_replay_restores_channel_moderation_but_keeps_notes(self):
        self.sync()
        service = ReviewService(self.store)
        doc = self.run(self.store.find_one(REVIEWS, {"external_id": "hostaway-7454"}))
        self.run(service.update_status(doc["id"], is_approved=False, manager_notes="Called the guest"))

        self.sync()
        after = self.run(self.store.find_one(REVIEWS, {"external_id": "hostaway-7454"}))

        assert after["id"] == doc["id"]
        assert after["is_approved"] is True
        assert after["manager_notes"] == "Called the guest"
        assert after["created_at"] == doc["created_at"]

    def test_name_variants_land_on_one_listing(self):
        self.sync()
        direct = [{
            "id": "d-1",
            "guestName": "Ann",
            "text": "Lovely",
            "rating": 5,
            "listingName": "2b n1 a 29 shoreditch heights",
        }]
        self.sync(direct, source="direct")

        assert self.run(self.store.count(LISTINGS, {"listing_id": SHOREDITCH})) == 1
        assert self.run(self.store.count(REVIEWS, {"listing_id": SHOREDITCH})) == 3

    def test_same_native_id_on_two_channels_stays_separate(self):
        self.sync([{"id": 1, "text": "a", "listingName": "Canal Loft"}], source="booking")
        self.sync([{"id": 1, "text": "b", "listingName": "Canal Loft"}], source="direct")
        assert self.run(self.store.count(REVIEWS)) == 2


class TestSyncSource:

    def test_pulls_from_provider(self):
        store = InMemoryStore()
        pipeline = IngestionPipeline(store)
        result = asyncio.run(pipeline.sync_source(StaticProvider(MOCK_REVIEWS[:2]), "hostaway"))

        assert result.source == "hostaway"
        assert result.imported == 2

    def test_mock_hostaway_client(self):
        store = InMemoryStore()
        client = HostawayClient(HostawayConfig(api_key=""))
        result = asyncio.run(IngestionPipeline(store).sync_source(client, "hostaway"))
        assert result.processed == len(MOCK_REVIEWS)


def test_record_identifier():
    assert record_identifier({"externalId": "x-1"}, "hostaway") == "x-1"
    assert record_identifier({"id": 9}, "airbnb") == "airbnb-9"
    assert record_identifier({}, "airbnb").startswith("unknown-")
    assert record_identifier(None, "airbnb").startswith("unknown-")
