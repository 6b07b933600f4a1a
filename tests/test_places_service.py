"""
Tests for the Google places client and the cached place review service.

Usage:
    pytest tests/test_places_service.py -v
"""

import asyncio
from datetime import timedelta
from unittest.mock import Mock

import pytest
import requests

from src.data.config import GoogleConfig
from src.data.google_places_client import (
    MOCK_SEARCH_RESULTS,
    GooglePlacesClient,
    GooglePlacesError,
    mock_reviews,
)
from src.data.memory_store import InMemoryStore
from src.data.places_service import PlacesReviewService, rating_statistics
from src.data.store import REVIEWS
from src.reviews.listing_resolver import ListingNotFoundError
from src.reviews.review_models import ReviewValidationError, utc_now

FIXED_NOW = 1_700_000_000


class FixedClient(GooglePlacesClient):
    """Mock-mode client with stable timestamps that counts fetches."""

    def __init__(self):
        super().__init__(GoogleConfig(api_key=""))
        self.fetches = 0

    def get_place_reviews(self, place_id):
        self.fetches += 1
        return mock_reviews(now=FIXED_NOW)


def api_response(body, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = body
    response.raise_for_status.return_value = None
    return response


class TestGooglePlacesClient:

    def test_mock_mode_without_key(self):
        client = GooglePlacesClient(GoogleConfig(api_key=""))

        assert client.using_mock is True
        assert len(client.get_place_reviews("P1")) == 5
        assert [p["place_id"] for p in client.search_place("shoreditch")] == [
            c["place_id"] for c in MOCK_SEARCH_RESULTS
        ]

    def test_placeholder_key_is_mock(self):
        assert GoogleConfig(api_key="your_google_key").use_mock is True

    def test_mock_reviews_relative_to_now(self):
        reviews = mock_reviews(now=FIXED_NOW)
        assert [r["rating"] for r in reviews] == [5, 4, 3, 5, 2]
        assert reviews[0]["time"] == FIXED_NOW - 7 * 86400

    def test_fetch_batch_tags_payloads(self):
        client = FixedClient()
        payloads = client.fetch_batch("P1", listing_id="canal-loft", listing_name="Canal Loft")

        assert all(p["place_id"] == "P1" for p in payloads)
        assert all(p["listingId"] == "canal-loft" for p in payloads)
        assert all(p["listingName"] == "Canal Loft" for p in payloads)

    def test_live_details(self):
        session = Mock()
        session.get.return_value = api_response({
            "status": "OK",
            "result": {"place_id": "P1", "reviews": [{"author_name": "A", "rating": 5, "time": 1}]},
        })
        client = GooglePlacesClient(GoogleConfig(api_key="real-key"), session=session)

        reviews = client.get_place_reviews("P1")

        assert reviews == [{"author_name": "A", "rating": 5, "time": 1}]
        _, kwargs = session.get.call_args
        assert kwargs["params"]["key"] == "real-key"
        assert kwargs["params"]["place_id"] == "P1"

    def test_live_error_status(self):
        session = Mock()
        session.get.return_value = api_response({"status": "REQUEST_DENIED", "error_message": "bad key"})
        client = GooglePlacesClient(GoogleConfig(api_key="real-key"), session=session)

        with pytest.raises(GooglePlacesError) as exc:
            client.get_place_details("P1")
        assert exc.value.api_status == "REQUEST_DENIED"

    def test_live_search_zero_results(self):
        session = Mock()
        session.get.return_value = api_response({"status": "ZERO_RESULTS"})
        client = GooglePlacesClient(GoogleConfig(api_key="real-key"), session=session)

        assert client.search_place("nowhere", location="51.5,-0.1") == []
        _, kwargs = session.get.call_args
        assert kwargs["params"]["locationbias"] == "circle:5000@51.5,-0.1"

    def test_network_failure(self):
        session = Mock()
        session.get.side_effect = requests.ConnectionError("down")
        client = GooglePlacesClient(GoogleConfig(api_key="real-key"), session=session)

        with pytest.raises(GooglePlacesError):
            client.get_place_details("P1")


class TestPlacesReviewService:

    def setup_method(self):
        self.store = InMemoryStore()
        self.client = FixedClient()
        self.service = PlacesReviewService(self.store, client=self.client, config=GoogleConfig(api_key=""))

    def run(self, coro):
        return asyncio.run(coro)

    def test_first_call_fetches_and_stores(self):
        result = self.run(self.service.get_reviews(place_id="P1"))

        assert result["placeId"] == "P1"
        assert result["listingId"] == "google-P1"
        assert result["source"] == "mock"
        assert result["isMockData"] is True
        assert result["sync"]["imported"] == 5
        assert result["statistics"] == {
            "total": 5,
            "averageRating": 3.8,
            "byRating": {5: 2, 4: 1, 3: 1, 2: 1, 1: 0},
        }
        assert self.run(self.store.count(REVIEWS, {"channel": "google"})) == 5

    def test_second_call_served_from_cache(self):
        self.run(self.service.get_reviews(place_id="P1"))
        result = self.run(self.service.get_reviews(place_id="P1"))

        assert result["source"] == "cache"
        assert result["sync"] is None
        assert len(result["reviews"]) == 5
        assert self.client.fetches == 1

    def test_force_refresh_bypasses_cache(self):
        self.run(self.service.get_reviews(place_id="P1"))
        result = self.run(self.service.get_reviews(place_id="P1", force_refresh=True))

        assert result["sync"]["updated"] == 5
        assert self.client.fetches == 2
        assert self.run(self.store.count(REVIEWS)) == 5

    def test_zero_freshness_always_refetches(self):
        self.service.config = GoogleConfig(api_key="", freshness_hours=0)
        self.run(self.service.get_reviews(place_id="P1"))
        self.run(self.service.get_reviews(place_id="P1"))
        assert self.client.fetches == 2

    def test_is_fresh(self):
        now = utc_now()
        assert self.service.is_fresh(now - timedelta(hours=23), now) is True
        assert self.service.is_fresh(now - timedelta(hours=25), now) is False
        assert self.service.is_fresh(None, now) is False

    def test_requires_place_or_listing(self):
        with pytest.raises(ReviewValidationError):
            self.run(self.service.get_reviews())

    def test_listing_without_place(self):
        self.run(self.service.resolver.ensure_listing("canal-loft", "Canal Loft"))
        with pytest.raises(ListingNotFoundError):
            self.run(self.service.get_reviews(listing_id="canal-loft"))
        with pytest.raises(ListingNotFoundError):
            self.run(self.service.get_reviews(listing_id="nowhere"))

    def test_connect_listing_pulls_reviews(self):
        self.run(self.service.resolver.ensure_listing("canal-loft", "Canal Loft"))

        result = self.run(self.service.connect_listing("canal-loft", "P1"))

        assert result["listing"]["googlePlaceId"] == "P1"
        assert result["reviews"]["listingId"] == "canal-loft"
        assert self.run(self.store.count(REVIEWS, {"listing_id": "canal-loft"})) == 5

        again = self.run(self.service.get_reviews(listing_id="canal-loft"))
        assert again["source"] == "cache"

    def test_cache_scoped_per_listing(self):
        self.run(self.service.get_reviews(place_id="P1"))
        self.run(self.service.resolver.ensure_listing("canal-loft", "Canal Loft"))
        self.run(self.service.resolver.connect_place("canal-loft", "P1"))

        result = self.run(self.service.get_reviews(listing_id="canal-loft"))
        assert result["source"] == "mock"

    def test_search(self):
        results = self.run(self.service.search("Flex Living"))
        assert results[0]["name"] == "Flex Living Shoreditch Heights"


def test_rating_statistics_empty():
    assert rating_statistics([]) == {
        "total": 0, "averageRating": 0.0, "byRating": {5: 0, 4: 0, 3: 0, 2: 0, 1: 0},
    }
