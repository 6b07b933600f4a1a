"""
Google Places Client
====================

Place details, place search and public reviews from the Google Places API.

Configuration:
    GOOGLE_API_KEY: Places API key (mock data is served when unset)
    GOOGLE_PLACES_URL: Base URL (default https://maps.googleapis.com/maps/api/place)
    GOOGLE_REQUEST_TIMEOUT: Seconds per request (default 10)

The details endpoint returns at most five reviews per place; that is a
provider limit, not something this client can page past.

Usage:
    client = GooglePlacesClient()
    reviews = client.get_place_reviews("ChIJN1t_tDeuEmsRUsoyG83frY4")
    payloads = client.fetch_batch(place_id, listing_id="2b-n1-a-29-shoreditch-heights")
"""

import logging
import time
from typing import Any, Dict, List, Optional

import requests

from .config import GoogleConfig, get_settings

logger = logging.getLogger(__name__)

DETAIL_FIELDS = (
    "place_id,name,rating,user_ratings_total,reviews,"
    "formatted_address,formatted_phone_number,website"
)
SEARCH_FIELDS = "place_id,name,formatted_address,rating,user_ratings_total"
SEARCH_RADIUS_METERS = 5000


class GooglePlacesError(Exception):
    """Places API returned an error status or could not be reached."""

    def __init__(self, message: str, api_status: Optional[str] = None):
        super().__init__(message)
        self.api_status = api_status


def mock_reviews(now: Optional[float] = None) -> List[Dict[str, Any]]:
    """Five realistic place reviews, timestamped relative to `now`."""
    now = int(now if now is not None else time.time())
    day = 86400
    return [
        {
            "author_name": "John Traveler",
            "rating": 5,
            "text": "Excellent stay! The apartment was clean, modern, and perfectly located. Staff was very helpful.",
            "time": now - day * 7,
            "relative_time_description": "a week ago",
        },
        {
            "author_name": "Sarah M.",
            "rating": 4,
            "text": "Great location and comfortable beds. The kitchen was well-equipped. Would stay again!",
            "time": now - day * 14,
            "relative_time_description": "2 weeks ago",
        },
        {
            "author_name": "Mike T.",
            "rating": 3,
            "text": "Good value for money. The place was clean but a bit noisy at night due to street traffic.",
            "time": now - day * 30,
            "relative_time_description": "a month ago",
        },
        {
            "author_name": "Emma Wilson",
            "rating": 5,
            "text": "Perfect location, amazing views! Everything was exactly as described. Highly recommended.",
            "time": now - day * 2,
            "relative_time_description": "2 days ago",
        },
        {
            "author_name": "David Brown",
            "rating": 2,
            "text": "Disappointed with the cleanliness. Bathroom needed more attention. Location was good though.",
            "time": now - day * 45,
            "relative_time_description": "a month ago",
        },
    ]


MOCK_SEARCH_RESULTS: List[Dict[str, Any]] = [
    {
        "place_id": "ChIJN1t_tDeuEmsRUsoyG83frY4",
        "name": "Flex Living Shoreditch Heights",
        "formatted_address": "29 Shoreditch Heights, London, UK",
        "rating": 4.5,
        "user_ratings_total": 128,
    },
    {
        "place_id": "ChIJd8zQy9iuEmsRwLsayLYlBEg",
        "name": "Luxury Apartments London",
        "formatted_address": "123 Luxury Street, London, UK",
        "rating": 4.2,
        "user_ratings_total": 89,
    },
]


class GooglePlacesClient:
    """Thin requests-based wrapper around the Places web service."""

    def __init__(self, config: Optional[GoogleConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or get_settings().google
        self.session = session or requests.Session()
        self._requests_made = 0

    @property
    def using_mock(self) -> bool:
        return self.config.use_mock

    def _get(self, endpoint: str, params: Dict[str, Any], ok_statuses=("OK",)) -> Dict[str, Any]:
        params = dict(params, key=self.config.api_key)
        try:
            response = self.session.get(
                f"{self.config.places_url}/{endpoint}/json",
                params=params,
                timeout=self.config.request_timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise GooglePlacesError(f"Places request failed: {e}") from e
        self._requests_made += 1

        body = response.json()
        status = body.get("status")
        if status not in ok_statuses:
            logger.error(f"Google Places API error: {status} ({body.get('error_message', '')})")
            raise GooglePlacesError(f"Google Places API error: {status}", api_status=status)
        return body

    def get_place_details(self, place_id: str) -> Dict[str, Any]:
        if self.using_mock:
            return {
                "place_id": place_id,
                "name": "Mock Place",
                "rating": 4.5,
                "user_ratings_total": 128,
                "reviews": mock_reviews(),
                "formatted_address": "123 Mock Street, Test City",
            }
        body = self._get("details", {"place_id": place_id, "fields": DETAIL_FIELDS})
        return body.get("result") or {}

    def get_place_reviews(self, place_id: str) -> List[Dict[str, Any]]:
        if self.using_mock:
            logger.warning("Using mock data for Google reviews (no API key configured)")
            return mock_reviews()
        return self.get_place_details(place_id).get("reviews") or []

    def search_place(self, query: str, location: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Find places by free text.

        Args:
            query: Text such as a property name and street
            location: Optional "lat,lng" to bias results within 5 km
        """
        if self.using_mock:
            logger.info("Using mock search data for Google places")
            return [dict(candidate) for candidate in MOCK_SEARCH_RESULTS]

        params = {"input": query, "inputtype": "textquery", "fields": SEARCH_FIELDS}
        if location:
            params["locationbias"] = f"circle:{SEARCH_RADIUS_METERS}@{location}"
        body = self._get("findplacefromtext", params, ok_statuses=("OK", "ZERO_RESULTS"))
        return body.get("candidates") or []

    def fetch_batch(
        self,
        place_id: str,
        listing_id: Optional[str] = None,
        listing_name: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Place reviews tagged with the place (and target listing) for normalization."""
        payloads = []
        for review in self.get_place_reviews(place_id):
            payload = dict(review, place_id=place_id)
            if listing_id:
                payload["listingId"] = listing_id
            if listing_name:
                payload["listingName"] = listing_name
            payloads.append(payload)
        return payloads
