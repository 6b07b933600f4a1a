"""
Hostaway Channel Manager Client
===============================

Fetches guest reviews from the Hostaway public API.

Configuration:
    HOSTAWAY_ACCOUNT_ID: Account id, used as the OAuth client id
    HOSTAWAY_API_KEY: API secret (mock reviews are served when unset)
    HOSTAWAY_API_URL: Base URL (default https://api.hostaway.com/v1)

Strategy:
    Exchange account id + secret for a bearer token (client credentials),
    then page through GET /reviews. The sandbox account has no reviews, so
    without credentials the client returns a fixed set of realistic payloads.

Usage:
    client = HostawayClient()
    raw_reviews = client.fetch_batch()
"""

import logging
from copy import deepcopy
from typing import Any, Dict, List, Optional

import requests

from .config import HostawayConfig, get_settings

logger = logging.getLogger(__name__)


class HostawayAPIError(Exception):
    """Channel manager API error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


MOCK_REVIEWS: List[Dict[str, Any]] = [
    {
        "id": 7453,
        "type": "host-to-guest",
        "status": "published",
        "rating": None,
        "publicReview": "Shane and family are wonderful! Would definitely host again :)",
        "reviewCategory": [
            {"category": "cleanliness", "rating": 10},
            {"category": "communication", "rating": 10},
            {"category": "respect_house_rules", "rating": 10},
        ],
        "submittedAt": "2020-08-21 22:45:14",
        "guestName": "Shane Finkelstein",
        "listingName": "2B N1 A - 29 Shoreditch Heights",
    },
    {
        "id": 7454,
        "type": "guest-to-host",
        "status": "published",
        "rating": 4.8,
        "publicReview": "Amazing location and very clean apartment. The host was very responsive.",
        "reviewCategory": [
            {"category": "cleanliness", "rating": 9},
            {"category": "communication", "rating": 10},
            {"category": "location", "rating": 10},
            {"category": "check_in", "rating": 8},
        ],
        "submittedAt": "2021-03-15 10:30:00",
        "guestName": "Maria Rodriguez",
        "listingName": "2B N1 A - 29 Shoreditch Heights",
    },
    {
        "id": 7455,
        "type": "guest-to-host",
        "status": "published",
        "rating": 3.5,
        "publicReview": "Good location but the apartment was a bit noisy at night.",
        "reviewCategory": [
            {"category": "cleanliness", "rating": 7},
            {"category": "communication", "rating": 6},
            {"category": "location", "rating": 9},
            {"category": "noise", "rating": 4},
        ],
        "submittedAt": "2021-04-22 14:20:00",
        "guestName": "John Smith",
        "listingName": "Luxury Studio - Central London",
    },
    {
        "id": 7456,
        "type": "guest-to-host",
        "status": "published",
        "rating": 5.0,
        "publicReview": "Perfect stay! Everything was exactly as described. Would definitely return.",
        "reviewCategory": [
            {"category": "cleanliness", "rating": 10},
            {"category": "communication", "rating": 10},
            {"category": "accuracy", "rating": 10},
            {"category": "value", "rating": 9},
        ],
        "submittedAt": "2021-05-10 09:15:00",
        "guestName": "Emma Wilson",
        "listingName": "Modern 2BR near Shoreditch",
    },
    {
        "id": 7457,
        "type": "guest-to-host",
        "status": "published",
        "rating": 2.0,
        "publicReview": "Disappointed with the cleanliness. The bathroom needed proper cleaning.",
        "reviewCategory": [
            {"category": "cleanliness", "rating": 2},
            {"category": "communication", "rating": 5},
            {"category": "amenities", "rating": 4},
        ],
        "submittedAt": "2021-06-05 16:45:00",
        "guestName": "David Brown",
        "listingName": "Luxury Studio - Central London",
    },
]


class HostawayClient:
    """
    Review source for the channel manager.

    Implements the provider interface used by IngestionPipeline.sync_source.
    """

    PAGE_SIZE = 100

    def __init__(self, config: Optional[HostawayConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or get_settings().hostaway
        self.session = session or requests.Session()
        self._token: Optional[str] = None
        self._requests_made = 0

    @property
    def using_mock(self) -> bool:
        return self.config.use_mock

    def _get_access_token(self) -> str:
        if self._token:
            return self._token
        response = self.session.post(
            f"{self.config.api_url}/accessTokens",
            data={
                "grant_type": "client_credentials",
                "client_id": self.config.account_id,
                "client_secret": self.config.api_key,
                "scope": "general",
            },
            timeout=self.config.request_timeout,
        )
        self._requests_made += 1
        if response.status_code in (401, 403):
            raise HostawayAPIError("Invalid Hostaway credentials", response.status_code)
        if response.status_code != 200:
            raise HostawayAPIError(
                f"Hostaway token error: {response.status_code} - {response.text[:200]}",
                response.status_code,
            )
        token = response.json().get("access_token")
        if not token:
            raise HostawayAPIError("No access_token in Hostaway response")
        self._token = token
        return token

    def _get_page(self, offset: int) -> List[Dict[str, Any]]:
        try:
            response = self.session.get(
                f"{self.config.api_url}/reviews",
                headers={"Authorization": f"Bearer {self._get_access_token()}"},
                params={"limit": self.PAGE_SIZE, "offset": offset},
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as e:
            raise HostawayAPIError(f"Hostaway request failed: {e}") from e
        self._requests_made += 1

        if response.status_code != 200:
            raise HostawayAPIError(
                f"Hostaway reviews error: {response.status_code} - {response.text[:200]}",
                response.status_code,
            )
        body = response.json()
        if body.get("status") != "success":
            raise HostawayAPIError(f"Hostaway returned status {body.get('status')!r}")
        return body.get("result") or []

    def fetch_reviews(self) -> List[Dict[str, Any]]:
        """All reviews visible to the account, following offset pagination."""
        reviews: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page = self._get_page(offset)
            reviews.extend(page)
            if len(page) < self.PAGE_SIZE:
                break
            offset += self.PAGE_SIZE
        logger.info(f"Fetched {len(reviews)} Hostaway reviews in {self._requests_made} requests")
        return reviews

    def fetch_batch(self) -> List[Dict[str, Any]]:
        if self.using_mock:
            logger.warning("Using mock Hostaway reviews (no API key configured)")
            return deepcopy(MOCK_REVIEWS)
        return self.fetch_reviews()
