"""
Tests for channel payload normalization.

Usage:
    pytest tests/test_normalizer.py -v
"""

from copy import deepcopy
from datetime import datetime, timedelta, timezone

import pytest

from src.data.hostaway_client import MOCK_REVIEWS
from src.reviews.normalizer import (
    MAX_TEXT_LENGTH,
    ReviewNormalizer,
    UnsupportedSourceError,
    clean_guest_name,
    clean_text,
    parse_categories,
    parse_timestamp,
)
from src.reviews.review_models import Channel


def hostaway_payload(review_id: int) -> dict:
    return deepcopy(next(r for r in MOCK_REVIEWS if r["id"] == review_id))


def google_payload(**overrides) -> dict:
    payload = {
        "author_name": "Emma Wilson",
        "rating": 5,
        "text": "Perfect location, amazing views!",
        "time": 1700000000,
        "place_id": "P1",
    }
    payload.update(overrides)
    return payload


class TestHostaway:

    def setup_method(self):
        self.normalizer = ReviewNormalizer()

    def test_maps_core_fields(self):
        review = self.normalizer.normalize(hostaway_payload(7454), "hostaway")

        assert review.external_id == "hostaway-7454"
        assert review.channel == "hostaway"
        assert review.type == "guest-to-host"
        assert review.rating == 4.8
        assert review.guest_name == "Maria Rodriguez"
        assert review.listing_name == "2B N1 A - 29 Shoreditch Heights"
        assert review.listing_id == "2b-n1-a-29-shoreditch-heights"
        assert review.submitted_at == datetime(2021, 3, 15, 10, 30, tzinfo=timezone.utc)
        assert [c.category for c in review.category_ratings] == [
            "cleanliness", "communication", "location", "check_in",
        ]

    def test_sentiment_computed_from_text(self):
        review = self.normalizer.normalize(hostaway_payload(7454), "hostaway")
        assert review.sentiment_score == 0.1

    def test_published_reviews_are_auto_approved(self):
        review = self.normalizer.normalize(hostaway_payload(7456), "hostaway")
        assert review.is_approved is True
        assert review.is_public is True

    def test_unpublished_reviews_wait_for_moderation(self):
        raw = hostaway_payload(7456)
        raw["status"] = "unpublished"
        review = self.normalizer.normalize(raw, "hostaway")
        assert review.status == "unpublished"
        assert review.is_approved is False
        assert review.is_public is False

    def test_null_rating_kept(self):
        review = self.normalizer.normalize(hostaway_payload(7453), "hostaway")
        assert review.rating is None

    def test_unknown_status_and_type_fall_back(self):
        raw = hostaway_payload(7455)
        raw["status"] = "weird"
        raw["type"] = "something-else"
        review = self.normalizer.normalize(raw, "hostaway")
        assert review.status == "pending"
        assert review.type == "guest-to-property"

    def test_missing_id_gets_a_stable_fallback(self):
        raw = hostaway_payload(7455)
        del raw["id"]
        first = self.normalizer.normalize(raw, "hostaway")
        second = self.normalizer.normalize(deepcopy(raw), "hostaway")

        assert first.external_id == second.external_id
        assert first.external_id.startswith("hostaway-")
        assert len(first.external_id) == len("hostaway-") + 12

    def test_source_tag_is_case_insensitive(self):
        review = self.normalizer.normalize(hostaway_payload(7454), "HOSTAWAY")
        assert review.channel == "hostaway"

    def test_non_dict_payload_does_not_raise(self):
        review = self.normalizer.normalize("not a payload", "hostaway")
        assert review.text == ""
        assert review.rating is None


class TestGoogle:

    def setup_method(self):
        self.normalizer = ReviewNormalizer()

    def test_maps_core_fields(self):
        review = self.normalizer.normalize(google_payload(), "google")

        assert review.external_id == "google-P1-1700000000"
        assert review.channel == "google"
        assert review.status == "published"
        assert review.rating == 5.0
        assert review.listing_id == "google-P1"
        assert review.submitted_at == datetime.fromtimestamp(1700000000, tz=timezone.utc)
        assert review.category_ratings == []

    def test_always_auto_approved(self):
        review = self.normalizer.normalize(google_payload(rating=1), "google")
        assert review.is_approved is True
        assert review.is_public is True

    def test_target_listing_wins(self):
        review = self.normalizer.normalize(
            google_payload(listingId="29-shoreditch", listingName="29 Shoreditch"), "google"
        )
        assert review.listing_id == "29-shoreditch"
        assert review.listing_name == "29 Shoreditch"

    def test_guest_name_hygiene(self):
        review = self.normalizer.normalize(google_payload(author_name="O'Brien 3rd"), "google")
        assert review.guest_name == "OBrien rd"

    def test_blank_author_defaults(self):
        review = self.normalizer.normalize(google_payload(author_name="123"), "google")
        assert review.guest_name == "Google User"


class TestAirbnbAndGeneric:

    def setup_method(self):
        self.normalizer = ReviewNormalizer()

    def test_airbnb(self):
        raw = {
            "id": "a1",
            "rating": 4,
            "comments": "Lovely canal views",
            "created_at": "2024-01-15T10:00:00Z",
            "reviewer": {"name": "Ann"},
            "listing": {"name": "Canal Loft"},
            "listing_id": "99",
            "categories": [{"category": "cleanliness", "rating": 9}],
        }
        review = self.normalizer.normalize(raw, "airbnb")

        assert review.external_id == "airbnb-a1"
        assert review.listing_id == "airbnb-99"
        assert review.listing_name == "Canal Loft"
        assert review.guest_name == "Ann"
        assert review.status == "pending"
        assert review.is_approved is False
        assert [(c.category, c.rating) for c in review.category_ratings] == [("cleanliness", 9.0)]
        assert review.submitted_at == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)

    def test_airbnb_listing_falls_back_to_slug(self):
        raw = {"id": "a2", "listing": {"name": "Canal Loft"}}
        assert self.normalizer.normalize(raw, "airbnb").listing_id == "canal-loft"

    def test_airbnb_defaults(self):
        review = self.normalizer.normalize({"id": "a3"}, "airbnb")
        assert review.guest_name == "Anonymous"
        assert review.listing_name == "Airbnb Listing"

    def test_booking_uses_generic_shape(self):
        raw = {"id": 5, "guestName": "Bob", "text": "ok", "listingName": "Canal Loft", "rating": "3"}
        review = self.normalizer.normalize(raw, "booking")

        assert review.external_id == "booking-5"
        assert review.channel == "booking"
        assert review.listing_id == "canal-loft"
        assert review.rating == 3.0
        assert review.is_approved is False

    def test_direct_defaults(self):
        review = self.normalizer.normalize({"id": 1}, Channel.DIRECT)
        assert review.channel == "direct"
        assert review.guest_name == "Guest"
        assert review.listing_name == "Direct Review"

    def test_every_channel_has_a_mapper(self):
        assert set(ReviewNormalizer.MAPPERS) == set(Channel)


class TestUnsupportedSource:

    def test_unknown_tag_raises(self):
        with pytest.raises(UnsupportedSourceError) as exc:
            ReviewNormalizer().normalize({"id": 1}, "tripadvisor")
        assert exc.value.source == "tripadvisor"

    def test_is_a_value_error(self):
        assert issubclass(UnsupportedSourceError, ValueError)


class TestFieldHygiene:

    def test_clean_text_collapses_whitespace(self):
        assert clean_text("  hello \n\n  world ") == "hello world"

    def test_clean_text_caps_length(self):
        assert len(clean_text("x" * (MAX_TEXT_LENGTH + 1000))) == MAX_TEXT_LENGTH

    def test_clean_text_non_string(self):
        assert clean_text(None) == ""
        assert clean_text(42) == ""

    def test_guest_name_caps_length(self):
        assert len(clean_guest_name("a" * 300)) == 100

    def test_timestamp_formats(self):
        expected = datetime(2020, 8, 21, 22, 45, 14, tzinfo=timezone.utc)
        assert parse_timestamp("2020-08-21 22:45:14") == expected
        assert parse_timestamp("2020-08-21T22:45:14Z") == expected
        assert parse_timestamp(expected.timestamp()) == expected
        assert parse_timestamp(datetime(2020, 8, 21, 22, 45, 14)) == expected

    def test_offset_converted_to_utc(self):
        parsed = parse_timestamp("2020-08-21T23:45:14+01:00")
        assert parsed == datetime(2020, 8, 21, 22, 45, 14, tzinfo=timezone.utc)

    def test_unparseable_timestamp_is_now(self):
        parsed = parse_timestamp("yesterday-ish")
        assert abs(datetime.now(timezone.utc) - parsed) < timedelta(seconds=5)

    def test_out_of_range_epoch_is_now(self):
        review = ReviewNormalizer().normalize(google_payload(time=10 ** 20), "google")
        assert abs(datetime.now(timezone.utc) - review.submitted_at) < timedelta(seconds=5)

        parsed = parse_timestamp(float("nan"))
        assert abs(datetime.now(timezone.utc) - parsed) < timedelta(seconds=5)

    @pytest.mark.parametrize("raw", ["nan", "inf", "-inf", float("nan")])
    def test_non_finite_rating_is_missing(self, raw):
        review = ReviewNormalizer().normalize(google_payload(rating=raw), "google")
        assert review.rating is None

    def test_non_finite_category_dropped(self):
        ratings = parse_categories([
            {"category": "cleanliness", "rating": "nan"},
            {"category": "value", "rating": "inf"},
            {"category": "location", "rating": 8},
        ])
        assert [(r.category, r.rating) for r in ratings] == [("location", 8.0)]

    def test_invalid_categories_dropped(self):
        ratings = parse_categories([
            {"category": "cleanliness", "rating": 9},
            {"category": "", "rating": 5},
            {"category": "value", "rating": "n/a"},
            "junk",
        ])
        assert [(r.category, r.rating) for r in ratings] == [("cleanliness", 9.0)]
        assert parse_categories(None) == []
