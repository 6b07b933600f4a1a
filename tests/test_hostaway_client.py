"""
Tests for the Hostaway client: mock fallback, token exchange and paging.

The HTTP session is mocked; no network access.
"""

from unittest.mock import Mock

import pytest
import requests

from src.data.config import HostawayConfig
from src.data.hostaway_client import MOCK_REVIEWS, HostawayAPIError, HostawayClient


def response(status_code=200, body=None, text=""):
    mocked = Mock()
    mocked.status_code = status_code
    mocked.json.return_value = body or {}
    mocked.text = text
    return mocked


def token_ok():
    return response(200, {"access_token": "tok-123", "token_type": "Bearer"})


def page(count, start=0):
    return response(200, {"status": "success", "result": [{"id": start + i} for i in range(count)]})


@pytest.fixture
def live_config():
    return HostawayConfig(account_id="61148", api_key="secret", api_url="https://api.test/v1")


class TestMockMode:

    def test_no_key_serves_mock_reviews(self):
        client = HostawayClient(HostawayConfig(api_key=""))

        assert client.using_mock is True
        batch = client.fetch_batch()
        assert [r["id"] for r in batch] == [7453, 7454, 7455, 7456, 7457]

    def test_mock_batch_is_a_copy(self):
        client = HostawayClient(HostawayConfig(api_key=""))
        client.fetch_batch()[0]["guestName"] = "Changed"
        assert MOCK_REVIEWS[0]["guestName"] == "Shane Finkelstein"

    def test_placeholder_key_is_mock(self):
        assert HostawayConfig(api_key="your_hostaway_key").use_mock is True


class TestLiveMode:

    def test_single_page(self, live_config):
        session = Mock()
        session.post.return_value = token_ok()
        session.get.return_value = page(3)
        client = HostawayClient(live_config, session=session)

        reviews = client.fetch_batch()

        assert [r["id"] for r in reviews] == [0, 1, 2]
        _, kwargs = session.post.call_args
        assert kwargs["data"]["client_id"] == "61148"
        assert kwargs["data"]["client_secret"] == "secret"
        _, kwargs = session.get.call_args
        assert kwargs["headers"]["Authorization"] == "Bearer tok-123"
        assert kwargs["params"] == {"limit": 100, "offset": 0}

    def test_follows_offset_pagination(self, live_config):
        session = Mock()
        session.post.return_value = token_ok()
        session.get.side_effect = [page(100), page(100, 100), page(7, 200)]
        client = HostawayClient(live_config, session=session)

        reviews = client.fetch_reviews()

        assert len(reviews) == 207
        offsets = [call.kwargs["params"]["offset"] for call in session.get.call_args_list]
        assert offsets == [0, 100, 200]
        # token fetched once and reused
        assert session.post.call_count == 1

    def test_invalid_credentials(self, live_config):
        session = Mock()
        session.post.return_value = response(401, text="unauthorized")
        client = HostawayClient(live_config, session=session)

        with pytest.raises(HostawayAPIError) as exc:
            client.fetch_batch()
        assert exc.value.status_code == 401

    def test_missing_token_in_body(self, live_config):
        session = Mock()
        session.post.return_value = response(200, {})
        client = HostawayClient(live_config, session=session)

        with pytest.raises(HostawayAPIError):
            client.fetch_batch()

    def test_non_success_status(self, live_config):
        session = Mock()
        session.post.return_value = token_ok()
        session.get.return_value = response(200, {"status": "fail", "result": []})
        client = HostawayClient(live_config, session=session)

        with pytest.raises(HostawayAPIError, match="fail"):
            client.fetch_batch()

    def test_http_error_on_reviews(self, live_config):
        session = Mock()
        session.post.return_value = token_ok()
        session.get.return_value = response(500, text="boom")
        client = HostawayClient(live_config, session=session)

        with pytest.raises(HostawayAPIError) as exc:
            client.fetch_batch()
        assert exc.value.status_code == 500

    def test_network_failure(self, live_config):
        session = Mock()
        session.post.return_value = token_ok()
        session.get.side_effect = requests.Timeout("slow")
        client = HostawayClient(live_config, session=session)

        with pytest.raises(HostawayAPIError):
            client.fetch_batch()
