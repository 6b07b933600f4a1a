"""
Tests for environment-driven settings.
"""

import pytest

from src.data.config import (
    ApiConfig,
    DatabaseConfig,
    GoogleConfig,
    StoreConfig,
    get_env_bool,
    get_env_int,
    get_env_list,
    get_settings,
    reset_settings,
)


class TestEnvHelpers:

    def test_int(self, monkeypatch):
        monkeypatch.setenv("X_INT", "42")
        assert get_env_int("X_INT", 1) == 42
        assert get_env_int("X_MISSING", 7) == 7

    def test_int_invalid(self, monkeypatch):
        monkeypatch.setenv("X_INT", "forty")
        with pytest.raises(ValueError):
            get_env_int("X_INT", 1)

    @pytest.mark.parametrize("raw,expected", [("true", True), ("1", True), ("on", True), ("no", False)])
    def test_bool(self, monkeypatch, raw, expected):
        monkeypatch.setenv("X_BOOL", raw)
        assert get_env_bool("X_BOOL", not expected) is expected

    def test_list(self, monkeypatch):
        monkeypatch.setenv("X_LIST", " https://a.example , ,https://b.example")
        assert get_env_list("X_LIST") == ["https://a.example", "https://b.example"]


class TestSections:

    def test_store_backend_validated(self):
        assert StoreConfig(backend="MEMORY").backend == "memory"
        with pytest.raises(ValueError):
            StoreConfig(backend="mongo")

    def test_database_pool_bounds(self):
        with pytest.raises(ValueError):
            DatabaseConfig(pool_min_size=5, pool_max_size=2)

    def test_database_password_checked_on_validate(self):
        config = DatabaseConfig(password="")
        with pytest.raises(ValueError):
            config.validate()
        assert config.connection_dict["dbname"] == "guest_reviews"

    def test_google_freshness(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_FRESHNESS_HOURS", "6")
        assert GoogleConfig().freshness_hours == 6.0
        with pytest.raises(ValueError):
            GoogleConfig(freshness_hours=-1)

    def test_page_sizes(self):
        with pytest.raises(ValueError):
            ApiConfig(default_page_size=200, max_page_size=100)


def test_settings_singleton_and_reset(monkeypatch):
    first = get_settings()
    assert get_settings() is first
    assert first.store.backend == "memory"

    monkeypatch.setenv("ENVIRONMENT", "production")
    reset_settings()
    assert get_settings().is_production()
