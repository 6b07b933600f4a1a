"""
Shared test setup: in-memory store, providers on mock data.
"""

import os

os.environ["STORE_BACKEND"] = "memory"
os.environ["HOSTAWAY_API_KEY"] = ""
os.environ["GOOGLE_API_KEY"] = ""
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from src.data.config import reset_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings re-read from the environment for every test."""
    reset_settings()
    yield
    reset_settings()
