"""
Guest Review Hub Configuration Module
=====================================

Centralized configuration management using environment variables.
Supports both .env files and system environment variables.

Environment Variables:
    STORE_BACKEND: Document store backend, postgres or memory (default: postgres)

    DATABASE_HOST: PostgreSQL host (default: localhost)
    DATABASE_PORT: PostgreSQL port (default: 5432)
    DATABASE_NAME: Database name (default: guest_reviews)
    DATABASE_USER: Database user (default: reviews_app)
    DATABASE_PASSWORD: Database password (required for the postgres backend)
    DATABASE_POOL_MIN: Minimum pool connections (default: 2)
    DATABASE_POOL_MAX: Maximum pool connections (default: 10)

    HOSTAWAY_ACCOUNT_ID: Channel manager account id (default: 61148)
    HOSTAWAY_API_KEY: Channel manager API key (mock data when unset)
    HOSTAWAY_API_URL: Channel manager base URL (default: https://api.hostaway.com/v1)

    GOOGLE_API_KEY: Places API key (mock data when unset)
    GOOGLE_PLACES_URL: Places API base URL
    GOOGLE_FRESHNESS_HOURS: Serve stored place reviews younger than this (default: 24)

    CORS_ORIGINS: Extra allowed origins, comma-separated
    API_DEFAULT_PAGE_SIZE: Default page size for review listings (default: 20)
    API_MAX_PAGE_SIZE: Hard cap on page size (default: 100)
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional
from pathlib import Path
from dotenv import load_dotenv


# Load environment variables from .env file if present
env_path = Path(__file__).parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    """
    Get environment variable with optional default and required validation.

    Args:
        key: Environment variable name
        default: Default value if not set
        required: If True, raises ValueError when not set

    Returns:
        Environment variable value or default

    Raises:
        ValueError: If required=True and variable is not set
    """
    value = os.getenv(key, default)
    if required and value is None:
        raise ValueError(f"Required environment variable '{key}' is not set")
    return value


def get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be an integer, got: {value}")


def get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be a float, got: {value}")


def get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as boolean."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def get_env_list(key: str) -> List[str]:
    """Get a comma-separated environment variable as a list of trimmed items."""
    value = os.getenv(key, "")
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class StoreConfig:
    """Document store selection."""

    backend: str = field(default_factory=lambda: get_env("STORE_BACKEND", "postgres"))

    def __post_init__(self):
        self.backend = self.backend.lower()
        if self.backend not in ("postgres", "memory"):
            raise ValueError(f"STORE_BACKEND must be 'postgres' or 'memory', got: {self.backend}")


@dataclass
class DatabaseConfig:
    """PostgreSQL database configuration."""

    host: str = field(default_factory=lambda: get_env("DATABASE_HOST", "localhost"))
    port: int = field(default_factory=lambda: get_env_int("DATABASE_PORT", 5432))
    name: str = field(default_factory=lambda: get_env("DATABASE_NAME", "guest_reviews"))
    user: str = field(default_factory=lambda: get_env("DATABASE_USER", "reviews_app"))
    password: str = field(default_factory=lambda: get_env("DATABASE_PASSWORD", ""))

    # Connection pool settings
    pool_min_size: int = field(default_factory=lambda: get_env_int("DATABASE_POOL_MIN", 2))
    pool_max_size: int = field(default_factory=lambda: get_env_int("DATABASE_POOL_MAX", 10))

    connect_timeout: int = field(default_factory=lambda: get_env_int("DATABASE_CONNECT_TIMEOUT", 10))

    # SSL mode: disable, allow, prefer, require, verify-ca, verify-full
    ssl_mode: str = field(default_factory=lambda: get_env("DATABASE_SSL_MODE", "prefer"))

    @property
    def connection_dict(self) -> dict:
        """Connection parameters as dictionary for psycopg2."""
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.name,
            "user": self.user,
            "password": self.password,
            "sslmode": self.ssl_mode,
            "connect_timeout": self.connect_timeout,
        }

    def validate(self):
        """Checks that only matter once a connection is actually opened."""
        if not self.password:
            raise ValueError("DATABASE_PASSWORD is required for the postgres backend")

    def __post_init__(self):
        if self.pool_min_size > self.pool_max_size:
            raise ValueError("pool_min_size cannot exceed pool_max_size")


@dataclass
class HostawayConfig:
    """Channel manager (Hostaway) API configuration."""

    account_id: str = field(default_factory=lambda: get_env("HOSTAWAY_ACCOUNT_ID", "61148"))
    api_key: str = field(default_factory=lambda: get_env("HOSTAWAY_API_KEY", ""))
    api_url: str = field(default_factory=lambda: get_env("HOSTAWAY_API_URL", "https://api.hostaway.com/v1"))
    request_timeout: int = field(default_factory=lambda: get_env_int("HOSTAWAY_REQUEST_TIMEOUT", 15))

    @property
    def use_mock(self) -> bool:
        """The sandbox account has no reviews, so no key means mock payloads."""
        return not self.api_key or self.api_key.startswith("your_")


@dataclass
class GoogleConfig:
    """Places provider configuration."""

    api_key: str = field(default_factory=lambda: get_env("GOOGLE_API_KEY", ""))
    places_url: str = field(default_factory=lambda: get_env(
        "GOOGLE_PLACES_URL", "https://maps.googleapis.com/maps/api/place"
    ))
    request_timeout: int = field(default_factory=lambda: get_env_int("GOOGLE_REQUEST_TIMEOUT", 10))

    # Stored place reviews younger than this are served without calling the API
    freshness_hours: float = field(default_factory=lambda: get_env_float("GOOGLE_FRESHNESS_HOURS", 24.0))

    @property
    def use_mock(self) -> bool:
        return not self.api_key or self.api_key.startswith("your_")

    def __post_init__(self):
        if self.freshness_hours < 0:
            raise ValueError("freshness_hours cannot be negative")


@dataclass
class ApiConfig:
    """HTTP layer configuration."""

    cors_origins: List[str] = field(default_factory=lambda: get_env_list("CORS_ORIGINS"))
    default_page_size: int = field(default_factory=lambda: get_env_int("API_DEFAULT_PAGE_SIZE", 20))
    max_page_size: int = field(default_factory=lambda: get_env_int("API_MAX_PAGE_SIZE", 100))

    def __post_init__(self):
        if self.default_page_size <= 0:
            raise ValueError("default_page_size must be positive")
        if self.default_page_size > self.max_page_size:
            raise ValueError("default_page_size cannot exceed max_page_size")


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: get_env("LOG_FILE"))

    # Structured logging
    json_logs: bool = field(default_factory=lambda: get_env_bool("LOG_JSON", False))


@dataclass
class Settings:
    """Main application settings container."""

    store: StoreConfig = field(default_factory=StoreConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    hostaway: HostawayConfig = field(default_factory=HostawayConfig)
    google: GoogleConfig = field(default_factory=GoogleConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Application metadata
    app_name: str = "guest-review-hub"
    app_version: str = "1.0.0"
    environment: str = field(default_factory=lambda: get_env("ENVIRONMENT", "development"))

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() in ("production", "prod")

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() in ("development", "dev")


def load_settings() -> Settings:
    """
    Load and validate all application settings.

    Returns:
        Fully configured Settings instance

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    return Settings()


# Global settings instance (lazy-loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton pattern).

    Returns:
        Global Settings instance
    """
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings():
    """Drop the cached settings so the next access re-reads the environment."""
    global _settings
    _settings = None


class _SettingsProxy:
    """Proxy class for lazy settings access."""

    def __getattr__(self, name):
        return getattr(get_settings(), name)


settings = _SettingsProxy()
