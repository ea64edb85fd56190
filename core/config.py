"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Validates all required settings
- Provides type-safe access to configuration values
- Converts comma-separated strings to lists (CORS origins)
- Handles optional settings with sensible defaults

Usage:
    from core.config import settings

    # Access configuration values
    print(settings.yahoo_base_url)
    print(settings.cache_ttl_ms)  # 300000 by default
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field


class Settings(BaseSettings):
    """
    Application Settings

    This class defines all configuration parameters for the application.
    Values are automatically loaded from environment variables or .env file.

    Attributes:
        yahoo_base_url: Base URL for the Yahoo Finance query API
        yahoo_cookie_url: URL hit once to obtain the Yahoo session cookie
        yahoo_crumb_url: URL returning the crumb token bound to that cookie
        user_agent: User-Agent header sent upstream
        app_host: Host address for FastAPI server
        app_port: Port number for FastAPI server (PORT or APP_PORT)
        environment: Current environment (development, production)
        debug: Enable debug mode with verbose logging
        request_timeout: Timeout for a single upstream request in seconds
        provider_max_attempts: Attempts per upstream request (1 = no retry)
        cache_ttl_ms: Cache time-to-live in milliseconds
        cache_max_entries: Cache capacity bound (0 = unbounded)
        cache_normalize_symbols: Sort/de-duplicate symbols when building quote cache keys
        cache_coalesce_misses: Serialize concurrent misses on the same cache key
        historical_default_days: Lookback used when no period is supplied
        historical_default_interval: Bar interval used when none is supplied
    """

    # ============================================
    # Yahoo Finance Configuration
    # ============================================

    yahoo_base_url: str = Field(
        default="https://query1.finance.yahoo.com",
        description="Yahoo Finance query API base URL"
    )

    yahoo_cookie_url: str = Field(
        default="https://fc.yahoo.com",
        description="URL used to obtain the Yahoo session cookie"
    )

    yahoo_crumb_url: str = Field(
        default="https://query1.finance.yahoo.com/v1/test/getcrumb",
        description="URL returning the crumb for the current session cookie"
    )

    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
        ),
        description="User-Agent header sent with upstream requests"
    )

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    app_port: int = Field(
        default=3000,
        validation_alias=AliasChoices("PORT", "APP_PORT"),
        description="FastAPI server port"
    )

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # ============================================
    # Upstream Requests
    # ============================================

    request_timeout: int = Field(
        default=10,
        description="Upstream HTTP request timeout in seconds"
    )

    provider_max_attempts: int = Field(
        default=1,
        description="Attempts per upstream request on rate-limit responses (1 = no retry)"
    )

    # ============================================
    # Caching Configuration
    # ============================================

    cache_ttl_ms: int = Field(
        default=300_000,
        description="Cache TTL in milliseconds (5 minutes)"
    )

    cache_max_entries: int = Field(
        default=0,
        description="Maximum cached entries before LRU eviction (0 = unbounded)"
    )

    cache_normalize_symbols: bool = Field(
        default=False,
        description="Sort and de-duplicate symbols when building quote cache keys"
    )

    cache_coalesce_misses: bool = Field(
        default=True,
        description="Let concurrent misses on one key wait for a single upstream fetch"
    )

    # ============================================
    # Historical Data Defaults
    # ============================================

    historical_default_days: int = Field(
        default=30,
        description="Lookback in days when no period is supplied"
    )

    historical_default_interval: str = Field(
        default="1d",
        description="Bar interval when none is supplied"
    )

    # ============================================
    # CORS Configuration
    # ============================================

    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        # Look for .env file in the project root
        env_file=".env",
        # Ignore extra fields in .env that aren't defined here
        extra="ignore",
        # Case-insensitive environment variable matching
        case_sensitive=False,
        # Allow Settings(app_port=...) alongside the PORT alias
        populate_by_name=True
    )

    # ============================================
    # Custom Properties
    # ============================================

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Convert comma-separated CORS origins string to a list.

        Returns:
            List of allowed origin URLs (e.g., ["*"] or ["http://localhost:3000"])
        """
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def cache_ttl_seconds(self) -> float:
        """Cache TTL expressed in seconds."""
        return self.cache_ttl_ms / 1000.0

    def get_yahoo_headers(self) -> dict:
        """
        Get HTTP headers for Yahoo Finance requests.

        Returns:
            Dictionary of headers sent with every upstream call
        """
        return {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
        }


# ============================================
# Global Settings Instance
# ============================================

# Loaded once and reused throughout the application
settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings on application startup.

    Args:
        config: Settings to validate (defaults to the global instance)

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # Import logger here to avoid circular import
    # (logging.py imports config.py, so we can't import at module level)
    from core.logging import logger

    config = config or settings

    if not config.yahoo_base_url.startswith("http"):
        raise ValueError(f"Invalid YAHOO_BASE_URL: '{config.yahoo_base_url}'")

    if not (1 <= config.app_port <= 65535):
        raise ValueError(f"Invalid port number: {config.app_port}. Must be between 1 and 65535")

    if config.cache_ttl_ms <= 0:
        raise ValueError(f"CACHE_TTL_MS must be positive, got {config.cache_ttl_ms}")

    if config.cache_max_entries < 0:
        raise ValueError(f"CACHE_MAX_ENTRIES cannot be negative, got {config.cache_max_entries}")

    if config.request_timeout <= 0:
        raise ValueError(f"REQUEST_TIMEOUT must be positive, got {config.request_timeout}")

    if config.provider_max_attempts < 1:
        raise ValueError(f"PROVIDER_MAX_ATTEMPTS must be at least 1, got {config.provider_max_attempts}")

    if config.historical_default_days <= 0:
        raise ValueError(f"HISTORICAL_DEFAULT_DAYS must be positive, got {config.historical_default_days}")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"Yahoo Finance API: {config.yahoo_base_url}")
    logger.info(f"Server: {config.app_host}:{config.app_port}")
    logger.info(f"Log level: {config.log_level.upper()}")
    bound = config.cache_max_entries or "unbounded"
    logger.info(f"Cache: TTL {config.cache_ttl_ms} ms, max entries {bound}")
