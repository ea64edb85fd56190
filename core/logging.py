"""
Unified Logging Configuration

This module sets up a centralized logging system for the entire application.
All modules should import and use the logger from this module instead of
using print() statements.

Usage:
    from core.logging import logger

    logger.debug("Detailed debugging information")
    logger.info("General informational messages")
    logger.warning("Warning messages for potentially harmful situations")
    logger.error("Error messages for serious problems")

Log Levels (from most to least verbose):
    DEBUG    - Cache hits/misses, raw request parameters
    INFO     - Upstream fetches, startup and shutdown
    WARNING  - Rate limiting, cache evictions
    ERROR    - Failed upstream fetches
    CRITICAL - Severe errors that may crash

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.
"""

import logging
import sys
from typing import Optional


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include module name in log messages

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Application started")
        2024-01-01 12:00:00 [INFO] financeapi: Application started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s:")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger("financeapi")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level if hasattr(settings, 'log_level') else "INFO"
except ImportError:
    log_level = "INFO"

# Create the global logger instance
logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module or component.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger instance for the specified name

    Example:
        # In providers/yahoo/api_client.py:
        from core.logging import get_logger
        logger = get_logger(__name__)  # "financeapi.providers.yahoo.api_client"
    """
    return logging.getLogger(f"financeapi.{name}")


def set_log_level(level: str) -> None:
    """
    Change the log level at runtime.

    Args:
        level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(provider: str, endpoint: str, params: dict = None) -> None:
    """
    Log an upstream API request with consistent formatting.

    Example:
        >>> log_api_request("yahoo", "/v7/finance/quote", {"symbols": "PBR,VALE"})
        [DEBUG] API Request: yahoo /v7/finance/quote | Params: {'symbols': 'PBR,VALE'}
    """
    if params:
        logger.debug(f"API Request: {provider} {endpoint} | Params: {params}")
    else:
        logger.debug(f"API Request: {provider} {endpoint}")


def log_api_response(provider: str, endpoint: str, status: int, response_time: float = None) -> None:
    """
    Log an upstream API response with status and timing information.

    Example:
        >>> log_api_response("yahoo", "/v7/finance/quote", 200, 0.342)
        [DEBUG] API Response: yahoo /v7/finance/quote | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {provider} {endpoint} | Status: {status}{time_str}")


def log_cache_event(event: str, key: str, details: str = None) -> None:
    """
    Log a cache event (hit, miss, store, evict) with consistent formatting.

    Evictions are logged at WARNING since they mean the capacity bound is
    being reached; everything else is DEBUG.

    Example:
        >>> log_cache_event("hit", "quotes_PBR")
        [DEBUG] Cache: hit | Key: quotes_PBR
    """
    details_str = f" | {details}" if details else ""
    level = logging.WARNING if event == "evict" else logging.DEBUG
    logger.log(level, f"Cache: {event} | Key: {key}{details_str}")


logger.debug("Logging system initialized")
