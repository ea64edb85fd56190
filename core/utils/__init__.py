"""
Core Utilities Package

This package contains utility functions and helpers used throughout the application.

Modules:
    - time: Timestamp conversion, period parsing and date-range helpers
"""

from core.utils.time import to_utc_datetime, period_to_range

__all__ = ["to_utc_datetime", "period_to_range"]
