"""
Normalized Data Schemas

This module defines Pydantic models for every record the API returns.
Raw Yahoo Finance payloads are reduced to these shapes by the market data
service before they are cached, so cached values and fresh values look the same.

Key Principle:
    Field names are snake_case in Python and camelCase on the wire
    (``previous_close`` is serialized as ``previousClose``), matching the JSON
    contract clients of this API already rely on.

Models:
    - Quote: Current quote for a single symbol
    - HistoricalBar: One OHLCV bar of a historical series
    - TrendQuote: Snapshot of a market index / benchmark instrument
    - FullInfo: Composite of quote, historical series and details
    - AdrCompany / AdrSector: Sector-grouped regional ADRs with live quotes
    - ErrorResponse: Error envelope returned with HTTP 500
    - CacheStats: Cache statistics exposed by the health endpoint
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ============================================
# Base Model
# ============================================

class CamelModel(BaseModel):
    """
    Base model for all response schemas.

    Serializes field names in camelCase while still accepting snake_case
    names when constructing models in Python. Instances are frozen because
    the same objects are handed out from the cache to every caller.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True
    )


# ============================================
# Quote Schema
# ============================================

class Quote(CamelModel):
    """
    Current market quote for one symbol.

    Attributes:
        symbol: Ticker symbol (e.g., "PBR", "^VIX")
        name: Long name, falling back to the short name
        price: Regular market price
        previous_close: Previous session close
        change: Absolute change versus previous close
        change_percent: Percent change versus previous close
        volume: Regular market volume
        market_cap: Market capitalization
        currency: Quote currency (e.g., "USD")
        timestamp: Time of the regular market quote (UTC)
    """

    symbol: str = Field(..., examples=["PBR", "VALE", "^VIX"])
    name: Optional[str] = None
    price: Optional[float] = None
    previous_close: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None
    volume: Optional[int] = None
    market_cap: Optional[int] = None
    currency: Optional[str] = None
    timestamp: Optional[datetime] = None


# ============================================
# Historical Bar Schema
# ============================================

class HistoricalBar(CamelModel):
    """
    One bar of a historical price series.

    ``date`` is a calendar date (``YYYY-MM-DD``) with no time component.
    Prices are None when the provider reported no trading for that bar.
    """

    date: str = Field(..., examples=["2024-01-02"])
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None
    volume: Optional[int] = None
    adj_close: Optional[float] = None


# ============================================
# Market Trend Schema
# ============================================

class TrendQuote(CamelModel):
    """Snapshot of a market index or benchmark future."""

    symbol: str = Field(..., examples=["^GSPC", "CL=F"])
    name: Optional[str] = None
    price: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None
    quote_type: Optional[str] = Field(default=None, alias="type", examples=["INDEX", "FUTURE"])


# ============================================
# Composite Schemas
# ============================================

class FullInfo(CamelModel):
    """
    Quote, historical series and details for one symbol.

    ``quote`` is None when the provider returned no quote for the symbol.
    ``details`` is the provider's quote summary modules, passed through as-is.
    """

    symbol: str
    quote: Optional[Quote] = None
    historical: List[HistoricalBar] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)


class AdrCompany(CamelModel):
    """A curated cross-listed company combined with its live quote."""

    symbol: str
    name: str
    quote: Optional[Quote] = None


class AdrSector(CamelModel):
    """Companies of one sector, in curated order."""

    sector: str
    companies: List[AdrCompany] = Field(default_factory=list)


# ============================================
# System Schemas
# ============================================

class ErrorResponse(BaseModel):
    """Error envelope; always returned with HTTP 500."""

    error: bool = True
    message: str
    code: str = "INTERNAL_ERROR"


class CacheStats(CamelModel):
    """Cache statistics for the health endpoint."""

    entries: int
    fresh_entries: int
    ttl_ms: int
    max_entries: int
