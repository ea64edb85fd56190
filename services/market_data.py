"""
Market Data Service - Fetch-Or-Serve Orchestrator

Every logical data operation goes through the same path:

    key = <operation key>(args)
    cached = cache.get(key)            -> hit: return it
    raw = await provider.<call>(args)  -> miss: fetch upstream
    return cache.set(key, normalize(raw))

Provider failures are wrapped into an UpstreamError naming the operation and
returned as a failed FetchResult. Failures are never cached and never retried
here.

Operations:
    - quotes(symbols)                           key: quotes_<S1>_<S2>...
    - historical(symbol, start, end, interval)  key: historical_<sym>_<start>_<end>_<interval>
    - details(symbol)                           key: details_<sym>
    - trends()                                  key: market_trends
    - full_info(symbol)                         not cached; fans out to the three above
    - brazilian_adrs()                          one quotes() call, grouped by sector

Concurrent misses:
    With coalescing on, requests that miss on the same key wait on a per-key
    asyncio.Lock. The first one fetches and stores; the rest find the value in
    the cache when they get the lock. A failed fetch stores nothing, so the
    next waiter fetches for itself.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from core.errors import UpstreamError
from core.logging import get_logger, log_cache_event
from core.provider_interface import ProviderInterface
from core.result import FetchResult
from core.schemas import AdrCompany, AdrSector, FullInfo, HistoricalBar, Quote, TrendQuote
from core.utils.time import current_utc_datetime, to_calendar_date, to_iso, to_utc_datetime
from services.symbols import BRAZILIAN_ADRS, BRAZILIAN_ADRS_BY_SECTOR, DETAIL_MODULES, MARKET_INDICES
from storage.cache import CacheStore

T = TypeVar("T")

TRENDS_KEY = "market_trends"

logger = get_logger(__name__)


# ============================================
# Normalization
# ============================================

def _to_int(value: Any) -> Optional[int]:
    """Round a provider count to int; anything non-numeric becomes None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return None


def _to_datetime(value: Any) -> Any:
    if isinstance(value, (int, float)):
        return to_utc_datetime(value)
    return value


def normalize_quote(raw: Dict[str, Any]) -> Quote:
    """Reduce a raw provider quote to the Quote schema."""
    return Quote(
        symbol=raw["symbol"],
        name=raw.get("longName") or raw.get("shortName"),
        price=raw.get("regularMarketPrice"),
        previous_close=raw.get("regularMarketPreviousClose"),
        change=raw.get("regularMarketChange"),
        change_percent=raw.get("regularMarketChangePercent"),
        volume=_to_int(raw.get("regularMarketVolume")),
        market_cap=_to_int(raw.get("marketCap")),
        currency=raw.get("currency"),
        timestamp=_to_datetime(raw.get("regularMarketTime")),
    )


def normalize_bar(raw: Dict[str, Any]) -> HistoricalBar:
    """Reduce a raw provider bar to the HistoricalBar schema (calendar date only)."""
    date = raw.get("date")
    if date is None:
        date = to_calendar_date(raw["timestamp"])
    elif isinstance(date, datetime):
        date = date.date().isoformat()
    else:
        date = str(date)[:10]

    return HistoricalBar(
        date=date,
        open=raw.get("open"),
        high=raw.get("high"),
        low=raw.get("low"),
        close=raw.get("close"),
        volume=_to_int(raw.get("volume")),
        adj_close=raw.get("adjclose", raw.get("adjClose")),
    )


def normalize_trend(raw: Dict[str, Any]) -> TrendQuote:
    """Reduce a raw provider quote to the TrendQuote schema."""
    return TrendQuote(
        symbol=raw["symbol"],
        name=raw.get("shortName"),
        price=raw.get("regularMarketPrice"),
        change=raw.get("regularMarketChange"),
        change_percent=raw.get("regularMarketChangePercent"),
        quote_type=raw.get("quoteType"),
    )


# ============================================
# Market Data Service
# ============================================

@dataclass
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class MarketDataService:
    """
    Cache-backed access to the market data provider.

    Attributes:
        provider: Upstream market data provider
        cache: Response cache shared by all operations
        normalize_symbols: Sort/de-duplicate symbols in quote cache keys
        coalesce_misses: Serialize concurrent misses on the same key
        default_days: Historical lookback when no start date is given
        default_interval: Historical interval when none is given

    Example:
        >>> service = MarketDataService(YahooFinanceProvider(), CacheStore())
        >>> result = await service.full_info("PBR")
        >>> info = result.unwrap()
    """

    def __init__(
        self,
        provider: ProviderInterface,
        cache: CacheStore,
        normalize_symbols: bool = False,
        coalesce_misses: bool = True,
        default_days: int = 30,
        default_interval: str = "1d",
        now: Optional[Callable[[], datetime]] = None
    ) -> None:
        self.provider = provider
        self.cache = cache
        self.normalize_symbols = normalize_symbols
        self.coalesce_misses = coalesce_misses
        self.default_days = default_days
        self.default_interval = default_interval
        self.now = now or current_utc_datetime
        self._key_locks: Dict[str, _KeyLock] = {}

    # ============================================
    # Cache Keys
    # ============================================

    def quotes_key(self, symbols: Sequence[str]) -> str:
        """
        Cache key for a quotes request.

        By default symbol order matters ("A,B" and "B,A" are different keys).
        With normalize_symbols the symbols are upper-cased, de-duplicated and
        sorted first.
        """
        if self.normalize_symbols:
            symbols = sorted({s.upper() for s in symbols})
        return "quotes_" + "_".join(symbols)

    @staticmethod
    def historical_key(symbol: str, start: datetime, end: datetime, interval: str) -> str:
        return f"historical_{symbol}_{to_iso(start)}_{to_iso(end)}_{interval}"

    @staticmethod
    def details_key(symbol: str) -> str:
        return f"details_{symbol}"

    # ============================================
    # Fetch-Or-Serve Core
    # ============================================

    async def _fetch_or_serve(
        self,
        operation: str,
        key: str,
        fetch: Callable[[], Awaitable[T]]
    ) -> FetchResult[T]:
        cached = self.cache.get(key)
        if cached is not None:
            log_cache_event("hit", key)
            return FetchResult.success(cached, cached=True)

        if not self.coalesce_misses:
            return await self._fetch_and_store(operation, key, fetch)

        entry = self._key_locks.get(key)
        if entry is None:
            entry = self._key_locks[key] = _KeyLock()
        entry.users += 1
        try:
            async with entry.lock:
                # Another request may have stored the value while we waited
                cached = self.cache.get(key)
                if cached is not None:
                    log_cache_event("hit", key, "after wait")
                    return FetchResult.success(cached, cached=True)
                return await self._fetch_and_store(operation, key, fetch)
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._key_locks.pop(key, None)

    async def _fetch_and_store(
        self,
        operation: str,
        key: str,
        fetch: Callable[[], Awaitable[T]]
    ) -> FetchResult[T]:
        log_cache_event("miss", key)
        try:
            value = await fetch()
        except Exception as e:
            error = UpstreamError.wrap(operation, e)
            logger.error(f"{error} [{error.code}]")
            return FetchResult.failure(error)

        log_cache_event("store", key)
        return FetchResult.success(self.cache.set(key, value))

    # ============================================
    # Operations
    # ============================================

    async def quotes(self, symbols: Sequence[str]) -> FetchResult[List[Quote]]:
        """
        Current quotes for ``symbols``, in provider response order.
        """
        symbols = list(symbols)
        if not symbols:
            return FetchResult.success([])

        async def fetch() -> List[Quote]:
            raw = await self.provider.get_quotes(symbols)
            return [normalize_quote(item) for item in raw]

        return await self._fetch_or_serve("quotes", self.quotes_key(symbols), fetch)

    async def historical(
        self,
        symbol: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        interval: Optional[str] = None
    ) -> FetchResult[List[HistoricalBar]]:
        """
        Historical bars for ``symbol``.

        ``start`` defaults to ``default_days`` before ``end``; ``end`` defaults
        to now; ``interval`` defaults to ``default_interval``.
        """
        end = end or self.now()
        start = start or end - timedelta(days=self.default_days)
        interval = interval or self.default_interval

        async def fetch() -> List[HistoricalBar]:
            raw = await self.provider.get_historical(symbol, start, end, interval)
            return [normalize_bar(item) for item in raw]

        key = self.historical_key(symbol, start, end, interval)
        return await self._fetch_or_serve("historical", key, fetch)

    async def details(self, symbol: str) -> FetchResult[Dict[str, Any]]:
        """Quote summary modules for ``symbol``, passed through unshaped."""

        async def fetch() -> Dict[str, Any]:
            return await self.provider.get_details(symbol, DETAIL_MODULES)

        return await self._fetch_or_serve("details", self.details_key(symbol), fetch)

    async def trends(self) -> FetchResult[List[TrendQuote]]:
        """Snapshot of the fixed market index set, fetched as one batch."""

        async def fetch() -> List[TrendQuote]:
            raw = await self.provider.get_quotes(list(MARKET_INDICES))
            return [normalize_trend(item) for item in raw]

        return await self._fetch_or_serve("market trends", TRENDS_KEY, fetch)

    async def full_info(self, symbol: str) -> FetchResult[FullInfo]:
        """
        Quote, historical series and details for ``symbol``.

        The three lookups run concurrently. The first one to fail decides the
        outcome: the remaining lookups are cancelled and no partial record is
        returned.
        """
        tasks = {
            asyncio.create_task(self.quotes([symbol])): "quotes",
            asyncio.create_task(self.historical(symbol)): "historical",
            asyncio.create_task(self.details(symbol)): "details",
        }
        values: Dict[str, Any] = {}
        pending = set(tasks)

        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    result = task.result()
                    if not result.ok:
                        error = type(result.error)("full info", str(result.error))
                        logger.error(f"Full info for {symbol} aborted: {tasks[task]} failed")
                        return FetchResult.failure(error)
                    values[tasks[task]] = result.value
        finally:
            for task in pending:
                task.cancel()

        quotes = values["quotes"]
        return FetchResult.success(FullInfo(
            symbol=symbol,
            quote=quotes[0] if quotes else None,
            historical=values["historical"],
            details=values["details"],
        ))

    async def brazilian_adrs(self) -> FetchResult[List[AdrSector]]:
        """
        Curated Brazilian ADRs grouped by sector, each with its live quote.

        Uses a single batch quotes() call; a company the provider returned no
        quote for gets ``quote=None``.
        """
        result = await self.quotes(BRAZILIAN_ADRS)
        if not result.ok:
            return FetchResult.failure(result.error)

        by_symbol = {quote.symbol: quote for quote in result.value}
        sectors = [
            AdrSector(
                sector=sector,
                companies=[
                    AdrCompany(symbol=symbol, name=name, quote=by_symbol.get(symbol))
                    for symbol, name in companies
                ],
            )
            for sector, companies in BRAZILIAN_ADRS_BY_SECTOR.items()
        ]
        return FetchResult.success(sectors, cached=result.cached)
