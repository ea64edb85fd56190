"""
Yahoo Finance REST API Client

This module provides an async HTTP client for the Yahoo Finance query API.
It handles:
- Session cookie and crumb handshake (required by the quote endpoints)
- HTTP requests with a per-request timeout
- Optional retry on rate limits (429, 503), off by default
- Error handling and logging

Endpoints Used:
    - GET /v7/finance/quote?symbols=...              Batch quotes (crumb)
    - GET /v8/finance/chart/{symbol}                  Historical bars
    - GET /v10/finance/quoteSummary/{symbol}          Summary modules (crumb)

Responses are returned RAW (Yahoo field names). Normalization happens in the
market data service.

Usage:
    async with YahooFinanceAPIClient() as client:
        quotes = await client.get_quotes(["PBR", "VALE"])
        bars = await client.get_chart("PBR", start, end, "1d")
"""

import asyncio
import json
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote as urlquote

import aiohttp

from core.config import settings
from core.logging import get_logger, log_api_request, log_api_response
from core.utils.time import datetime_to_timestamp


class YahooFinanceAPIClient:
    """
    Async HTTP client for the Yahoo Finance query API.

    Attributes:
        base_url: Yahoo query API base URL
        timeout: Per-request timeout in seconds
        max_attempts: Attempts per request on rate-limit responses
        session: aiohttp ClientSession for HTTP requests

    Example:
        >>> async with YahooFinanceAPIClient() as client:
        ...     quotes = await client.get_quotes(["PBR"])
        ...     print(quotes[0]["regularMarketPrice"])

    Notes:
        - Uses context manager for automatic session cleanup
        - The crumb is fetched lazily on the first call that needs it and
          refreshed once if Yahoo rejects it (HTTP 401)
        - asyncio.TimeoutError propagates unchanged so callers can tell a
          timeout apart from other failures
    """

    PROVIDER = "yahoo"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None
    ):
        """
        Initialize the Yahoo Finance API client.

        Args:
            base_url: Override for settings.yahoo_base_url
            timeout: Override for settings.request_timeout (seconds)
            max_attempts: Override for settings.provider_max_attempts
        """
        self.base_url = (base_url or settings.yahoo_base_url).rstrip("/")
        self.cookie_url = settings.yahoo_cookie_url
        self.crumb_url = settings.yahoo_crumb_url
        self.timeout = timeout or settings.request_timeout
        self.max_attempts = max(1, max_attempts or settings.provider_max_attempts)
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None
        self._crumb: Optional[str] = None
        self._crumb_lock = asyncio.Lock()

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        """Enter async context - creates HTTP session."""
        self.session = aiohttp.ClientSession(headers=settings.get_yahoo_headers())
        self.logger.debug("YahooFinanceAPIClient session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context - closes HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
            self._crumb = None
            self.logger.debug("YahooFinanceAPIClient session closed")

    # ============================================
    # Crumb Handshake
    # ============================================

    async def _ensure_crumb(self) -> str:
        """
        Return the crumb for the current session, fetching it if needed.

        Yahoo binds the crumb to a session cookie: the cookie URL sets the
        cookie (its status code is irrelevant, it usually answers 404) and the
        crumb URL returns a short token as plain text.

        Raises:
            RuntimeError: If no crumb could be obtained
        """
        async with self._crumb_lock:
            if self._crumb:
                return self._crumb

            request_timeout = aiohttp.ClientTimeout(total=self.timeout)

            async with self.session.get(self.cookie_url, timeout=request_timeout, allow_redirects=True) as resp:
                await resp.read()

            async with self.session.get(self.crumb_url, timeout=request_timeout) as resp:
                text = (await resp.text()).strip()
                if resp.status != 200 or not text or "<" in text:
                    raise RuntimeError(f"Could not obtain Yahoo crumb (HTTP {resp.status})")

            self._crumb = text
            self.logger.debug("Obtained Yahoo crumb")
            return self._crumb

    # ============================================
    # HTTP Request Handler
    # ============================================

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None, with_crumb: bool = False) -> Any:
        """
        Make GET request to the Yahoo API.

        Args:
            path: API endpoint path (e.g., "/v7/finance/quote")
            params: Optional query parameters
            with_crumb: Attach the session crumb (quote and quoteSummary need it)

        Returns:
            JSON response from API

        Raises:
            RuntimeError: If the session is missing or the request fails
            asyncio.TimeoutError: If the request exceeds the timeout

        Retry Handling:
            Rate limit responses (429, 503) are retried with a 1.5s * attempt
            delay while attempts remain. A 401 with a crumb drops the crumb
            and asks for a new one once.
        """
        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")

        url = f"{self.base_url}{path}"
        query = dict(params or {})
        crumb_refreshed = False
        attempt = 0

        while attempt < self.max_attempts:
            if with_crumb:
                query["crumb"] = await self._ensure_crumb()

            log_api_request(self.PROVIDER, path, params)
            started = time.perf_counter()

            try:
                async with self.session.get(
                    url,
                    params=query,
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as resp:
                    log_api_response(self.PROVIDER, path, resp.status, time.perf_counter() - started)

                    if resp.status == 200:
                        return await resp.json(content_type=None)

                    if resp.status == 401 and with_crumb and not crumb_refreshed:
                        self.logger.warning(f"Crumb rejected on {path}, requesting a new one")
                        self._crumb = None
                        crumb_refreshed = True
                        continue

                    text = await resp.text()

                    if resp.status in (429, 503) and attempt + 1 < self.max_attempts:
                        delay = 1.5 * (attempt + 1)
                        self.logger.warning(
                            f"Rate limited (HTTP {resp.status}) on {path}. "
                            f"Retrying in {delay:.1f}s... (attempt {attempt + 1}/{self.max_attempts})"
                        )
                        attempt += 1
                        await asyncio.sleep(delay)
                        continue

                    raise RuntimeError(f"HTTP {resp.status} on {path}: {_error_description(text)}")

            except asyncio.TimeoutError:
                self.logger.error(f"Timeout on {path} after {self.timeout}s")
                raise

            except aiohttp.ClientError as e:
                self.logger.error(f"Request failed on {path}: {e}")
                raise RuntimeError(f"Request failed on {path}: {e}") from e

        raise RuntimeError(f"Failed to fetch {url} after {self.max_attempts} attempt(s)")

    # ============================================
    # API Methods
    # ============================================

    async def get_quotes(self, symbols: Sequence[str]) -> List[Dict[str, Any]]:
        """
        Fetch current quotes for a batch of symbols.

        Args:
            symbols: Ticker symbols (e.g., ["PBR", "VALE", "^VIX"])

        Returns:
            List of raw quote dicts (Yahoo field names) in response order

        Yahoo Endpoint:
            GET /v7/finance/quote?symbols=PBR,VALE

        Response Format:
            {"quoteResponse": {"result": [{"symbol": "PBR",
                                           "regularMarketPrice": 14.2, ...}],
                               "error": null}}
        """
        self.logger.info(f"Fetching quotes: {', '.join(symbols)}")
        data = await self._get("/v7/finance/quote", {"symbols": ",".join(symbols)}, with_crumb=True)

        body = _unwrap(data, "quoteResponse")
        result = body.get("result") or []
        self.logger.info(f"Fetched {len(result)} quote(s)")
        return result

    async def get_chart(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
        interval: str = "1d"
    ) -> List[Dict[str, Any]]:
        """
        Fetch historical bars for one symbol.

        Args:
            symbol: Ticker symbol
            start: Window start
            end: Window end
            interval: Bar interval ("1d", "1wk", "1mo", ...)

        Returns:
            List of dicts with keys timestamp, open, high, low, close, volume,
            adjclose (oldest first). Bars with no prices at all are dropped.

        Yahoo Endpoint:
            GET /v8/finance/chart/{symbol}?period1=...&period2=...&interval=1d
        """
        params = {
            "period1": datetime_to_timestamp(start),
            "period2": datetime_to_timestamp(end),
            "interval": interval,
            "events": "div|split",
            "includeAdjustedClose": "true",
        }
        self.logger.info(f"Fetching chart: {symbol} {interval} ({start.date()} -> {end.date()})")
        data = await self._get(f"/v8/finance/chart/{urlquote(symbol, safe='')}", params)

        body = _unwrap(data, "chart")
        results = body.get("result") or []
        if not results:
            return []

        chart = results[0]
        timestamps = chart.get("timestamp") or []
        indicators = chart.get("indicators") or {}
        quote = (indicators.get("quote") or [{}])[0]
        adjclose = (indicators.get("adjclose") or [{}])[0].get("adjclose") or []

        bars = []
        for i, ts in enumerate(timestamps):
            bar = {
                "timestamp": ts,
                "open": _at(quote.get("open"), i),
                "high": _at(quote.get("high"), i),
                "low": _at(quote.get("low"), i),
                "close": _at(quote.get("close"), i),
                "volume": _at(quote.get("volume"), i),
                "adjclose": _at(adjclose, i),
            }
            if all(bar[k] is None for k in ("open", "high", "low", "close")):
                continue
            bars.append(bar)

        self.logger.info(f"Fetched {len(bars)} bar(s) for {symbol}")
        return bars

    async def get_quote_summary(self, symbol: str, modules: Sequence[str]) -> Dict[str, Any]:
        """
        Fetch quote summary modules for one symbol.

        Args:
            symbol: Ticker symbol
            modules: Module names (e.g., ["assetProfile", "financialData"])

        Returns:
            Dict mapping module name to its raw payload

        Yahoo Endpoint:
            GET /v10/finance/quoteSummary/{symbol}?modules=assetProfile,...
        """
        params = {
            "modules": ",".join(modules),
            "formatted": "false",
        }
        self.logger.info(f"Fetching quote summary: {symbol} ({', '.join(modules)})")
        data = await self._get(
            f"/v10/finance/quoteSummary/{urlquote(symbol, safe='')}",
            params,
            with_crumb=True
        )

        body = _unwrap(data, "quoteSummary")
        results = body.get("result") or []
        if not results:
            raise RuntimeError(f"No summary data returned for {symbol}")
        return results[0]


# ============================================
# Response Helpers
# ============================================

def _unwrap(data: Any, root: str) -> Dict[str, Any]:
    """
    Return ``data[root]`` or raise the error Yahoo embedded in it.

    Yahoo wraps every response as {root: {"result": ..., "error": ...}}.
    """
    if not isinstance(data, dict) or not isinstance(data.get(root), dict):
        raise RuntimeError(f"Malformed response: missing '{root}'")

    body = data[root]
    error = body.get("error")
    if error:
        description = error.get("description") if isinstance(error, dict) else str(error)
        raise RuntimeError(description or "Unknown provider error")
    return body


def _at(values: Optional[List[Any]], index: int) -> Any:
    if not values or index >= len(values):
        return None
    return values[index]


def _error_description(text: str) -> str:
    """
    Best-effort short description from an error body.

    Yahoo error bodies are usually JSON shaped like a normal response with
    the "error" member filled in; fall back to the raw text otherwise.
    """
    text = (text or "").strip()
    try:
        payload = json.loads(text)
    except ValueError:
        return text[:200] if text else "no response body"

    if isinstance(payload, dict):
        for body in payload.values():
            error = body.get("error") if isinstance(body, dict) else None
            if isinstance(error, dict) and error.get("description"):
                return error["description"]
    return text[:200]
