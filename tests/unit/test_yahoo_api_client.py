"""
Unit Tests for the Yahoo Finance API Client

These tests verify that YahooFinanceAPIClient:
- Builds the right requests for quotes, charts and quote summaries
- Turns chart columns into per-bar dicts
- Raises on embedded Yahoo errors and malformed responses
- Handles crumb rejection, rate limits and timeouts in _get

HTTP is never performed: API methods are tested with a monkeypatched _get,
and _get itself runs against a fake aiohttp session.

Run with:
    pytest tests/unit/test_yahoo_api_client.py -v
"""

import asyncio
import json
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from providers.yahoo import YahooFinanceProvider
from providers.yahoo.api_client import YahooFinanceAPIClient, _error_description, _unwrap


# ============================================
# Fixtures
# ============================================

@pytest_asyncio.fixture
async def api_client():
    """Create a YahooFinanceAPIClient instance for testing"""
    async with YahooFinanceAPIClient() as client:
        yield client


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse."""

    def __init__(self, status=200, payload=None, text=None):
        self.status = status
        self._payload = payload
        self._text = text if text is not None else json.dumps(payload)

    async def json(self, content_type=None):
        return self._payload

    async def text(self):
        return self._text

    async def read(self):
        return self._text.encode()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Replays queued responses and records requested URLs and params."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def get(self, url, params=None, **kwargs):
        self.requests.append((url, dict(params or {})))
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def close(self):
        pass


def client_with(responses, **kwargs):
    client = YahooFinanceAPIClient(**kwargs)
    client.session = FakeSession(responses)
    return client


# ============================================
# Tests for Quotes
# ============================================

class TestGetQuotes:
    """Tests for get_quotes method"""

    @pytest.mark.asyncio
    async def test_get_quotes_returns_raw_results(self, api_client, monkeypatch):
        """Verify get_quotes returns the quoteResponse result list"""
        mock_response = {
            "quoteResponse": {
                "result": [
                    {"symbol": "PBR", "regularMarketPrice": 14.2},
                    {"symbol": "VALE", "regularMarketPrice": 11.8},
                ],
                "error": None
            }
        }
        called = {}

        async def mock_get(path, params=None, with_crumb=False):
            called.update(path=path, params=params, with_crumb=with_crumb)
            return mock_response

        monkeypatch.setattr(api_client, "_get", mock_get)

        result = await api_client.get_quotes(["PBR", "VALE"])

        assert [q["symbol"] for q in result] == ["PBR", "VALE"]
        assert called["path"] == "/v7/finance/quote"
        assert called["params"] == {"symbols": "PBR,VALE"}
        assert called["with_crumb"] is True

    @pytest.mark.asyncio
    async def test_get_quotes_empty_result(self, api_client, monkeypatch):
        """Verify unknown symbols give an empty list, not an error"""
        async def mock_get(path, params=None, with_crumb=False):
            return {"quoteResponse": {"result": [], "error": None}}

        monkeypatch.setattr(api_client, "_get", mock_get)

        assert await api_client.get_quotes(["ZZZZ"]) == []


# ============================================
# Tests for Charts
# ============================================

class TestGetChart:
    """Tests for get_chart method"""

    @pytest.mark.asyncio
    async def test_get_chart_builds_bars(self, api_client, monkeypatch):
        """Verify chart columns are zipped into bar dicts"""
        mock_response = {
            "chart": {
                "result": [{
                    "meta": {"symbol": "PBR"},
                    "timestamp": [1709164800, 1709251200, 1709337600],
                    "indicators": {
                        "quote": [{
                            "open": [9.5, 10.0, None],
                            "high": [10.5, 11.0, None],
                            "low": [9.0, 9.8, None],
                            "close": [10.0, 10.7, None],
                            "volume": [200, 300, None],
                        }],
                        "adjclose": [{"adjclose": [9.9, 10.6, None]}]
                    }
                }],
                "error": None
            }
        }
        called = {}

        async def mock_get(path, params=None, with_crumb=False):
            called.update(path=path, params=params)
            return mock_response

        monkeypatch.setattr(api_client, "_get", mock_get)

        start = datetime(2024, 2, 1, tzinfo=timezone.utc)
        end = datetime(2024, 3, 2, tzinfo=timezone.utc)
        bars = await api_client.get_chart("PBR", start, end, "1d")

        assert len(bars) == 2
        assert bars[0] == {
            "timestamp": 1709164800,
            "open": 9.5,
            "high": 10.5,
            "low": 9.0,
            "close": 10.0,
            "volume": 200,
            "adjclose": 9.9,
        }
        assert called["path"] == "/v8/finance/chart/PBR"
        assert called["params"]["period1"] == 1706745600
        assert called["params"]["period2"] == 1709337600
        assert called["params"]["interval"] == "1d"

    @pytest.mark.asyncio
    async def test_get_chart_quotes_symbol_in_path(self, api_client, monkeypatch):
        """Verify index symbols are URL-encoded in the path"""
        called = {}

        async def mock_get(path, params=None, with_crumb=False):
            called["path"] = path
            return {"chart": {"result": [], "error": None}}

        monkeypatch.setattr(api_client, "_get", mock_get)

        now = datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert await api_client.get_chart("^VIX", now, now) == []
        assert called["path"] == "/v8/finance/chart/%5EVIX"

    @pytest.mark.asyncio
    async def test_get_chart_raises_on_embedded_error(self, api_client, monkeypatch):
        """Verify Yahoo's error description is raised"""
        async def mock_get(path, params=None, with_crumb=False):
            return {"chart": {"result": None, "error": {"code": "Not Found",
                                                          "description": "No data found, symbol may be delisted"}}}

        monkeypatch.setattr(api_client, "_get", mock_get)

        now = datetime(2024, 3, 1, tzinfo=timezone.utc)
        with pytest.raises(RuntimeError, match="delisted"):
            await api_client.get_chart("XXXX", now, now)


# ============================================
# Tests for Quote Summary
# ============================================

class TestGetQuoteSummary:
    """Tests for get_quote_summary method"""

    @pytest.mark.asyncio
    async def test_returns_first_result(self, api_client, monkeypatch):
        """Verify the module payload is returned as-is"""
        called = {}

        async def mock_get(path, params=None, with_crumb=False):
            called.update(path=path, params=params, with_crumb=with_crumb)
            return {"quoteSummary": {"result": [{"assetProfile": {"sector": "Energy"}}], "error": None}}

        monkeypatch.setattr(api_client, "_get", mock_get)

        result = await api_client.get_quote_summary("PBR", ["assetProfile", "earnings"])

        assert result == {"assetProfile": {"sector": "Energy"}}
        assert called["path"] == "/v10/finance/quoteSummary/PBR"
        assert called["params"]["modules"] == "assetProfile,earnings"
        assert called["with_crumb"] is True

    @pytest.mark.asyncio
    async def test_empty_result_raises(self, api_client, monkeypatch):
        """Verify a summary with no result is an error"""
        async def mock_get(path, params=None, with_crumb=False):
            return {"quoteSummary": {"result": [], "error": None}}

        monkeypatch.setattr(api_client, "_get", mock_get)

        with pytest.raises(RuntimeError, match="No summary data"):
            await api_client.get_quote_summary("PBR", ["assetProfile"])


# ============================================
# Tests for the HTTP Request Handler
# ============================================

class TestGetRequest:
    """Tests for _get"""

    @pytest.mark.asyncio
    async def test_get_without_session_raises(self):
        """Verify calling without a session fails clearly"""
        client = YahooFinanceAPIClient()

        with pytest.raises(RuntimeError, match="not initialized"):
            await client._get("/v7/finance/quote")

    @pytest.mark.asyncio
    async def test_crumb_attached_and_refreshed_on_401(self):
        """Verify a rejected crumb is dropped and fetched again once"""
        client = client_with([
            FakeResponse(401, text="Unauthorized"),
            FakeResponse(200, text=""),                 # cookie
            FakeResponse(200, text="fresh-crumb"),      # crumb
            FakeResponse(200, payload={"ok": True}),
        ])
        client._crumb = "stale-crumb"

        result = await client._get("/v7/finance/quote", {"symbols": "PBR"}, with_crumb=True)

        assert result == {"ok": True}
        requests = client.session.requests
        assert requests[0][1]["crumb"] == "stale-crumb"
        assert requests[-1][1]["crumb"] == "fresh-crumb"

    @pytest.mark.asyncio
    async def test_http_error_includes_description(self):
        """Verify non-200 responses raise with Yahoo's description"""
        body = {"chart": {"result": None, "error": {"description": "Invalid input"}}}
        client = client_with([FakeResponse(400, text=json.dumps(body))])

        with pytest.raises(RuntimeError, match="HTTP 400 .*Invalid input"):
            await client._get("/v8/finance/chart/PBR")

    @pytest.mark.asyncio
    async def test_rate_limit_not_retried_by_default(self):
        """Verify a single attempt is made unless retries are configured"""
        client = client_with([FakeResponse(429, text="Too Many Requests")], max_attempts=1)

        with pytest.raises(RuntimeError, match="HTTP 429"):
            await client._get("/v8/finance/chart/PBR")
        assert len(client.session.requests) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_retried_when_configured(self, monkeypatch):
        """Verify 429 is retried while attempts remain"""
        async def no_sleep(delay):
            return None

        monkeypatch.setattr(asyncio, "sleep", no_sleep)
        client = client_with([
            FakeResponse(429, text="Too Many Requests"),
            FakeResponse(200, payload={"chart": {}}),
        ], max_attempts=2)

        assert await client._get("/v8/finance/chart/PBR") == {"chart": {}}
        assert len(client.session.requests) == 2

    @pytest.mark.asyncio
    async def test_timeout_propagates_unchanged(self):
        """Verify asyncio.TimeoutError is not converted"""
        client = client_with([asyncio.TimeoutError()])

        with pytest.raises(asyncio.TimeoutError):
            await client._get("/v8/finance/chart/PBR")


# ============================================
# Tests for Response Helpers
# ============================================

class TestResponseHelpers:
    """Tests for _unwrap and _error_description"""

    def test_unwrap_missing_root(self):
        """Verify responses without the expected root are malformed"""
        with pytest.raises(RuntimeError, match="Malformed"):
            _unwrap({"finance": {}}, "quoteResponse")

    def test_unwrap_returns_body(self):
        """Verify a clean response returns the root object"""
        body = {"result": [], "error": None}
        assert _unwrap({"quoteResponse": body}, "quoteResponse") is body

    def test_error_description_falls_back_to_text(self):
        """Verify non-JSON bodies are returned trimmed"""
        assert _error_description("  Service Unavailable  ") == "Service Unavailable"
        assert _error_description("") == "no response body"


# ============================================
# Tests for Provider Lifecycle
# ============================================

class TestProvider:
    """Tests for YahooFinanceProvider"""

    @pytest.mark.asyncio
    async def test_calls_before_initialize_raise(self):
        """Verify the provider refuses calls without a client"""
        provider = YahooFinanceProvider()

        with pytest.raises(RuntimeError, match="not initialized"):
            await provider.get_quotes(["PBR"])

    @pytest.mark.asyncio
    async def test_initialize_and_shutdown(self):
        """Verify initialize opens a session and shutdown closes it"""
        provider = YahooFinanceProvider()

        await provider.initialize()
        assert provider.client.session is not None

        await provider.shutdown()
        assert provider.client.session is None

    @pytest.mark.asyncio
    async def test_health_check_reports_failure(self, monkeypatch):
        """Verify health_check returns False instead of raising"""
        provider = YahooFinanceProvider(client=YahooFinanceAPIClient())

        async def failing_quotes(symbols):
            raise RuntimeError("down")

        monkeypatch.setattr(provider.client, "get_quotes", failing_quotes)

        assert await provider.health_check() is False
