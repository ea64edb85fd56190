"""
Unit Tests for the HTTP Routes

These tests drive the FastAPI app through TestClient with the market data
service replaced by one built on a fake provider. They verify:
- Routes, path parameters and query parameters
- camelCase JSON output
- The {error, message, code} envelope returned with HTTP 500

The app lifespan is not entered, so no Yahoo session is ever opened.

Run with:
    pytest tests/unit/test_api_routes.py -v
"""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from app.main import app, get_market_data_service
from core.provider_interface import ProviderInterface
from services.market_data import MarketDataService
from storage.cache import CacheStore


class FakeProvider(ProviderInterface):
    """In-memory provider; set ``error`` to make every call fail."""

    name = "fake"

    def __init__(self):
        self.error = None
        self.historical_calls = []

    def _check(self):
        if self.error is not None:
            raise self.error

    async def get_quotes(self, symbols):
        self._check()
        return [
            {
                "symbol": s,
                "longName": f"{s} Inc.",
                "shortName": s,
                "regularMarketPrice": 10.0,
                "regularMarketPreviousClose": 9.5,
                "regularMarketChange": 0.5,
                "regularMarketChangePercent": 5.26,
                "regularMarketVolume": 123456,
                "marketCap": 1000000000,
                "currency": "USD",
                "quoteType": "INDEX",
            }
            for s in symbols
        ]

    async def get_historical(self, symbol, start, end, interval="1d"):
        self._check()
        self.historical_calls.append((symbol, start, end, interval))
        return [{"timestamp": 1709251200, "open": 1.0, "high": 2.0, "low": 0.5,
                 "close": 1.5, "volume": 10, "adjclose": 1.4}]

    async def get_details(self, symbol, modules):
        self._check()
        return {"assetProfile": {"sector": "Energy"}, "earnings": {}}


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def client(provider):
    service = MarketDataService(provider, CacheStore())
    app.dependency_overrides[get_market_data_service] = lambda: service
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


# ============================================
# System Endpoints
# ============================================

class TestSystemEndpoints:
    """Tests for / and /health"""

    def test_root_lists_endpoints(self, client):
        """Verify the root catalogue"""
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["endpoints"]["quotes"] == "/api/finance/quotes/:symbols"

    def test_startup_applies_configured_log_level(self, monkeypatch):
        """Verify the lifespan sets LOG_LEVEL and wires the service"""
        import app.main as main

        levels = []
        monkeypatch.setattr(main, "set_log_level", levels.append)

        with TestClient(main.app) as started:
            assert started.get("/").status_code == 200
            assert isinstance(main.app.state.market_data, MarketDataService)

        assert levels == [main.settings.log_level]

    def test_health_reports_cache(self, client):
        """Verify health shows provider status and cache stats"""
        client.get("/api/finance/quotes/PBR")

        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["cache"]["entries"] == 1
        assert body["cache"]["ttlMs"] == 300_000


# ============================================
# Market Data Endpoints
# ============================================

class TestMarketDataEndpoints:
    """Tests for /api/finance routes"""

    def test_quotes_camel_case(self, client):
        """Verify quotes are split on commas and serialized in camelCase"""
        response = client.get("/api/finance/quotes/PBR, VALE,")

        assert response.status_code == 200
        body = response.json()
        assert [q["symbol"] for q in body] == ["PBR", "VALE"]
        assert body[0]["previousClose"] == 9.5
        assert body[0]["changePercent"] == 5.26
        assert body[0]["marketCap"] == 1000000000
        assert body[0]["name"] == "PBR Inc."

    def test_historical_period(self, client, provider):
        """Verify period=2m requests a 60-day window"""
        response = client.get("/api/finance/historical/PBR", params={"period": "2m", "interval": "1wk"})

        assert response.status_code == 200
        assert response.json()[0] == {
            "date": "2024-03-01", "open": 1.0, "high": 2.0, "low": 0.5,
            "close": 1.5, "volume": 10, "adjClose": 1.4,
        }
        symbol, start, end, interval = provider.historical_calls[0]
        assert (end - start).days == 60
        assert interval == "1wk"

    def test_historical_zero_period(self, client, provider):
        """Verify period=0d is an empty window, not an error"""
        response = client.get("/api/finance/historical/PBR", params={"period": "0d"})

        assert response.status_code == 200
        _, start, end, _ = provider.historical_calls[0]
        assert start == end

    def test_historical_before_1970(self, client, provider):
        """Verify explicit windows reaching before 1970 are accepted"""
        response = client.get("/api/finance/historical/^GSPC", params={"start": "1950-01-01", "end": "1950-02-01"})

        assert response.status_code == 200
        _, start, _, _ = provider.historical_calls[0]
        assert start == datetime(1950, 1, 1, tzinfo=timezone.utc)

    def test_historical_explicit_dates(self, client, provider):
        """Verify start/end query parameters override the period"""
        client.get("/api/finance/historical/PBR", params={"start": "2024-01-01", "end": "2024-02-01"})

        _, start, end, interval = provider.historical_calls[0]
        assert start == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert end == datetime(2024, 2, 1, tzinfo=timezone.utc)
        assert interval == "1d"

    def test_details_pass_through(self, client):
        """Verify details are returned unshaped"""
        body = client.get("/api/finance/details/PBR").json()

        assert body["assetProfile"] == {"sector": "Energy"}

    def test_trends_type_field(self, client):
        """Verify trends expose quoteType as "type" """
        body = client.get("/api/finance/trends").json()

        assert len(body) == 6
        assert body[0]["symbol"] == "^BVSP"
        assert body[0]["type"] == "INDEX"

    @pytest.mark.parametrize("path,symbol", [
        ("/api/finance/full/ITUB", "ITUB"),
        ("/api/finance/petrobras", "PBR"),
        ("/api/finance/minerio", "VALE"),
        ("/api/finance/vix", "^VIX"),
    ])
    def test_full_info_routes(self, client, path, symbol):
        """Verify composite records for generic and fixed symbols"""
        body = client.get(path).json()

        assert body["symbol"] == symbol
        assert body["quote"]["price"] == 10.0
        assert body["historical"][0]["date"] == "2024-03-01"
        assert "assetProfile" in body["details"]

    def test_brazilian_adrs(self, client):
        """Verify ADRs are grouped by sector"""
        body = client.get("/api/finance/adrs/brasil").json()

        sectors = [group["sector"] for group in body]
        assert "Energy" in sectors
        energy = body[sectors.index("Energy")]
        assert energy["companies"][0]["symbol"] == "PBR"
        assert energy["companies"][0]["quote"]["price"] == 10.0


# ============================================
# Error Envelope
# ============================================

class TestErrorEnvelope:
    """Tests for error responses"""

    def test_upstream_failure_is_500_envelope(self, client, provider):
        """Verify provider errors become {error, message, code} with 500"""
        provider.error = RuntimeError("Invalid symbol")

        response = client.get("/api/finance/quotes/XXXX")

        assert response.status_code == 500
        assert response.json() == {
            "error": True,
            "message": "Failed to fetch quotes: Invalid symbol",
            "code": "UPSTREAM_FETCH_FAILED",
        }

    def test_full_info_failure(self, client, provider):
        """Verify a failed sub-lookup fails the composite route"""
        provider.error = RuntimeError("down")

        response = client.get("/api/finance/petrobras")

        assert response.status_code == 500
        assert response.json()["message"].startswith("Failed to fetch full info:")

    def test_timeout_code(self, client, provider):
        """Verify timeouts carry UPSTREAM_TIMEOUT"""
        provider.error = TimeoutError()

        response = client.get("/api/finance/details/PBR")

        assert response.status_code == 500
        assert response.json()["code"] == "UPSTREAM_TIMEOUT"

    def test_invalid_period(self, client):
        """Verify an unparseable period is reported in the envelope"""
        response = client.get("/api/finance/historical/PBR", params={"period": "xd"})

        assert response.status_code == 500
        assert response.json()["code"] == "INVALID_PARAMETER"

    def test_unexpected_error_is_internal(self, client, monkeypatch):
        """Verify unexpected exceptions become INTERNAL_ERROR"""
        service = app.dependency_overrides[get_market_data_service]()

        async def broken():
            raise KeyError("boom")

        monkeypatch.setattr(service, "trends", broken)

        response = client.get("/api/finance/trends")

        assert response.status_code == 500
        assert response.json()["error"] is True
        assert response.json()["code"] == "INTERNAL_ERROR"

    def test_unknown_route(self, client):
        """Verify unknown paths get a 404 envelope"""
        response = client.get("/api/finance/nope")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"
