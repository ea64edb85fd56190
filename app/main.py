"""
FastAPI Application - Financial Market Data API

Proxies Yahoo Finance through a 5-minute response cache.

Features:
    - Current quotes for any list of symbols
    - Historical daily (or other interval) series
    - Asset details (profile, summary, financials, recommendations, earnings)
    - Market trends snapshot (Ibovespa, S&P 500, Nasdaq, VIX, crude, gold)
    - Composite "full info" records and fixed convenience endpoints

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 3000

Docs:
    - Swagger: http://localhost:3000/docs
    - ReDoc: http://localhost:3000/redoc
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import settings, validate_configuration
from core.errors import InvalidPeriodError, UpstreamError
from core.logging import logger, set_log_level
from core.schemas import AdrSector, CacheStats, ErrorResponse, FullInfo, Quote, TrendQuote, HistoricalBar
from core.utils.time import resolve_range
from providers.yahoo import YahooFinanceProvider
from services.market_data import MarketDataService
from services.symbols import SYMBOLS
from storage.cache import CacheStore


API_PREFIX = "/api/finance"


def build_market_data_service() -> MarketDataService:
    """Wire the cache and the Yahoo provider into a service using current settings."""
    cache = CacheStore(ttl_ms=settings.cache_ttl_ms, max_entries=settings.cache_max_entries)
    return MarketDataService(
        provider=YahooFinanceProvider(),
        cache=cache,
        normalize_symbols=settings.cache_normalize_symbols,
        coalesce_misses=settings.cache_coalesce_misses,
        default_days=settings.historical_default_days,
        default_interval=settings.historical_default_interval,
    )


# ============================================
# Lifespan Management
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    logger.info("=== Application Starting ===")
    try:
        validate_configuration()
        set_log_level(settings.log_level)
        service = build_market_data_service()
        await service.provider.initialize()
        app.state.market_data = service
        logger.info("=== Started Successfully ===")
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    yield

    logger.info("=== Shutting Down ===")
    try:
        await app.state.market_data.provider.shutdown()
        logger.info("=== Shutdown Complete ===")
    except Exception as e:
        logger.error(f"Shutdown error: {e}")


# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="Financial Market Data API",
    description=(
        "REST API for financial market data backed by Yahoo Finance.\n\n"
        "Responses are cached in memory for 5 minutes.\n\n"
        "## Endpoints (prefix `/api/finance`)\n"
        "- `GET /quotes/{symbols}` - Current quotes (comma-separated symbols)\n"
        "- `GET /historical/{symbol}?period=30d&interval=1d` - Historical series\n"
        "- `GET /details/{symbol}` - Asset details\n"
        "- `GET /trends` - Market index snapshot\n"
        "- `GET /full/{symbol}` - Quote, history and details in one call\n"
        "- `GET /petrobras`, `GET /minerio`, `GET /vix` - Full info for PBR, VALE, ^VIX\n"
        "- `GET /adrs/brasil` - Brazilian ADRs grouped by sector\n\n"
        "Errors are returned as HTTP 500 with `{error: true, message, code}`."
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials="*" not in settings.cors_origins_list,
    allow_methods=["*"],
    allow_headers=["*"]
)


def get_market_data_service(request: Request) -> MarketDataService:
    """Dependency returning the service created during startup."""
    return request.app.state.market_data


# ============================================
# System Endpoints
# ============================================

@app.get("/", tags=["System"])
async def root():
    """API information and available endpoints."""
    return {
        "message": "Financial market data API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "quotes": f"{API_PREFIX}/quotes/:symbols",
            "historical": f"{API_PREFIX}/historical/:symbol",
            "details": f"{API_PREFIX}/details/:symbol",
            "trends": f"{API_PREFIX}/trends",
            "full": f"{API_PREFIX}/full/:symbol",
            "petrobras": f"{API_PREFIX}/petrobras",
            "minerio": f"{API_PREFIX}/minerio",
            "vix": f"{API_PREFIX}/vix",
            "adrs": f"{API_PREFIX}/adrs/brasil",
        }
    }


@app.get("/health", tags=["System"])
async def health_check(service: MarketDataService = Depends(get_market_data_service)):
    """Health check - provider connectivity and cache statistics."""
    provider_ok = await service.provider.health_check()
    return {
        "status": "healthy" if provider_ok else "degraded",
        "provider": {"name": service.provider.name, "reachable": provider_ok},
        "cache": CacheStats(**service.cache.stats()).model_dump(by_alias=True),
    }


# ============================================
# Market Data Endpoints
# ============================================

router = APIRouter(prefix=API_PREFIX, tags=["Market Data"])


@router.get("/quotes/{symbols}", response_model=List[Quote])
async def get_quotes(symbols: str, service: MarketDataService = Depends(get_market_data_service)):
    """
    Current quotes for a comma-separated list of symbols.

    Example:
        GET /api/finance/quotes/PBR,VALE,^VIX
    """
    symbol_list = [s.strip() for s in symbols.split(",") if s.strip()]
    result = await service.quotes(symbol_list)
    return result.unwrap()


@router.get("/historical/{symbol}", response_model=List[HistoricalBar])
async def get_historical(
    symbol: str,
    period: str = Query(default="30d", description="Lookback: <N>d, <N>m (N*30 days) or <N>y (N*365 days)"),
    interval: Optional[str] = Query(default=None, description="Bar interval (1d, 1wk, 1mo, ...)"),
    start: Optional[str] = Query(default=None, description="Window start date (overrides period)"),
    end: Optional[str] = Query(default=None, description="Window end date (defaults to now)"),
    service: MarketDataService = Depends(get_market_data_service)
):
    """
    Historical series for one symbol.

    Examples:
        GET /api/finance/historical/PBR?period=30d
        GET /api/finance/historical/VALE?period=1y&interval=1wk
        GET /api/finance/historical/PBR?start=2024-01-01&end=2024-03-31
    """
    start_dt, end_dt = resolve_range(period, start, end, default_days=settings.historical_default_days)
    result = await service.historical(symbol, start_dt, end_dt, interval or settings.historical_default_interval)
    return result.unwrap()


@router.get("/details/{symbol}", response_model=Dict[str, Any])
async def get_details(symbol: str, service: MarketDataService = Depends(get_market_data_service)):
    """
    Asset details: profile, summary, financial data, recommendation trend, earnings.

    Example:
        GET /api/finance/details/PBR
    """
    result = await service.details(symbol)
    return result.unwrap()


@router.get("/trends", response_model=List[TrendQuote])
async def get_trends(service: MarketDataService = Depends(get_market_data_service)):
    """Snapshot of Ibovespa, S&P 500, Nasdaq, VIX, crude oil and gold."""
    result = await service.trends()
    return result.unwrap()


@router.get("/full/{symbol}", response_model=FullInfo)
async def get_full_info(symbol: str, service: MarketDataService = Depends(get_market_data_service)):
    """
    Quote, 30-day history and details for one symbol.

    Example:
        GET /api/finance/full/PBR
    """
    result = await service.full_info(symbol)
    return result.unwrap()


@router.get("/petrobras", response_model=FullInfo)
async def get_petrobras(service: MarketDataService = Depends(get_market_data_service)):
    """Full info for Petrobras (PBR)."""
    result = await service.full_info(SYMBOLS["PETROBRAS"])
    return result.unwrap()


@router.get("/minerio", response_model=FullInfo)
async def get_minerio(service: MarketDataService = Depends(get_market_data_service)):
    """Full info for Vale (VALE), the iron ore benchmark."""
    result = await service.full_info(SYMBOLS["VALE"])
    return result.unwrap()


@router.get("/vix", response_model=FullInfo)
async def get_vix(service: MarketDataService = Depends(get_market_data_service)):
    """Full info for the CBOE Volatility Index (^VIX)."""
    result = await service.full_info(SYMBOLS["VIX"])
    return result.unwrap()


@router.get("/adrs/brasil", response_model=List[AdrSector])
async def get_brazilian_adrs(service: MarketDataService = Depends(get_market_data_service)):
    """Brazilian ADRs grouped by sector, each with its live quote."""
    result = await service.brazilian_adrs()
    return result.unwrap()


app.include_router(router)


# ============================================
# Error Handlers
# ============================================

def _error_response(message: str, code: str) -> JSONResponse:
    payload = ErrorResponse(message=message, code=code)
    return JSONResponse(status_code=500, content=payload.model_dump())


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    """Provider failures -> 500 envelope."""
    logger.error(f"{request.method} {request.url.path} failed: {exc} [{exc.code}]")
    return _error_response(str(exc), exc.code)


@app.exception_handler(InvalidPeriodError)
async def invalid_period_handler(request: Request, exc: InvalidPeriodError):
    """Unparseable period/date parameters -> 500 envelope."""
    logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
    return _error_response(str(exc), exc.code)


@app.exception_handler(404)
async def not_found_handler(request, exc):
    """Handle 404 errors."""
    return JSONResponse(
        status_code=404,
        content={"error": True, "message": "Not found", "code": "NOT_FOUND", "path": request.url.path}
    )


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    """Anything else -> 500 envelope."""
    logger.error(f"Internal error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return _error_response(str(exc) or "Internal server error", "INTERNAL_ERROR")
