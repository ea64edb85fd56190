"""
Yahoo Finance Provider

This module implements the ProviderInterface on top of the Yahoo Finance
query API.

Endpoints Used:
    - GET /v7/finance/quote                 Batch quotes
    - GET /v8/finance/chart/{symbol}        Historical bars
    - GET /v10/finance/quoteSummary/{symbol} Summary modules

Structure:
    providers/yahoo/
    ├── __init__.py          # This file (YahooFinanceProvider class)
    └── api_client.py        # REST API client with aiohttp
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from core.provider_interface import ProviderInterface
from core.logging import logger
from .api_client import YahooFinanceAPIClient


class YahooFinanceProvider(ProviderInterface):
    """
    Yahoo Finance market data provider.

    Example:
        >>> provider = YahooFinanceProvider()
        >>> await provider.initialize()
        >>> quotes = await provider.get_quotes(["PBR", "VALE"])
        >>> await provider.shutdown()
    """

    name = "yahoo"

    def __init__(self, client: Optional[YahooFinanceAPIClient] = None):
        """
        Args:
            client: Pre-built API client (created in initialize() if omitted)
        """
        self.client: Optional[YahooFinanceAPIClient] = client
        self._owns_client = client is None

    async def initialize(self) -> None:
        """Create the API client and open its aiohttp session."""
        logger.info("Initializing Yahoo Finance provider...")
        if self.client is None:
            self.client = YahooFinanceAPIClient()
        if self.client.session is None:
            await self.client.__aenter__()
        logger.info("✓ Yahoo Finance provider initialized")

    async def shutdown(self) -> None:
        """Close the API client session."""
        logger.info("Shutting down Yahoo Finance provider...")
        if self.client and self._owns_client:
            await self.client.__aexit__(None, None, None)
        logger.info("✓ Yahoo Finance provider shut down")

    async def health_check(self) -> bool:
        """
        Check if Yahoo Finance is reachable.

        Makes a lightweight quote request for the S&P 500 index.
        """
        try:
            await self._require_client().get_quotes(["^GSPC"])
            return True
        except Exception as e:
            logger.error(f"Yahoo Finance health check failed: {e}")
            return False

    # ============================================
    # Data Methods
    # ============================================

    async def get_quotes(self, symbols: Sequence[str]) -> List[Dict[str, Any]]:
        return await self._require_client().get_quotes(list(symbols))

    async def get_historical(
        self,
        symbol: str,
        start: datetime,
        end: datetime,
        interval: str = "1d"
    ) -> List[Dict[str, Any]]:
        return await self._require_client().get_chart(symbol, start, end, interval)

    async def get_details(self, symbol: str, modules: Sequence[str]) -> Dict[str, Any]:
        return await self._require_client().get_quote_summary(symbol, list(modules))

    def _require_client(self) -> YahooFinanceAPIClient:
        if self.client is None:
            raise RuntimeError("Yahoo Finance provider not initialized. Call initialize() first.")
        return self.client
