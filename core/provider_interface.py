"""
Provider Interface - Abstract Contract for Market Data Providers

This module defines the abstract base class that every upstream market data
provider must implement. The market data service and the HTTP layer work with
ProviderInterface only, so a provider can be swapped (or replaced by a test
double) without touching caching or routing code.

Providers return RAW payloads (plain dicts in the provider's own field names).
Normalization into our schemas happens in the market data service, right
before results are cached.

Example:
    class YahooFinanceProvider(ProviderInterface):
        name = "yahoo"

        async def get_quotes(self, symbols):
            # Yahoo-specific implementation
            ...
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Sequence


class ProviderInterface(ABC):
    """
    Abstract Base Class for Market Data Providers

    Class Attributes:
        name: Unique identifier for the provider (lowercase, e.g., "yahoo")

    Abstract Methods (MUST be implemented by all providers):
        - get_quotes: Current quotes for a batch of symbols
        - get_historical: Daily (or other interval) bars for one symbol
        - get_details: Quote summary modules for one symbol

    Optional Methods (can be overridden):
        - initialize: Setup connections, sessions, etc.
        - shutdown: Cleanup connections
        - health_check: Verify the provider is reachable
    """

    name: str
    """Unique provider identifier (lowercase)"""

    # ============================================
    # Data Methods
    # ============================================

    @abstractmethod
    async def get_quotes(self, symbols: Sequence[str]) -> List[Dict[str, Any]]:
        """
        Fetch current quotes for a batch of symbols in a single call.

        Args:
            symbols: Ticker symbols (e.g., ["PBR", "VALE", "^VIX"])

        Returns:
            List of raw quote dicts in provider response order, which is not
            necessarily the requested order. Unknown symbols may be omitted.

        Raises:
            Exception: For network errors, API errors or malformed responses
        """
        ...

    @abstractmethod
    async def get_historical(
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
            start: Window start (UTC)
            end: Window end (UTC)
            interval: Bar interval (e.g., "1d", "1wk", "1mo")

        Returns:
            List of raw bar dicts, oldest first, each with keys
            ``timestamp`` (epoch seconds), ``open``, ``high``, ``low``,
            ``close``, ``volume`` and ``adjclose``.

        Raises:
            Exception: For network errors, API errors or malformed responses
        """
        ...

    @abstractmethod
    async def get_details(self, symbol: str, modules: Sequence[str]) -> Dict[str, Any]:
        """
        Fetch quote summary modules for one symbol.

        Args:
            symbol: Ticker symbol
            modules: Module names (e.g., ["assetProfile", "summaryDetail"])

        Returns:
            Dict mapping module name to the provider's module payload.

        Raises:
            Exception: For network errors, API errors or malformed responses
        """
        ...

    # ============================================
    # Lifecycle Methods
    # ============================================

    async def initialize(self) -> None:
        """Set up sessions or connections. Called once at application startup."""
        pass

    async def shutdown(self) -> None:
        """Release sessions or connections. Called once at application shutdown."""
        pass

    async def health_check(self) -> bool:
        """Return True if the provider is reachable."""
        return True

    def __repr__(self) -> str:
        """String representation of the provider."""
        return f"<{self.__class__.__name__} name='{getattr(self, 'name', '?')}'>"
