"""Abstract market data client interface.

Defines the contract for all exchange implementations. The signal engine
depends only on this interface, keeping exchange-specific details isolated
in the concrete implementation.
"""

from abc import ABC, abstractmethod

from cryptoedge.models import Candle, OrderBook, Ticker


class MarketDataClient(ABC):
    """Abstract base class for public market data clients."""

    @abstractmethod
    async def connect(self) -> None:
        """Initialize connection and load markets."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources (CRITICAL for ccxt async)."""
        ...

    @abstractmethod
    async def fetch_candles(self, pair: str, interval_minutes: int) -> list[Candle]:
        """Fetch OHLCV history for a pair, oldest first."""
        ...

    @abstractmethod
    async def fetch_ticker(self, pair: str) -> Ticker:
        """Fetch the 24h ticker for a pair."""
        ...

    @abstractmethod
    async def fetch_order_book(self, pair: str, depth: int) -> OrderBook:
        """Fetch the top ``depth`` levels of each book side."""
        ...
