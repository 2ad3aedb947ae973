"""Public market data client implementation via ccxt async.

Wraps a ccxt.async_support exchange (Kraken by default) with market loading,
per-call timeouts, Decimal conversion and async cleanup. Every failure is
surfaced as UpstreamFetchError.
"""

import asyncio
from decimal import Decimal

import ccxt.async_support as ccxt_async

from cryptoedge.config import ExchangeSettings
from cryptoedge.exceptions import UpstreamFetchError
from cryptoedge.exchange.client import MarketDataClient
from cryptoedge.logging import get_logger
from cryptoedge.models import Candle, OrderBook, OrderBookLevel, Ticker

logger = get_logger(__name__)

_TIMEFRAMES = {
    1: "1m",
    5: "5m",
    15: "15m",
    30: "30m",
    60: "1h",
    240: "4h",
    1440: "1d",
    10080: "1w",
}


def timeframe_for(interval_minutes: int) -> str:
    """Map a candle interval in minutes to a ccxt timeframe string."""
    try:
        return _TIMEFRAMES[interval_minutes]
    except KeyError:
        raise ValueError(f"Unsupported candle interval: {interval_minutes} minutes") from None


def _dec(value) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None


class CcxtMarketDataClient(MarketDataClient):
    """Concrete market data client using a ccxt async exchange."""

    def __init__(self, settings: ExchangeSettings) -> None:
        self._settings = settings

        exchange_cls = getattr(ccxt_async, settings.name, None)
        if exchange_cls is None:
            raise ValueError(f"Unknown ccxt exchange: {settings.name}")

        self._exchange = exchange_cls(
            {
                "enableRateLimit": True,
                "timeout": int(settings.timeout_seconds * 1000),
            }
        )
        self._markets: dict = {}

    @property
    def exchange(self):
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def connect(self) -> None:
        """Initialize connection by loading markets."""
        logger.info("connecting_to_exchange", exchange=self._settings.name)
        self._markets = await self._call("load_markets", self._exchange.load_markets())
        logger.info(
            "exchange_connected",
            exchange=self._settings.name,
            market_count=len(self._markets),
        )

    async def close(self) -> None:
        """Clean up ccxt async resources. CRITICAL: must be called to avoid resource leaks."""
        logger.info("closing_exchange_connection", exchange=self._settings.name)
        await self._exchange.close()

    async def _call(self, operation: str, coro):
        """Await a ccxt call under the configured timeout, mapping failures."""
        try:
            return await asyncio.wait_for(coro, timeout=self._settings.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise UpstreamFetchError(
                f"{operation} timed out after {self._settings.timeout_seconds:g}s"
            ) from e
        except ccxt_async.BaseError as e:
            raise UpstreamFetchError(f"{operation} failed: {e}") from e

    async def fetch_candles(self, pair: str, interval_minutes: int) -> list[Candle]:
        """Fetch OHLCV history for a pair, oldest first.

        Bars with a missing field are skipped. Bars whose high/low do not
        bound open and close are dropped with a warning.
        """
        raw = await self._call(
            "fetch_ohlcv",
            self._exchange.fetch_ohlcv(pair, timeframe=timeframe_for(interval_minutes)),
        )
        parsed = [
            Candle(
                timestamp_ms=int(bar[0]),
                open=Decimal(str(bar[1])),
                high=Decimal(str(bar[2])),
                low=Decimal(str(bar[3])),
                close=Decimal(str(bar[4])),
                volume=Decimal(str(bar[5])),
            )
            for bar in raw
            if len(bar) >= 6 and None not in bar[:6]
        ]
        candles = []
        for candle in parsed:
            if not candle.is_consistent():
                logger.warning("candle_inconsistent", pair=pair, timestamp_ms=candle.timestamp_ms)
                continue
            candles.append(candle)
        candles.sort(key=lambda c: c.timestamp_ms)
        logger.debug("fetched_candles", pair=pair, count=len(candles))
        return candles

    async def fetch_ticker(self, pair: str) -> Ticker:
        """Fetch the 24h ticker for a pair.

        The 24h change is derived from the open price when the exchange does
        not report a percentage.
        """
        raw = await self._call("fetch_ticker", self._exchange.fetch_ticker(pair))
        price = _dec(raw.get("last") or raw.get("close"))
        if price is None:
            raise UpstreamFetchError(f"ticker for {pair} has no last price")

        change = _dec(raw.get("percentage"))
        open_price = _dec(raw.get("open"))
        if change is None and open_price:
            change = (price - open_price) / open_price * Decimal("100")

        trades = None
        info = raw.get("info") or {}
        trade_counts = info.get("t") if isinstance(info, dict) else None
        if isinstance(trade_counts, list) and len(trade_counts) > 1:
            trades = int(trade_counts[1])

        return Ticker(
            pair=pair,
            price=price,
            change_24h=change,
            volume_24h=_dec(raw.get("baseVolume")),
            high_24h=_dec(raw.get("high")),
            low_24h=_dec(raw.get("low")),
            vwap_24h=_dec(raw.get("vwap")),
            trades_24h=trades,
        )

    async def fetch_order_book(self, pair: str, depth: int) -> OrderBook:
        """Fetch the top ``depth`` levels of each book side."""
        raw = await self._call(
            "fetch_order_book", self._exchange.fetch_order_book(pair, limit=depth)
        )
        return OrderBook(
            bids=[
                OrderBookLevel(price=Decimal(str(p)), volume=Decimal(str(v)))
                for p, v, *_ in raw.get("bids", [])[:depth]
            ],
            asks=[
                OrderBookLevel(price=Decimal(str(p)), volume=Decimal(str(v)))
                for p, v, *_ in raw.get("asks", [])[:depth]
            ],
        )
