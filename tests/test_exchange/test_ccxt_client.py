"""Tests for CcxtMarketDataClient.

All tests use mocked ccxt exchange objects to avoid real API calls.
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import ccxt.async_support as ccxt_async
import pytest

from cryptoedge.config import ExchangeSettings
from cryptoedge.exceptions import UpstreamFetchError
from cryptoedge.exchange.ccxt_client import CcxtMarketDataClient, timeframe_for


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

MOCK_TICKER = {
    "symbol": "BTC/EUR",
    "last": 33630.5,
    "close": 33630.5,
    "open": 32800.0,
    "high": 33800.0,
    "low": 32500.0,
    "percentage": None,
    "baseVolume": 1532.1,
    "vwap": 33120.7,
    "info": {"t": [1200, 18234]},
}


@pytest.fixture
def exchange_settings() -> ExchangeSettings:
    """Exchange settings for testing."""
    return ExchangeSettings(name="kraken", timeout_seconds=0.5)


@pytest.fixture
def mock_exchange() -> MagicMock:
    exchange = MagicMock()
    exchange.load_markets = AsyncMock(return_value={"BTC/EUR": {}, "ETH/EUR": {}})
    exchange.fetch_ohlcv = AsyncMock(return_value=[])
    exchange.fetch_ticker = AsyncMock(return_value=dict(MOCK_TICKER))
    exchange.fetch_order_book = AsyncMock(return_value={"bids": [], "asks": []})
    exchange.close = AsyncMock()
    return exchange


@pytest.fixture
def client(exchange_settings: ExchangeSettings, mock_exchange: MagicMock) -> CcxtMarketDataClient:
    """CcxtMarketDataClient with the ccxt exchange replaced by a mock."""
    client = CcxtMarketDataClient(exchange_settings)
    client._exchange = mock_exchange
    return client


# ---------------------------------------------------------------------------
# timeframe_for tests
# ---------------------------------------------------------------------------


class TestTimeframeFor:
    """Tests for candle interval mapping."""

    @pytest.mark.parametrize(
        ("minutes", "timeframe"),
        [(1, "1m"), (15, "15m"), (60, "1h"), (240, "4h"), (1440, "1d")],
    )
    def test_supported(self, minutes: int, timeframe: str) -> None:
        assert timeframe_for(minutes) == timeframe

    def test_unsupported_raises(self) -> None:
        with pytest.raises(ValueError):
            timeframe_for(7)


# ---------------------------------------------------------------------------
# CcxtMarketDataClient tests
# ---------------------------------------------------------------------------


class TestConstruction:
    """Tests for exchange selection."""

    def test_unknown_exchange_raises(self) -> None:
        with pytest.raises(ValueError):
            CcxtMarketDataClient(ExchangeSettings(name="not_an_exchange"))

    def test_exchange_configured(self, exchange_settings: ExchangeSettings) -> None:
        client = CcxtMarketDataClient(exchange_settings)
        assert client.exchange.enableRateLimit is True
        assert client.exchange.timeout == 500


class TestConnect:
    """Tests for market loading and cleanup."""

    @pytest.mark.asyncio
    async def test_connect_loads_markets(self, client, mock_exchange) -> None:
        await client.connect()
        mock_exchange.load_markets.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close(self, client, mock_exchange) -> None:
        await client.close()
        mock_exchange.close.assert_awaited_once()


class TestFetchCandles:
    """Tests for OHLCV conversion."""

    @pytest.mark.asyncio
    async def test_decimal_conversion_and_order(self, client, mock_exchange) -> None:
        mock_exchange.fetch_ohlcv.return_value = [
            [1_700_003_600_000, 30100.5, 30200.0, 30050.0, 30150.25, 12.5],
            [1_700_000_000_000, 30000.0, 30120.0, 29950.0, 30100.5, 10.0],
        ]
        candles = await client.fetch_candles("BTC/EUR", 60)

        mock_exchange.fetch_ohlcv.assert_awaited_once_with("BTC/EUR", timeframe="1h")
        assert [c.timestamp_ms for c in candles] == [1_700_000_000_000, 1_700_003_600_000]
        assert candles[1].close == Decimal("30150.25")
        assert isinstance(candles[0].volume, Decimal)
        assert candles[0].vwap is None

    @pytest.mark.asyncio
    async def test_incomplete_bars_skipped(self, client, mock_exchange) -> None:
        mock_exchange.fetch_ohlcv.return_value = [
            [1_700_000_000_000, 30000.0, 30120.0, 29950.0, None, 10.0],
            [1_700_003_600_000, 30100.5, 30200.0, 30050.0, 30150.25, 12.5],
        ]
        candles = await client.fetch_candles("BTC/EUR", 60)
        assert len(candles) == 1

    @pytest.mark.asyncio
    async def test_inconsistent_bars_dropped(self, client, mock_exchange) -> None:
        """A bar whose high sits below its low never reaches the indicators."""
        mock_exchange.fetch_ohlcv.return_value = [
            [1_700_000_000_000, 30000.0, 30120.0, 29950.0, 30100.5, 10.0],
            [1_700_003_600_000, 150.0, 90.0, 200.0, 150.0, 10.0],
        ]
        candles = await client.fetch_candles("BTC/EUR", 60)

        assert [c.timestamp_ms for c in candles] == [1_700_000_000_000]
        assert all(c.is_consistent() for c in candles)


class TestFetchTicker:
    """Tests for ticker conversion."""

    @pytest.mark.asyncio
    async def test_change_derived_from_open(self, client) -> None:
        ticker = await client.fetch_ticker("BTC/EUR")

        assert ticker.price == Decimal("33630.5")
        expected = (Decimal("33630.5") - Decimal("32800.0")) / Decimal("32800.0") * 100
        assert ticker.change_24h == expected
        assert ticker.vwap_24h == Decimal("33120.7")
        assert ticker.trades_24h == 18234

    @pytest.mark.asyncio
    async def test_reported_percentage_preferred(self, client, mock_exchange) -> None:
        mock_exchange.fetch_ticker.return_value = {**MOCK_TICKER, "percentage": 2.4, "info": {}}
        ticker = await client.fetch_ticker("BTC/EUR")
        assert ticker.change_24h == Decimal("2.4")
        assert ticker.trades_24h is None

    @pytest.mark.asyncio
    async def test_missing_price_raises(self, client, mock_exchange) -> None:
        mock_exchange.fetch_ticker.return_value = {"symbol": "BTC/EUR", "last": None, "close": None}
        with pytest.raises(UpstreamFetchError):
            await client.fetch_ticker("BTC/EUR")


class TestFetchOrderBook:
    """Tests for order book conversion."""

    @pytest.mark.asyncio
    async def test_levels_truncated_to_depth(self, client, mock_exchange) -> None:
        mock_exchange.fetch_order_book.return_value = {
            "bids": [[33630.0, 1.5, 1700000000], [33629.0, 0.8, 1700000000], [33628.0, 2.0, 1700000000]],
            "asks": [[33631.0, 0.5, 1700000000], [33632.0, 1.0, 1700000000]],
        }
        book = await client.fetch_order_book("BTC/EUR", 2)

        mock_exchange.fetch_order_book.assert_awaited_once_with("BTC/EUR", limit=2)
        assert len(book.bids) == 2
        assert book.best_bid == Decimal("33630.0")
        assert book.best_ask == Decimal("33631.0")


class TestErrorMapping:
    """Tests for failure translation to UpstreamFetchError."""

    @pytest.mark.asyncio
    async def test_ccxt_error(self, client, mock_exchange) -> None:
        mock_exchange.fetch_ticker.side_effect = ccxt_async.NetworkError("kraken GET failed")
        with pytest.raises(UpstreamFetchError):
            await client.fetch_ticker("BTC/EUR")

    @pytest.mark.asyncio
    async def test_exchange_error(self, client, mock_exchange) -> None:
        mock_exchange.fetch_ohlcv.side_effect = ccxt_async.BadSymbol("unknown pair")
        with pytest.raises(UpstreamFetchError):
            await client.fetch_candles("XXX/EUR", 60)

    @pytest.mark.asyncio
    async def test_timeout(self, client, mock_exchange) -> None:
        async def slow(*args, **kwargs):
            await asyncio.sleep(10)

        mock_exchange.fetch_order_book.side_effect = slow
        with pytest.raises(UpstreamFetchError):
            await client.fetch_order_book("BTC/EUR", 10)
