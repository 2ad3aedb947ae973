"""Shared test fixtures for the CryptoEdge signal engine."""

from collections.abc import Callable
from decimal import Decimal

import pytest
import pytest_asyncio

from cryptoedge.config import (
    AppSettings,
    ExchangeSettings,
    LiquiditySettings,
    ReasoningSettings,
    ServerSettings,
    SignalSettings,
    StorageSettings,
)
from cryptoedge.models import Candle
from cryptoedge.storage.database import SignalDatabase
from cryptoedge.storage.store import SignalStore


@pytest.fixture
def mock_settings(tmp_path) -> AppSettings:
    """Return AppSettings with test defaults (dummy API key, tmp storage)."""
    return AppSettings(
        log_level="DEBUG",
        log_dir=str(tmp_path / "logs"),
        exchange=ExchangeSettings(name="kraken", timeout_seconds=1.0),
        reasoning=ReasoningSettings(
            api_key="test-llm-key",  # type: ignore[arg-type]
            api_url="https://llm.test/v1/chat/completions",
            model_id="test-model",
            timeout_seconds=1.0,
        ),
        liquidity=LiquiditySettings(
            url="https://liquidity.test/api/v3/global",
            timeout_seconds=1.0,
            cache_ttl_seconds=300.0,
        ),
        signal=SignalSettings(
            pairs=["BTC/EUR", "ETH/EUR"],
            interval_seconds=60,
            cycle_deadline_seconds=2.0,
        ),
        storage=StorageSettings(
            db_path=str(tmp_path / "cryptoedge.db"),
            learning_path=str(tmp_path / "agent-learning.md"),
        ),
        server=ServerSettings(broadcast_send_timeout=0.5),
    )


@pytest.fixture
def make_candles() -> Callable[..., list[Candle]]:
    """Factory turning a list of closes into hourly candles.

    Each bar opens at the previous close and spans ±0.5% around its close.
    """

    def _make(closes: list[float], volume: float = 10.0) -> list[Candle]:
        candles = []
        prev = closes[0]
        for i, close in enumerate(closes):
            c = Decimal(str(close))
            o = Decimal(str(prev))
            candles.append(
                Candle(
                    timestamp_ms=1_700_000_000_000 + i * 3_600_000,
                    open=o,
                    high=max(o, c) * Decimal("1.005"),
                    low=min(o, c) * Decimal("0.995"),
                    close=c,
                    volume=Decimal(str(volume + (i % 5))),
                )
            )
            prev = close
        return candles

    return _make


@pytest.fixture
def uptrend_closes() -> list[float]:
    """60 hourly BTC/EUR closes in a clear uptrend with small pullbacks."""
    return [30000.0 + i * 60.0 + (90.0 if i % 2 == 0 else -90.0) for i in range(60)]


@pytest.fixture
def uptrend_candles(make_candles, uptrend_closes) -> list[Candle]:
    return make_candles(uptrend_closes)


@pytest_asyncio.fixture
async def database(tmp_path):
    """Connected SignalDatabase on a temporary file."""
    async with SignalDatabase(str(tmp_path / "signals.db")) as db:
        yield db


@pytest.fixture
def store(database) -> SignalStore:
    return SignalStore(database)
