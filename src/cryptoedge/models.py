"""Core data models for market data, liquidity context, signals and trades.

CRITICAL: Exchange-sourced prices and volumes (candles, ticker, order book)
use Decimal. Indicator outputs and model-derived values are floats; the
conversion happens once, at the indicator engine boundary.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cryptoedge.indicators.models import IndicatorSnapshot


class Direction(str, Enum):
    """Recommended trade direction."""

    LONG = "long"
    SHORT = "short"
    HOLD = "hold"


class Sentiment(str, Enum):
    """Overall market sentiment reported alongside a signal."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class RiskLevel(str, Enum):
    """Risk classification reported alongside a signal."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LiquidityTrend(str, Enum):
    """Macro liquidity trend derived from the liquidity score."""

    EXPANDING = "expanding"
    NEUTRAL = "neutral"
    CONTRACTING = "contracting"


@dataclass
class Candle:
    """A single OHLCV bar.

    ``vwap`` is the per-bar volume weighted price when the exchange supplies it.
    """

    timestamp_ms: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    vwap: Decimal | None = None

    def is_consistent(self) -> bool:
        """Check the OHLC envelope: high bounds the bar from above, low from below."""
        return self.high >= max(self.open, self.close, self.low) and self.low <= min(
            self.open, self.close, self.high
        )


@dataclass
class Ticker:
    """24h ticker snapshot for a pair."""

    pair: str
    price: Decimal
    change_24h: Decimal | None = None  # percent
    volume_24h: Decimal | None = None
    high_24h: Decimal | None = None
    low_24h: Decimal | None = None
    vwap_24h: Decimal | None = None
    trades_24h: int | None = None


@dataclass
class OrderBookLevel:
    """One price level of an order book side."""

    price: Decimal
    volume: Decimal


@dataclass
class OrderBook:
    """Top-of-book depth snapshot. Bids sorted descending, asks ascending."""

    bids: list[OrderBookLevel] = field(default_factory=list)
    asks: list[OrderBookLevel] = field(default_factory=list)

    @property
    def best_bid(self) -> Decimal | None:
        return self.bids[0].price if self.bids else None

    @property
    def best_ask(self) -> Decimal | None:
        return self.asks[0].price if self.asks else None

    @property
    def bid_depth(self) -> Decimal:
        return sum((level.volume for level in self.bids), Decimal("0"))

    @property
    def ask_depth(self) -> Decimal:
        return sum((level.volume for level in self.asks), Decimal("0"))

    @property
    def spread_pct(self) -> Decimal | None:
        """Spread as a percentage of the best ask, or None if either side is empty."""
        bid, ask = self.best_bid, self.best_ask
        if bid is None or ask is None or ask == 0:
            return None
        return (ask - bid) / ask * Decimal("100")

    @property
    def imbalance(self) -> Decimal | None:
        """Bid share of total visible depth (0-1). None on an empty book."""
        total = self.bid_depth + self.ask_depth
        if total <= 0:
            return None
        return self.bid_depth / total


@dataclass
class LiquidityContext:
    """Macro market-cap flow snapshot."""

    total_market_cap_usd: float
    volume_24h_usd: float
    market_cap_change_24h_pct: float
    btc_dominance_pct: float
    liquidity_score: int  # -100..100
    trend: LiquidityTrend
    fetched_at_ms: int


@dataclass
class MarketData:
    """Everything the reasoning client needs to analyse one pair."""

    indicators: IndicatorSnapshot
    ticker: Ticker | None = None
    order_book: OrderBook | None = None
    liquidity: LiquidityContext | None = None


@dataclass
class ClosedTradeRecord:
    """A completed paper trade, owned by the trading subsystem (read-only here)."""

    pair: str
    direction: Direction
    pnl: float
    entry_time_ms: int
    closed_at_ms: int
    confidence: float | None = None  # confidence recorded on the trade itself

    @property
    def is_win(self) -> bool:
        return self.pnl > 0


@dataclass
class Signal:
    """One generated recommendation, with the indicator state denormalised for history."""

    pair: str
    direction: Direction
    confidence: float  # always within [30, 95]
    price_at_signal: float
    market_sentiment: Sentiment = Sentiment.NEUTRAL
    risk_level: RiskLevel = RiskLevel.MEDIUM
    suggested_entry: float | None = None
    suggested_stop_loss: float | None = None
    suggested_take_profit: float | None = None
    rsi: float | None = None
    macd: float | None = None
    macd_signal: float | None = None
    bb_upper: float | None = None
    bb_lower: float | None = None
    analysis_text: str = ""
    key_factors: list[str] = field(default_factory=list)
    technical_summary: str = ""
    model_version: str | None = None
    token_usage: int | None = None
    analysis_source: str = "llm"
    liquidity_score: int | None = None
    liquidity_trend: LiquidityTrend | None = None
    created_at_ms: int = 0
    id: int | None = None

    def to_dict(self) -> dict:
        """JSON-safe representation for broadcast and API responses."""
        data = asdict(self)
        data["direction"] = self.direction.value
        data["market_sentiment"] = self.market_sentiment.value
        data["risk_level"] = self.risk_level.value
        data["liquidity_trend"] = (
            self.liquidity_trend.value if self.liquidity_trend is not None else None
        )
        return data
