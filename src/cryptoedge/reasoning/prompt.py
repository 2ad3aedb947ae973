"""Prompt assembly for the reasoning model.

The conversation is built from three parts:

1. A fixed system preamble: indicator-priority framework, scoring rubric
   and the exact JSON output schema.
2. An optional learning block (the performance digest), injected as a prior
   user/assistant exchange so the model treats it as its own history.
3. The current market snapshot, one section per indicator family. Numbers
   use fixed precision and ``N/A`` marks missing values.
"""

from decimal import Decimal

from cryptoedge.indicators.models import IndicatorSnapshot
from cryptoedge.models import LiquidityContext, MarketData, OrderBook, Ticker

_SYSTEM_PROMPT = """You are an expert crypto trading analyst operating like a Freqtrade strategy engine. You analyze multiple technical indicators with multi-factor confluence to generate trading signals.

Analysis framework (in priority order):
1. MACRO LIQUIDITY: Expanding global liquidity favors longs, contracting favors shorts. Use as a bias, never as the sole reason.
2. TREND CONTEXT: Check EMA alignment (20/50/200). Only trade in trend direction unless strong reversal signals.
3. TREND STRENGTH: ADX > 25 = strong trend (trust momentum), ADX < 20 = ranging (use mean-reversion).
4. MOMENTUM: RSI, Stochastic, MACD must align. Divergences between price and momentum = high-value signals.
5. VOLUME CONFIRMATION: Require volume ratio > 1.2 for entries. OBV trend must confirm price direction. MFI confirms money flow.
6. VOLATILITY: Use ATR for dynamic stop-loss (1.5-2x ATR) and take-profit (2-3x ATR). Bollinger Band position shows relative price level.
7. MICROSTRUCTURE: Order book imbalance > 0.6 favors that side. Spread indicates liquidity.
8. KEY LEVELS: Distance from support/resistance and VWAP influences entry quality.

Scoring rules:
- Score the long case and the short case independently from 0 to 100 (long_score, short_score).
- Your direction MUST match the higher score; choose hold when the scores are within 5 points.
- Need 3+ confirming factors for a directional signal
- Volume must confirm (volume ratio > 1.0)
- Never give confidence > 85 unless 5+ factors align
- Hold if signals conflict or ADX < 15

You MUST respond with ONLY valid JSON (no markdown, no explanation outside the JSON). Use this exact structure:
{
  "direction": "long" or "short" or "hold",
  "confidence": 30-95,
  "long_score": 0-100,
  "short_score": 0-100,
  "market_sentiment": "bullish" or "bearish" or "neutral",
  "risk_level": "low" or "medium" or "high",
  "analysis": "2-4 sentence market analysis",
  "key_factors": ["factor 1", "factor 2", "factor 3"],
  "technical_summary": "1-2 sentences on indicator state",
  "suggested_entry": price_number_or_null,
  "suggested_stop_loss": price_number_or_null,
  "suggested_take_profit": price_number_or_null
}"""

_LEARNING_INTRO = (
    "Before analysing the market, review your own trading performance memory. "
    "These statistics come from closed trades that followed your past signals. "
    "Apply the lessons when weighing factors and calibrating confidence.\n\n"
)

_LEARNING_ACK = (
    "Understood. I will factor my historical performance and the derived lessons "
    "into direction choice and confidence calibration."
)

_TRUNCATION_MARK = "\n[... memory truncated ...]"


def build_system_prompt() -> str:
    """Return the fixed policy preamble."""
    return _SYSTEM_PROMPT


def fmt(value: float | Decimal | None, precision: int = 2) -> str:
    """Format a number with fixed precision, ``N/A`` for None."""
    if value is None:
        return "N/A"
    return f"{float(value):.{precision}f}"


def _fmt_bool(value: bool | None) -> str:
    return "N/A" if value is None else str(value).lower()


def _liquidity_section(liquidity: LiquidityContext | None) -> str:
    if liquidity is None:
        return "GLOBAL LIQUIDITY:\n  Unavailable"
    return (
        "GLOBAL LIQUIDITY:\n"
        f"  Liquidity Score: {liquidity.liquidity_score} ({liquidity.trend.value})\n"
        f"  Total Market Cap (USD): {fmt(liquidity.total_market_cap_usd, 0)}\n"
        f"  24h Volume (USD): {fmt(liquidity.volume_24h_usd, 0)}\n"
        f"  Market Cap Change 24h: {fmt(liquidity.market_cap_change_24h_pct)}%\n"
        f"  BTC Dominance: {fmt(liquidity.btc_dominance_pct)}%"
    )


def _ticker_section(ticker: Ticker) -> str:
    trades = ticker.trades_24h if ticker.trades_24h is not None else "N/A"
    return (
        "TICKER:\n"
        f"  Price: {fmt(ticker.price)}\n"
        f"  24h Change: {fmt(ticker.change_24h)}%\n"
        f"  24h High: {fmt(ticker.high_24h)}\n"
        f"  24h Low: {fmt(ticker.low_24h)}\n"
        f"  24h Volume: {fmt(ticker.volume_24h)}\n"
        f"  VWAP 24h: {fmt(ticker.vwap_24h)}\n"
        f"  Trade Count 24h: {trades}"
    )


def _order_book_section(book: OrderBook) -> str:
    return (
        "ORDER BOOK:\n"
        f"  Best Bid: {fmt(book.best_bid)}\n"
        f"  Best Ask: {fmt(book.best_ask)}\n"
        f"  Spread: {fmt(book.spread_pct, 4)}%\n"
        f"  Bid Depth: {fmt(book.bid_depth, 4)}\n"
        f"  Ask Depth: {fmt(book.ask_depth, 4)}\n"
        f"  Imbalance (bid ratio): {fmt(book.imbalance, 3)}"
    )


def _indicator_sections(ind: IndicatorSnapshot) -> list[str]:
    obv_value = f"{fmt(ind.obv.value, 0)} ({ind.obv.trend.value})"
    return [
        "TREND:\n"
        f"  EMA 20: {fmt(ind.ema.ema20)}\n"
        f"  EMA 50: {fmt(ind.ema.ema50)}\n"
        f"  EMA 200: {fmt(ind.ema.ema200)}\n"
        f"  EMA20 > EMA50: {_fmt_bool(ind.ema.ema20_above_ema50)}\n"
        f"  EMA50 > EMA200: {_fmt_bool(ind.ema.ema50_above_ema200)}",
        "MOMENTUM:\n"
        f"  RSI(14): {fmt(ind.rsi)}\n"
        f"  Stochastic %K: {fmt(ind.stochastic.k)}\n"
        f"  Stochastic %D: {fmt(ind.stochastic.d)}\n"
        f"  MACD Line: {fmt(ind.macd.line, 4)}\n"
        f"  MACD Signal: {fmt(ind.macd.signal, 4)}\n"
        f"  MACD Histogram: {fmt(ind.macd.histogram, 4)}\n"
        f"  MACD Crossover: {ind.macd_crossover.value}",
        "VOLATILITY:\n"
        f"  BB Upper: {fmt(ind.bollinger.upper)}\n"
        f"  BB Middle: {fmt(ind.bollinger.middle)}\n"
        f"  BB Lower: {fmt(ind.bollinger.lower)}\n"
        f"  BB Position: {fmt(ind.bollinger.position, 3)}\n"
        f"  ATR(14): {fmt(ind.atr)}",
        "VOLUME:\n"
        f"  OBV: {obv_value}\n"
        f"  MFI(14): {fmt(ind.mfi)}\n"
        f"  Volume Ratio (vs 20-avg): {fmt(ind.volume_ratio)}",
    ]


def build_user_prompt(pair: str, market_data: MarketData) -> str:
    """Render the current market snapshot for one pair."""
    ind = market_data.indicators
    sections = [f"=== {pair} Market Analysis Request ==="]

    sections.append(_liquidity_section(market_data.liquidity))
    if market_data.ticker is not None:
        sections.append(_ticker_section(market_data.ticker))

    trend, momentum, volatility, volume = _indicator_sections(ind)
    sections.extend([trend, momentum, volatility, volume])

    if market_data.order_book is not None:
        sections.append(_order_book_section(market_data.order_book))

    sections.append(
        "TREND STRENGTH:\n"
        f"  ADX: {fmt(ind.adx.adx)}\n"
        f"  +DI: {fmt(ind.adx.plus_di)}\n"
        f"  -DI: {fmt(ind.adx.minus_di)}"
    )
    sections.append(
        "KEY LEVELS:\n"
        f"  Support: {fmt(ind.support_resistance.support)}\n"
        f"  Resistance: {fmt(ind.support_resistance.resistance)}\n"
        f"  VWAP: {fmt(ind.vwap)}"
    )

    if ind.recent_closes:
        closes = ", ".join(fmt(c) for c in ind.recent_closes)
        sections.append(f"RECENT CLOSES (last {len(ind.recent_closes)}): {closes}")
    if ind.recent_volumes:
        volumes = ", ".join(fmt(v, 4) for v in ind.recent_volumes)
        sections.append(f"RECENT VOLUMES (last {len(ind.recent_volumes)}): {volumes}")

    return "\n\n".join(sections)


def truncate_learning_context(text: str, max_chars: int) -> str:
    """Bound the digest so it cannot crowd out the market snapshot."""
    if len(text) <= max_chars:
        return text
    keep = max(0, max_chars - len(_TRUNCATION_MARK))
    return text[:keep] + _TRUNCATION_MARK


def build_messages(
    pair: str,
    market_data: MarketData,
    learning_context: str = "",
    learning_max_chars: int = 4000,
) -> list[dict[str, str]]:
    """Build the chat-completions message list."""
    messages = [{"role": "system", "content": build_system_prompt()}]

    learning = learning_context.strip()
    if learning:
        bounded = truncate_learning_context(learning, learning_max_chars)
        messages.append({"role": "user", "content": _LEARNING_INTRO + bounded})
        messages.append({"role": "assistant", "content": _LEARNING_ACK})

    messages.append({"role": "user", "content": build_user_prompt(pair, market_data)})
    return messages
