"""Assemble a full IndicatorSnapshot from a candle sequence.

This is the single entry point the signal generator uses. Candle prices
arrive as Decimal and are converted to float here, once; every indicator
below works in float.
"""

from collections.abc import Sequence

from cryptoedge.exceptions import InsufficientHistory
from cryptoedge.indicators.averages import ema
from cryptoedge.indicators.levels import support_resistance
from cryptoedge.indicators.models import (
    BollingerValue,
    EMAValue,
    IndicatorSnapshot,
    MacdCrossover,
    MACDValue,
)
from cryptoedge.indicators.momentum import macd, mfi, rsi, stochastic
from cryptoedge.indicators.volatility import adx, atr, bollinger_bands
from cryptoedge.indicators.volume import obv, volume_ratio, vwap
from cryptoedge.models import Candle

#: Shortest history that yields the core indicators plus a MACD crossover check.
MIN_CANDLES = 30

#: Bars of raw price action passed through to the prompt.
RECENT_BARS = 12


def _last(series: list[float | None]) -> float | None:
    return series[-1] if series else None


def _crossover(line: list[float | None], signal: list[float | None]) -> MacdCrossover:
    """Detect a MACD/signal cross between the previous bar and the latest one."""
    if len(line) < 2:
        return MacdCrossover.NONE
    prev_line, prev_signal = line[-2], signal[-2]
    cur_line, cur_signal = line[-1], signal[-1]
    if None in (prev_line, prev_signal, cur_line, cur_signal):
        return MacdCrossover.NONE
    if prev_line < prev_signal and cur_line > cur_signal:
        return MacdCrossover.BULLISH
    if prev_line > prev_signal and cur_line < cur_signal:
        return MacdCrossover.BEARISH
    return MacdCrossover.NONE


def _band_position(price: float, upper: float | None, lower: float | None) -> float | None:
    """Relative price position inside the bands, clamped to [0, 1].

    None when the bands are undefined or degenerate (upper == lower).
    """
    if upper is None or lower is None or upper == lower:
        return None
    position = (price - lower) / (upper - lower)
    return min(1.0, max(0.0, position))


def _above(a: float | None, b: float | None) -> bool | None:
    if a is None or b is None:
        return None
    return a > b


def compute_all_indicators(candles: Sequence[Candle]) -> IndicatorSnapshot:
    """Compute every indicator for the latest bar of ``candles``.

    Args:
        candles: OHLCV candles sorted by timestamp ascending.

    Returns:
        IndicatorSnapshot for the last candle. Indicators whose lookback
        exceeds the history (e.g. EMA 200 on 60 bars) are None.

    Raises:
        InsufficientHistory: fewer than MIN_CANDLES candles supplied.
    """
    if len(candles) < MIN_CANDLES:
        raise InsufficientHistory(
            f"need at least {MIN_CANDLES} candles, got {len(candles)}"
        )

    closes = [float(c.close) for c in candles]
    highs = [float(c.high) for c in candles]
    lows = [float(c.low) for c in candles]
    volumes = [float(c.volume) for c in candles]
    price = closes[-1]

    macd_series = macd(closes, 12, 26, 9)
    bands = bollinger_bands(closes, 20, 2.0)
    bb_upper, bb_middle, bb_lower = _last(bands.upper), _last(bands.middle), _last(bands.lower)

    ema20 = _last(ema(closes, 20))
    ema50 = _last(ema(closes, 50))
    ema200 = _last(ema(closes, 200))

    last_vwap = candles[-1].vwap
    session_vwap = float(last_vwap) if last_vwap is not None else vwap(highs, lows, closes, volumes)

    return IndicatorSnapshot(
        price=price,
        rsi=_last(rsi(closes, 14)),
        macd=MACDValue(
            line=_last(macd_series.line),
            signal=_last(macd_series.signal),
            histogram=_last(macd_series.histogram),
        ),
        bollinger=BollingerValue(
            upper=bb_upper,
            middle=bb_middle,
            lower=bb_lower,
            position=_band_position(price, bb_upper, bb_lower),
        ),
        ema=EMAValue(
            ema20=ema20,
            ema50=ema50,
            ema200=ema200,
            ema20_above_ema50=_above(ema20, ema50),
            ema50_above_ema200=_above(ema50, ema200),
        ),
        adx=adx(highs, lows, closes, 14),
        stochastic=stochastic(highs, lows, closes, 14, 3),
        atr=atr(highs, lows, closes, 14),
        obv=obv(closes, volumes),
        mfi=mfi(highs, lows, closes, volumes, 14),
        volume_ratio=volume_ratio(volumes, 20),
        support_resistance=support_resistance(highs, lows, 50),
        vwap=session_vwap,
        macd_crossover=_crossover(macd_series.line, macd_series.signal),
        recent_closes=closes[-RECENT_BARS:],
        recent_volumes=volumes[-RECENT_BARS:],
    )
