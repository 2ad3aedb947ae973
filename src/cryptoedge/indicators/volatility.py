"""Volatility and trend-strength indicators: Bollinger Bands, ATR and ADX."""

import math
from collections.abc import Sequence

from cryptoedge.indicators.averages import sma
from cryptoedge.indicators.models import ADXValue, BollingerSeries


def bollinger_bands(
    closes: Sequence[float],
    period: int = 20,
    std_dev: float = 2.0,
) -> BollingerSeries:
    """Compute Bollinger Bands: SMA ± ``std_dev`` population standard deviations.

    Upper >= middle >= lower holds at every defined index.
    """
    middle = sma(closes, period)
    upper: list[float | None] = []
    lower: list[float | None] = []

    for i, mean in enumerate(middle):
        if mean is None:
            upper.append(None)
            lower.append(None)
            continue
        window = closes[i - period + 1 : i + 1]
        variance = sum((value - mean) ** 2 for value in window) / period
        std = math.sqrt(variance)
        upper.append(mean + std_dev * std)
        lower.append(mean - std_dev * std)

    return BollingerSeries(upper=upper, middle=middle, lower=lower)


def true_range(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
) -> list[float]:
    """True range for bars 1..n-1 (bar 0 has no previous close).

    TR = max(high - low, |high - prev_close|, |low - prev_close|)
    """
    return [
        max(
            highs[i] - lows[i],
            abs(highs[i] - closes[i - 1]),
            abs(lows[i] - closes[i - 1]),
        )
        for i in range(1, len(closes))
    ]


def _wilder(values: Sequence[float], period: int) -> float:
    """Wilder-smoothed average: seed with the mean of the first ``period`` values."""
    smoothed = sum(values[:period]) / period
    for value in values[period:]:
        smoothed = (smoothed * (period - 1) + value) / period
    return smoothed


def atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> float | None:
    """Compute the latest Average True Range with Wilder smoothing.

    Returns None with fewer than ``period + 1`` bars.
    """
    if len(closes) < period + 1:
        return None
    return _wilder(true_range(highs, lows, closes), period)


def adx(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> ADXValue:
    """Compute the latest ADX, +DI and -DI.

    True range and directional movement are Wilder-smoothed; DX is derived
    per bar from the DIs, and ADX is the Wilder-smoothed DX.

    Returns:
        The null bundle (all None) with fewer than ``period + 1`` bars, or
        when fewer than ``period`` DX values are available to seed ADX.
    """
    if len(closes) < period + 1:
        return ADXValue()

    trs = true_range(highs, lows, closes)
    plus_dms: list[float] = []
    minus_dms: list[float] = []
    for i in range(1, len(closes)):
        up_move = highs[i] - highs[i - 1]
        down_move = lows[i - 1] - lows[i]
        plus_dms.append(up_move if up_move > down_move and up_move > 0 else 0.0)
        minus_dms.append(down_move if down_move > up_move and down_move > 0 else 0.0)

    smooth_tr = sum(trs[:period]) / period
    smooth_plus = sum(plus_dms[:period]) / period
    smooth_minus = sum(minus_dms[:period]) / period

    dx_values: list[float] = []
    for i in range(period, len(trs)):
        smooth_tr = (smooth_tr * (period - 1) + trs[i]) / period
        smooth_plus = (smooth_plus * (period - 1) + plus_dms[i]) / period
        smooth_minus = (smooth_minus * (period - 1) + minus_dms[i]) / period

        plus_di = smooth_plus / smooth_tr * 100.0 if smooth_tr > 0 else 0.0
        minus_di = smooth_minus / smooth_tr * 100.0 if smooth_tr > 0 else 0.0
        di_sum = plus_di + minus_di
        dx_values.append(abs(plus_di - minus_di) / di_sum * 100.0 if di_sum > 0 else 0.0)

    if len(dx_values) < period:
        return ADXValue()

    adx_value = _wilder(dx_values, period)
    plus_di = smooth_plus / smooth_tr * 100.0 if smooth_tr > 0 else 0.0
    minus_di = smooth_minus / smooth_tr * 100.0 if smooth_tr > 0 else 0.0

    return ADXValue(adx=adx_value, plus_di=plus_di, minus_di=minus_di)
