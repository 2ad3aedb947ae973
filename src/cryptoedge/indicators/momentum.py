"""Momentum oscillators: RSI, MACD, Stochastic and MFI.

All functions are pure and never raise on short input; positions without
enough history are None.
"""

from collections.abc import Sequence

from cryptoedge.indicators.averages import ema, sma
from cryptoedge.indicators.models import MACDSeries, StochasticValue


def rsi(closes: Sequence[float], period: int = 14) -> list[float | None]:
    """Compute the Relative Strength Index with Wilder smoothing.

    The first average gain/loss is the mean of the first ``period`` price
    changes; afterwards each average is smoothed as
    ``(prev * (period - 1) + current) / period``. When the average loss is
    zero the RSI is 100.

    Returns:
        List aligned with ``closes``; indexes 0..period-1 are None.
    """
    result: list[float | None] = []
    avg_gain = 0.0
    avg_loss = 0.0

    for i in range(len(closes)):
        if i == 0:
            result.append(None)
            continue

        change = closes[i] - closes[i - 1]
        gain = change if change > 0 else 0.0
        loss = -change if change < 0 else 0.0

        if i <= period:
            avg_gain += gain / period
            avg_loss += loss / period
            if i < period:
                result.append(None)
                continue
        else:
            avg_gain = (avg_gain * (period - 1) + gain) / period
            avg_loss = (avg_loss * (period - 1) + loss) / period

        if avg_loss == 0:
            result.append(100.0)
        else:
            rs = avg_gain / avg_loss
            result.append(100.0 - 100.0 / (1.0 + rs))

    return result


def macd(
    closes: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MACDSeries:
    """Compute MACD line, signal line and histogram.

    The signal EMA runs over the defined portion of the MACD line only and is
    padded with None back to the input length, so every returned list is
    index-aligned with ``closes``. The histogram is ``line - signal`` wherever
    both are defined.
    """
    ema_fast = ema(closes, fast)
    ema_slow = ema(closes, slow)

    line: list[float | None] = [
        f - s if f is not None and s is not None else None
        for f, s in zip(ema_fast, ema_slow)
    ]
    defined = [value for value in line if value is not None]
    signal_defined = ema(defined, signal)

    signal_line: list[float | None] = [None] * (len(line) - len(defined)) + signal_defined

    histogram: list[float | None] = [
        m - s if m is not None and s is not None else None
        for m, s in zip(line, signal_line)
    ]

    return MACDSeries(line=line, signal=signal_line, histogram=histogram)


def stochastic(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    k_period: int = 14,
    d_period: int = 3,
) -> StochasticValue:
    """Compute the latest Stochastic %K and %D.

    %K is the close's position within the high/low range of the last
    ``k_period`` bars (50 when the range is flat). %D is the SMA of %K.
    """
    k_values: list[float] = []
    for i in range(k_period - 1, len(closes)):
        highest = max(highs[i - k_period + 1 : i + 1])
        lowest = min(lows[i - k_period + 1 : i + 1])
        price_range = highest - lowest
        if price_range > 0:
            k_values.append((closes[i] - lowest) / price_range * 100.0)
        else:
            k_values.append(50.0)

    if not k_values:
        return StochasticValue()

    d_values = sma(k_values, d_period)
    return StochasticValue(k=k_values[-1], d=d_values[-1])


def mfi(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    volumes: Sequence[float],
    period: int = 14,
) -> float | None:
    """Compute the Money Flow Index (volume-weighted RSI) for the latest bar.

    Money flow is typical price times volume. A bar contributes positive flow
    when its typical price rose versus the previous bar, negative otherwise.
    Flows are summed over the trailing ``period`` bars.

    Returns:
        MFI in [0, 100], 100 when there is no negative flow, or None with
        fewer than ``period + 1`` bars.
    """
    if len(closes) < period + 1:
        return None

    typical = [(h + lo + c) / 3.0 for h, lo, c in zip(highs, lows, closes)]

    positive_flow = 0.0
    negative_flow = 0.0
    for i in range(len(closes) - period, len(closes)):
        money_flow = typical[i] * volumes[i]
        if typical[i] > typical[i - 1]:
            positive_flow += money_flow
        else:
            negative_flow += money_flow

    if negative_flow <= 0:
        return 100.0
    ratio = positive_flow / negative_flow
    return 100.0 - 100.0 / (1.0 + ratio)
