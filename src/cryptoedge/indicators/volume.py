"""Volume indicators: On-Balance Volume, relative volume and VWAP."""

from collections.abc import Sequence

from cryptoedge.indicators.models import OBVValue, ObvTrend

#: Number of trailing OBV values the latest value is compared against.
OBV_TREND_LOOKBACK = 10


def obv_series(closes: Sequence[float], volumes: Sequence[float]) -> list[float]:
    """Cumulative signed volume: up bars add volume, down bars subtract it."""
    if not closes:
        return []
    running = 0.0
    result = [0.0]
    for i in range(1, len(closes)):
        if closes[i] > closes[i - 1]:
            running += volumes[i]
        elif closes[i] < closes[i - 1]:
            running -= volumes[i]
        result.append(running)
    return result


def obv(closes: Sequence[float], volumes: Sequence[float]) -> OBVValue:
    """Latest OBV and its trend versus the mean of the last 10 OBV values."""
    series = obv_series(closes, volumes)
    if not series:
        return OBVValue(value=0.0, trend=ObvTrend.FALLING)

    recent = series[-OBV_TREND_LOOKBACK:]
    mean = sum(recent) / len(recent)
    last = series[-1]
    return OBVValue(value=last, trend=ObvTrend.RISING if last > mean else ObvTrend.FALLING)


def volume_ratio(volumes: Sequence[float], period: int = 20) -> float | None:
    """Latest volume divided by the mean volume of the last ``period`` bars.

    Returns None with fewer than ``period`` bars or a zero mean.
    """
    if len(volumes) < period:
        return None
    average = sum(volumes[-period:]) / period
    if average <= 0:
        return None
    return volumes[-1] / average


def vwap(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    volumes: Sequence[float],
) -> float | None:
    """Volume-weighted average of the typical price (high + low + close) / 3.

    Returns None on empty input or zero total volume.
    """
    total_volume = sum(volumes)
    if not closes or total_volume <= 0:
        return None
    weighted = sum(
        (high + low + close) / 3 * volume
        for high, low, close, volume in zip(highs, lows, closes, volumes)
    )
    return weighted / total_volume
