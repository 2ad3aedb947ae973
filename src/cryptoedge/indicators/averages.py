"""Simple and exponential moving averages.

Both return a list aligned with the input where the first ``period - 1``
positions are None. Neither raises on short input: a series shorter than
``period`` yields all None.
"""

from collections.abc import Sequence


def sma(values: Sequence[float], period: int) -> list[float | None]:
    """Compute the Simple Moving Average over a sliding window.

    Args:
        values: Ordered values (oldest first).
        period: Window length.

    Returns:
        List of SMA values, same length as input, None before the first full window.
    """
    result: list[float | None] = []
    for i in range(len(values)):
        if i < period - 1:
            result.append(None)
            continue
        result.append(sum(values[i - period + 1 : i + 1]) / period)
    return result


def ema(values: Sequence[float], period: int) -> list[float | None]:
    """Compute the Exponential Moving Average.

    Uses the standard recursive formula:
        alpha = 2 / (period + 1)
        EMA_t = alpha * value_t + (1 - alpha) * EMA_{t-1}

    The first EMA value (index ``period - 1``) is seeded with the SMA of the
    first ``period`` values rather than the first raw value, so early
    outputs are not dominated by a single bar.

    Args:
        values: Ordered values (oldest first).
        period: Number of periods for smoothing.

    Returns:
        List of EMA values, same length as input, None before the seed.
    """
    if len(values) < period:
        return [None] * len(values)

    alpha = 2.0 / (period + 1)
    result: list[float | None] = [None] * (period - 1)

    prev = sum(values[:period]) / period
    result.append(prev)
    for value in values[period:]:
        prev = (value - prev) * alpha + prev
        result.append(prev)

    return result
