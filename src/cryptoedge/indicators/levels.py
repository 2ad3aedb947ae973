"""Support and resistance from swing highs/lows."""

from collections.abc import Sequence

from cryptoedge.indicators.models import SupportResistance

#: Bars on each side a swing point must beat.
_SWING_WING = 2
#: Only the most recent swings count toward the reported level.
_RECENT_SWINGS = 3


def support_resistance(
    highs: Sequence[float],
    lows: Sequence[float],
    lookback: int = 50,
) -> SupportResistance:
    """Find key levels from local extrema in the last ``lookback`` bars.

    A swing high is strictly higher than the two bars on either side (a 5-bar
    window); a swing low is strictly lower. Resistance is the highest of the
    last three swing highs, support the lowest of the last three swing lows.
    Either side is None when no swing was found.
    """
    recent_highs = list(highs[-lookback:])
    recent_lows = list(lows[-lookback:])

    swing_highs: list[float] = []
    swing_lows: list[float] = []

    for i in range(_SWING_WING, len(recent_highs) - _SWING_WING):
        neighbours = [j for j in range(i - _SWING_WING, i + _SWING_WING + 1) if j != i]
        if all(recent_highs[i] > recent_highs[j] for j in neighbours):
            swing_highs.append(recent_highs[i])
        if all(recent_lows[i] < recent_lows[j] for j in neighbours):
            swing_lows.append(recent_lows[i])

    return SupportResistance(
        support=min(swing_lows[-_RECENT_SWINGS:]) if swing_lows else None,
        resistance=max(swing_highs[-_RECENT_SWINGS:]) if swing_highs else None,
    )
