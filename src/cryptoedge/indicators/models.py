"""Indicator result models.

Series helpers return ``list[float | None]`` aligned with their input; the
bundles below hold the point-in-time values assembled into an
IndicatorSnapshot for one pair.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum


class ObvTrend(str, Enum):
    """On-balance-volume direction relative to its recent mean."""

    RISING = "rising"
    FALLING = "falling"


class MacdCrossover(str, Enum):
    """MACD line vs signal line crossover on the most recent bar."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    NONE = "none"


@dataclass
class MACDSeries:
    """Full MACD series, index-aligned with the input closes."""

    line: list[float | None]
    signal: list[float | None]
    histogram: list[float | None]


@dataclass
class BollingerSeries:
    """Full Bollinger band series, index-aligned with the input closes."""

    upper: list[float | None]
    middle: list[float | None]
    lower: list[float | None]


@dataclass
class MACDValue:
    line: float | None = None
    signal: float | None = None
    histogram: float | None = None


@dataclass
class BollingerValue:
    upper: float | None = None
    middle: float | None = None
    lower: float | None = None
    position: float | None = None  # 0 = lower band, 1 = upper band


@dataclass
class EMAValue:
    ema20: float | None = None
    ema50: float | None = None
    ema200: float | None = None
    ema20_above_ema50: bool | None = None
    ema50_above_ema200: bool | None = None


@dataclass
class ADXValue:
    """ADX with directional indicators. All None is the null bundle."""

    adx: float | None = None
    plus_di: float | None = None
    minus_di: float | None = None


@dataclass
class StochasticValue:
    k: float | None = None
    d: float | None = None


@dataclass
class OBVValue:
    value: float
    trend: ObvTrend


@dataclass
class SupportResistance:
    support: float | None = None
    resistance: float | None = None


@dataclass
class IndicatorSnapshot:
    """Point-in-time technical state for one pair."""

    price: float
    rsi: float | None
    macd: MACDValue
    bollinger: BollingerValue
    ema: EMAValue
    adx: ADXValue
    stochastic: StochasticValue
    atr: float | None
    obv: OBVValue
    mfi: float | None
    volume_ratio: float | None
    support_resistance: SupportResistance
    vwap: float | None
    macd_crossover: MacdCrossover = MacdCrossover.NONE
    recent_closes: list[float] = field(default_factory=list)
    recent_volumes: list[float] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["obv"]["trend"] = self.obv.trend.value
        data["macd_crossover"] = self.macd_crossover.value
        return data
