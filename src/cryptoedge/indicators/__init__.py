"""Technical indicator engine.

Pure, stateless transforms over candle data: moving averages, momentum
oscillators, volatility bands, trend strength, volume flow and key levels,
plus ``compute_all_indicators`` which assembles them into one snapshot.
"""

from cryptoedge.indicators.averages import ema, sma
from cryptoedge.indicators.levels import support_resistance
from cryptoedge.indicators.models import IndicatorSnapshot, MacdCrossover, ObvTrend
from cryptoedge.indicators.momentum import macd, mfi, rsi, stochastic
from cryptoedge.indicators.snapshot import MIN_CANDLES, compute_all_indicators
from cryptoedge.indicators.volatility import adx, atr, bollinger_bands, true_range
from cryptoedge.indicators.volume import obv, obv_series, volume_ratio, vwap

__all__ = [
    "IndicatorSnapshot",
    "MIN_CANDLES",
    "MacdCrossover",
    "ObvTrend",
    "adx",
    "atr",
    "bollinger_bands",
    "compute_all_indicators",
    "ema",
    "macd",
    "mfi",
    "obv",
    "obv_series",
    "rsi",
    "sma",
    "stochastic",
    "support_resistance",
    "true_range",
    "volume_ratio",
    "vwap",
]
