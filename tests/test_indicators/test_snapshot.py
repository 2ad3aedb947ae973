"""Tests for compute_all_indicators.

Property-style checks over several candle shapes: bounded oscillators,
ordered bands, undefined long lookbacks, and the minimum-history guard.
"""

import math
from dataclasses import replace
from decimal import Decimal

import pytest

from cryptoedge.exceptions import InsufficientHistory
from cryptoedge.indicators import MIN_CANDLES, compute_all_indicators
from cryptoedge.indicators.models import MacdCrossover


def _shapes(n: int) -> dict[str, list[float]]:
    return {
        "uptrend": [100.0 + i * 0.8 + (0.5 if i % 2 else -0.5) for i in range(n)],
        "downtrend": [200.0 - i * 0.9 + (0.4 if i % 3 else -0.4) for i in range(n)],
        "wave": [100.0 + 12.0 * math.sin(i / 5.0) for i in range(n)],
        "flat": [100.0] * n,
    }


class TestComputeAllIndicators:
    """Tests for the snapshot entry point."""

    def test_insufficient_history_raises(self, make_candles) -> None:
        candles = make_candles([100.0 + i for i in range(MIN_CANDLES - 1)])
        with pytest.raises(InsufficientHistory):
            compute_all_indicators(candles)

    def test_exactly_min_candles_is_enough(self, make_candles) -> None:
        candles = make_candles([100.0 + i for i in range(MIN_CANDLES)])
        snapshot = compute_all_indicators(candles)
        assert snapshot.price == pytest.approx(100.0 + MIN_CANDLES - 1)

    @pytest.mark.parametrize("shape", ["uptrend", "downtrend", "wave", "flat"])
    @pytest.mark.parametrize("length", [30, 60, 150])
    def test_indicator_bounds(self, make_candles, shape: str, length: int) -> None:
        """RSI in [0, 100], ADX in [0, 100] or null, bands ordered."""
        snapshot = compute_all_indicators(make_candles(_shapes(length)[shape]))

        assert snapshot.rsi is not None
        assert 0.0 <= snapshot.rsi <= 100.0

        if snapshot.adx.adx is not None:
            assert 0.0 <= snapshot.adx.adx <= 100.0

        bb = snapshot.bollinger
        if None not in (bb.upper, bb.middle, bb.lower):
            assert bb.upper >= bb.middle >= bb.lower
        if bb.position is not None:
            assert 0.0 <= bb.position <= 1.0

        if snapshot.stochastic.k is not None:
            assert 0.0 <= snapshot.stochastic.k <= 100.0
        if snapshot.mfi is not None:
            assert 0.0 <= snapshot.mfi <= 100.0

    def test_long_lookbacks_undefined_on_short_history(self, uptrend_candles) -> None:
        """60 bars: EMA50 defined, EMA200 not."""
        snapshot = compute_all_indicators(uptrend_candles)
        assert snapshot.ema.ema50 is not None
        assert snapshot.ema.ema200 is None
        assert snapshot.ema.ema50_above_ema200 is None

    def test_uptrend_snapshot(self, uptrend_candles) -> None:
        snapshot = compute_all_indicators(uptrend_candles)
        assert snapshot.ema.ema20_above_ema50 is True
        assert snapshot.macd.line is not None
        assert snapshot.macd.line > 0
        assert snapshot.macd.histogram == pytest.approx(
            snapshot.macd.line - snapshot.macd.signal
        )
        assert snapshot.adx.adx is not None

    def test_flat_series_has_degenerate_bands(self, make_candles) -> None:
        snapshot = compute_all_indicators(make_candles([100.0] * 40))
        assert snapshot.bollinger.position is None
        assert snapshot.macd_crossover == MacdCrossover.NONE

    def test_recent_bars_passed_through(self, uptrend_candles, uptrend_closes) -> None:
        snapshot = compute_all_indicators(uptrend_candles)
        assert snapshot.recent_closes == pytest.approx(uptrend_closes[-12:])
        assert len(snapshot.recent_volumes) == 12

    def test_vwap_computed_from_typical_price(self, uptrend_candles) -> None:
        snapshot = compute_all_indicators(uptrend_candles)
        weighted = sum(
            (float(c.high) + float(c.low) + float(c.close)) / 3 * float(c.volume)
            for c in uptrend_candles
        )
        total = sum(float(c.volume) for c in uptrend_candles)
        assert snapshot.vwap == pytest.approx(weighted / total)
        assert float(uptrend_candles[0].low) < snapshot.vwap < float(uptrend_candles[-1].high)

    def test_vwap_taken_from_last_candle_when_supplied(self, uptrend_candles) -> None:
        candles = list(uptrend_candles)
        candles[-1] = replace(candles[-1], vwap=Decimal("123.45"))
        snapshot = compute_all_indicators(candles)
        assert snapshot.vwap == 123.45

    def test_to_dict_is_json_friendly(self, uptrend_candles) -> None:
        data = compute_all_indicators(uptrend_candles).to_dict()
        assert data["obv"]["trend"] in ("rising", "falling")
        assert data["macd_crossover"] in ("bullish", "bearish", "none")
