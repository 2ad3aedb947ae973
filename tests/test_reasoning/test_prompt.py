"""Tests for reasoning prompt assembly."""

from decimal import Decimal

import pytest

from cryptoedge.indicators import compute_all_indicators
from cryptoedge.models import (
    LiquidityContext,
    LiquidityTrend,
    MarketData,
    OrderBook,
    OrderBookLevel,
    Ticker,
)
from cryptoedge.reasoning.prompt import (
    build_messages,
    build_system_prompt,
    build_user_prompt,
    fmt,
    truncate_learning_context,
)


@pytest.fixture
def market_data(uptrend_candles) -> MarketData:
    return MarketData(
        indicators=compute_all_indicators(uptrend_candles),
        ticker=Ticker(
            pair="BTC/EUR",
            price=Decimal("33630.5"),
            change_24h=Decimal("2.4"),
            volume_24h=Decimal("1532.1"),
            high_24h=Decimal("33800"),
            low_24h=Decimal("32500"),
            vwap_24h=Decimal("33120.7"),
            trades_24h=18234,
        ),
        order_book=OrderBook(
            bids=[OrderBookLevel(Decimal("33630"), Decimal("1.5"))],
            asks=[OrderBookLevel(Decimal("33631"), Decimal("0.5"))],
        ),
        liquidity=LiquidityContext(
            total_market_cap_usd=2.5e12,
            volume_24h_usd=1.1e11,
            market_cap_change_24h_pct=3.1,
            btc_dominance_pct=51.2,
            liquidity_score=30,
            trend=LiquidityTrend.EXPANDING,
            fetched_at_ms=0,
        ),
    )


class TestFmt:
    """Tests for fixed-precision number formatting."""

    def test_none_is_na(self) -> None:
        assert fmt(None) == "N/A"

    def test_precision(self) -> None:
        assert fmt(1.23456, 2) == "1.23"
        assert fmt(Decimal("0.5"), 4) == "0.5000"


class TestBuildUserPrompt:
    """Tests for the market snapshot section."""

    def test_sections_present_in_order(self, market_data) -> None:
        prompt = build_user_prompt("BTC/EUR", market_data)
        headings = [
            "=== BTC/EUR Market Analysis Request ===",
            "GLOBAL LIQUIDITY:",
            "TICKER:",
            "TREND:",
            "MOMENTUM:",
            "VOLATILITY:",
            "VOLUME:",
            "ORDER BOOK:",
            "TREND STRENGTH:",
            "KEY LEVELS:",
            "RECENT CLOSES (last 12):",
        ]
        positions = [prompt.index(h) for h in headings]
        assert positions == sorted(positions)

    def test_missing_values_render_na(self, market_data) -> None:
        """EMA 200 needs 200 bars; 60 were supplied."""
        prompt = build_user_prompt("BTC/EUR", market_data)
        assert "EMA 200: N/A" in prompt
        assert "EMA50 > EMA200: N/A" in prompt

    def test_liquidity_unavailable(self, market_data) -> None:
        market_data.liquidity = None
        prompt = build_user_prompt("BTC/EUR", market_data)
        assert "GLOBAL LIQUIDITY:\n  Unavailable" in prompt

    def test_optional_sections_omitted(self, market_data) -> None:
        market_data.ticker = None
        market_data.order_book = None
        prompt = build_user_prompt("BTC/EUR", market_data)
        assert "TICKER:" not in prompt
        assert "ORDER BOOK:" not in prompt

    def test_liquidity_score_rendered(self, market_data) -> None:
        prompt = build_user_prompt("BTC/EUR", market_data)
        assert "Liquidity Score: 30 (expanding)" in prompt


class TestBuildMessages:
    """Tests for the chat message list."""

    def test_without_learning(self, market_data) -> None:
        messages = build_messages("BTC/EUR", market_data)
        assert [m["role"] for m in messages] == ["system", "user"]
        assert messages[0]["content"] == build_system_prompt()

    def test_learning_injected_as_prior_turn(self, market_data) -> None:
        messages = build_messages("BTC/EUR", market_data, learning_context="# Memory\n- lesson")
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert "# Memory" in messages[1]["content"]
        assert "BTC/EUR Market Analysis Request" in messages[3]["content"]

    def test_whitespace_learning_ignored(self, market_data) -> None:
        messages = build_messages("BTC/EUR", market_data, learning_context="  \n ")
        assert len(messages) == 2

    def test_learning_bounded(self, market_data) -> None:
        messages = build_messages(
            "BTC/EUR", market_data, learning_context="x" * 10_000, learning_max_chars=500
        )
        assert messages[1]["content"].count("x") < 500

    def test_system_prompt_declares_scores(self) -> None:
        system = build_system_prompt()
        assert '"long_score"' in system
        assert '"short_score"' in system


class TestTruncateLearningContext:
    """Tests for digest truncation."""

    def test_short_text_untouched(self) -> None:
        assert truncate_learning_context("abc", 10) == "abc"

    def test_long_text_truncated_to_limit(self) -> None:
        result = truncate_learning_context("y" * 1000, 200)
        assert len(result) == 200
        assert result.startswith("yyy")
        assert result.endswith("truncated ...]")
