"""Per-pair signal generation.

One call to ``generate_signal`` runs the full pipeline for a single pair:

  1. FETCH: candles, ticker and order book from the exchange (concurrently)
  2. INDICATORS: compute the indicator snapshot from the candles
  3. CONTEXT: macro liquidity (cached, may be None) and the learning digest
  4. REASON: ask the reasoning model for a validated analysis
  5. PERSIST: store the resulting Signal

Any exception aborts this pair only; the scheduler decides what to do with it.
"""

import asyncio
import time
from collections.abc import Callable

from cryptoedge.config import AppSettings
from cryptoedge.exchange.client import MarketDataClient
from cryptoedge.indicators import IndicatorSnapshot, compute_all_indicators
from cryptoedge.learning import LearningMemory
from cryptoedge.liquidity import LiquidityService
from cryptoedge.logging import get_logger
from cryptoedge.models import LiquidityContext, MarketData, Signal
from cryptoedge.reasoning.client import ReasoningClient
from cryptoedge.reasoning.validation import AnalysisResult
from cryptoedge.storage.store import SignalStore

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def build_signal(
    pair: str,
    analysis: AnalysisResult,
    indicators: IndicatorSnapshot,
    liquidity: LiquidityContext | None,
    created_at_ms: int,
) -> Signal:
    """Combine a validated analysis with the indicator state it was based on."""
    return Signal(
        pair=pair,
        direction=analysis.direction,
        confidence=analysis.confidence,
        price_at_signal=indicators.price,
        market_sentiment=analysis.market_sentiment,
        risk_level=analysis.risk_level,
        suggested_entry=analysis.suggested_entry,
        suggested_stop_loss=analysis.suggested_stop_loss,
        suggested_take_profit=analysis.suggested_take_profit,
        rsi=indicators.rsi,
        macd=indicators.macd.line,
        macd_signal=indicators.macd.signal,
        bb_upper=indicators.bollinger.upper,
        bb_lower=indicators.bollinger.lower,
        analysis_text=analysis.analysis,
        key_factors=list(analysis.key_factors),
        technical_summary=analysis.technical_summary,
        model_version=analysis.model_version,
        token_usage=analysis.token_usage,
        analysis_source="llm",
        liquidity_score=liquidity.liquidity_score if liquidity is not None else None,
        liquidity_trend=liquidity.trend if liquidity is not None else None,
        created_at_ms=created_at_ms,
    )


class SignalGenerator:
    """Runs the generation pipeline for one pair at a time.

    Args:
        settings: Application-wide settings.
        market_client: Exchange market data client.
        liquidity: Macro liquidity service.
        reasoning: Reasoning model client.
        learning: Learning memory providing the prompt digest.
        store: Signal persistence.
        clock: Millisecond wall clock, injectable for tests.
    """

    def __init__(
        self,
        settings: AppSettings,
        market_client: MarketDataClient,
        liquidity: LiquidityService,
        reasoning: ReasoningClient,
        learning: LearningMemory,
        store: SignalStore,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._settings = settings
        self._market_client = market_client
        self._liquidity = liquidity
        self._reasoning = reasoning
        self._learning = learning
        self._store = store
        self._clock = clock

    async def generate_signal(self, pair: str) -> Signal:
        """Generate, persist and return a fresh signal for ``pair``.

        Raises:
            UpstreamFetchError: exchange data could not be fetched.
            InsufficientHistory: too few candles for the indicators.
            ReasoningUnavailable, ReasoningTimeout, InvalidReasoningOutput:
                the reasoning step failed.
            StorageError: the signal could not be persisted.
        """
        exchange = self._settings.exchange
        candles, ticker, order_book = await asyncio.gather(
            self._market_client.fetch_candles(pair, exchange.candle_interval_minutes),
            self._market_client.fetch_ticker(pair),
            self._market_client.fetch_order_book(pair, exchange.order_book_depth),
        )

        indicators = compute_all_indicators(candles)
        liquidity = await self._liquidity.fetch_liquidity_context()
        market_data = MarketData(
            indicators=indicators,
            ticker=ticker,
            order_book=order_book,
            liquidity=liquidity,
        )

        analysis = await self._reasoning.analyze(
            pair,
            market_data,
            learning_context=self._learning.get_context(),
        )

        signal = build_signal(pair, analysis, indicators, liquidity, self._clock())
        await self._store.insert_signal(signal)

        logger.info(
            "signal_generated",
            pair=pair,
            signal_id=signal.id,
            direction=signal.direction.value,
            confidence=signal.confidence,
            overridden=analysis.direction_overridden,
            liquidity_score=signal.liquidity_score,
        )
        return signal
