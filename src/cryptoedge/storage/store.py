"""Typed SQLite read/write abstraction for generated signals.

Provides SignalStore with typed methods for inserting signals and querying
the latest signal per pair, per-pair history, and the signal that was
active at a given instant. All SQL is isolated behind this interface.
"""

import json
import sqlite3

import aiosqlite

from cryptoedge.exceptions import StorageError
from cryptoedge.logging import get_logger
from cryptoedge.models import Direction, LiquidityTrend, RiskLevel, Sentiment, Signal
from cryptoedge.storage.database import SignalDatabase

logger = get_logger(__name__)

_SIGNAL_COLUMNS = (
    "pair",
    "direction",
    "confidence",
    "price_at_signal",
    "rsi",
    "macd",
    "macd_signal",
    "bb_upper",
    "bb_lower",
    "market_sentiment",
    "risk_level",
    "suggested_entry",
    "suggested_stop_loss",
    "suggested_take_profit",
    "analysis_text",
    "key_factors",
    "technical_summary",
    "model_version",
    "token_usage",
    "analysis_source",
    "liquidity_score",
    "liquidity_trend",
    "created_at_ms",
)

_SELECT_SIGNAL = "SELECT id, " + ", ".join(_SIGNAL_COLUMNS) + " FROM signals"


def _signal_params(signal: Signal) -> tuple:
    return (
        signal.pair,
        signal.direction.value,
        signal.confidence,
        signal.price_at_signal,
        signal.rsi,
        signal.macd,
        signal.macd_signal,
        signal.bb_upper,
        signal.bb_lower,
        signal.market_sentiment.value,
        signal.risk_level.value,
        signal.suggested_entry,
        signal.suggested_stop_loss,
        signal.suggested_take_profit,
        signal.analysis_text,
        json.dumps(signal.key_factors),
        signal.technical_summary,
        signal.model_version,
        signal.token_usage,
        signal.analysis_source,
        signal.liquidity_score,
        signal.liquidity_trend.value if signal.liquidity_trend is not None else None,
        signal.created_at_ms,
    )


def _row_to_signal(row: aiosqlite.Row) -> Signal:
    key_factors = json.loads(row["key_factors"]) if row["key_factors"] else []
    return Signal(
        id=row["id"],
        pair=row["pair"],
        direction=Direction(row["direction"]),
        confidence=row["confidence"],
        price_at_signal=row["price_at_signal"],
        rsi=row["rsi"],
        macd=row["macd"],
        macd_signal=row["macd_signal"],
        bb_upper=row["bb_upper"],
        bb_lower=row["bb_lower"],
        market_sentiment=Sentiment(row["market_sentiment"] or "neutral"),
        risk_level=RiskLevel(row["risk_level"] or "medium"),
        suggested_entry=row["suggested_entry"],
        suggested_stop_loss=row["suggested_stop_loss"],
        suggested_take_profit=row["suggested_take_profit"],
        analysis_text=row["analysis_text"] or "",
        key_factors=key_factors,
        technical_summary=row["technical_summary"] or "",
        model_version=row["model_version"],
        token_usage=row["token_usage"],
        analysis_source=row["analysis_source"],
        liquidity_score=row["liquidity_score"],
        liquidity_trend=(
            LiquidityTrend(row["liquidity_trend"]) if row["liquidity_trend"] else None
        ),
        created_at_ms=row["created_at_ms"],
    )


class SignalStore:
    """Async SQLite store for generated signals.

    Wraps SignalDatabase with typed read/write methods. All SQL access
    goes through self._database.db (the aiosqlite Connection).

    Usage:
        async with SignalDatabase("data/cryptoedge.db") as database:
            store = SignalStore(database)
            signal_id = await store.insert_signal(signal)
    """

    def __init__(self, database: SignalDatabase) -> None:
        self._database = database

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def insert_signal(self, signal: Signal) -> int:
        """Persist one signal and return its row id.

        Sets ``signal.id`` on success.

        Raises:
            StorageError: the row could not be written.
        """
        placeholders = ", ".join("?" for _ in _SIGNAL_COLUMNS)
        try:
            cursor = await self._database.db.execute(
                f"INSERT INTO signals ({', '.join(_SIGNAL_COLUMNS)}) "
                f"VALUES ({placeholders})",
                _signal_params(signal),
            )
            await self._database.db.commit()
        except (sqlite3.Error, RuntimeError) as e:
            raise StorageError(f"failed to insert signal for {signal.pair}: {e}") from e

        signal.id = cursor.lastrowid
        logger.debug(
            "signal_inserted",
            pair=signal.pair,
            signal_id=signal.id,
            direction=signal.direction.value,
        )
        return signal.id

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def get_latest(self, pair: str) -> Signal | None:
        """Most recent signal for a pair, or None."""
        cursor = await self._database.db.execute(
            f"{_SELECT_SIGNAL} WHERE pair = ? "
            "ORDER BY created_at_ms DESC, id DESC LIMIT 1",
            (pair,),
        )
        row = await cursor.fetchone()
        return _row_to_signal(row) if row is not None else None

    async def get_latest_for_pairs(self, pairs: list[str]) -> dict[str, Signal | None]:
        """Latest signal per requested pair. Pairs without history map to None."""
        return {pair: await self.get_latest(pair) for pair in pairs}

    async def get_history(self, pair: str, limit: int = 24) -> list[Signal]:
        """Signals for a pair, newest first, at most ``limit`` rows."""
        cursor = await self._database.db.execute(
            f"{_SELECT_SIGNAL} WHERE pair = ? "
            "ORDER BY created_at_ms DESC, id DESC LIMIT ?",
            (pair, max(0, limit)),
        )
        rows = await cursor.fetchall()
        return [_row_to_signal(row) for row in rows]

    async def get_signal_at(self, pair: str, timestamp_ms: int) -> Signal | None:
        """The signal that was active at ``timestamp_ms``.

        That is the latest signal for the pair created at or before the instant.
        """
        cursor = await self._database.db.execute(
            f"{_SELECT_SIGNAL} WHERE pair = ? AND created_at_ms <= ? "
            "ORDER BY created_at_ms DESC, id DESC LIMIT 1",
            (pair, timestamp_ms),
        )
        row = await cursor.fetchone()
        return _row_to_signal(row) if row is not None else None

    async def count_signals(self) -> int:
        cursor = await self._database.db.execute("SELECT COUNT(*) FROM signals")
        return (await cursor.fetchone())[0]
