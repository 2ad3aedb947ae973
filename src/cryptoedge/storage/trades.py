"""Read-only feed of closed paper trades.

The trades table belongs to the paper-trading subsystem. The signal engine
only reads closed outcomes from it to build the learning digest.
"""

from abc import ABC, abstractmethod

from cryptoedge.logging import get_logger
from cryptoedge.models import ClosedTradeRecord, Direction
from cryptoedge.storage.database import SignalDatabase

logger = get_logger(__name__)


class TradeFeed(ABC):
    """Source of closed trade outcomes."""

    @abstractmethod
    async def get_closed_trades(self) -> list[ClosedTradeRecord]:
        """Return every closed trade with a realised P&L, most recently closed first."""
        ...


class SqliteTradeFeed(TradeFeed):
    """TradeFeed backed by the shared ``trades`` table."""

    def __init__(self, database: SignalDatabase) -> None:
        self._database = database

    async def get_closed_trades(self) -> list[ClosedTradeRecord]:
        cursor = await self._database.db.execute(
            "SELECT pair, direction, pnl, created_at_ms, closed_at_ms, confidence "
            "FROM trades WHERE status = 'closed' AND pnl IS NOT NULL "
            "ORDER BY closed_at_ms DESC, id DESC"
        )
        rows = await cursor.fetchall()

        trades = []
        for row in rows:
            try:
                direction = Direction(row["direction"])
            except ValueError:
                logger.warning("trade_direction_unknown", pair=row["pair"], direction=row["direction"])
                continue
            trades.append(
                ClosedTradeRecord(
                    pair=row["pair"],
                    direction=direction,
                    pnl=float(row["pnl"]),
                    entry_time_ms=row["created_at_ms"],
                    closed_at_ms=row["closed_at_ms"] or row["created_at_ms"],
                    confidence=row["confidence"],
                )
            )
        return trades
