"""Learning memory: a performance digest built from closed trade outcomes.

Every rebuild joins all closed trades against the signal that was active
when each trade was opened, aggregates win rates along several axes, derives
a few threshold-triggered lessons and writes the result as a markdown digest.
The digest is regenerated wholesale and replaced atomically on disk, so a
concurrent reader sees either the previous version or the new one.

``get_context()`` is what the reasoning prompt consumes. It never raises.
"""

import asyncio
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from cryptoedge.logging import get_logger
from cryptoedge.models import ClosedTradeRecord, Direction
from cryptoedge.storage.store import SignalStore
from cryptoedge.storage.trades import TradeFeed

logger = get_logger(__name__)

PLACEHOLDER_DIGEST = "# Agent Learning Memory\n\nNo closed trades yet. No patterns to learn from.\n"

RECENT_TRADES = 10

#: Minimum trades in a bucket before a lesson may be drawn from it.
MIN_LESSON_SAMPLES = 3
#: Win-rate gap (percentage points) that makes one direction "significantly" better.
DIRECTION_EDGE_PCT = 15.0

RSI_OVERSOLD = 30.0
RSI_OVERBOUGHT = 70.0

_RSI_ZONES = ("oversold", "neutral", "overbought")
_CONFIDENCE_BUCKETS = ("low", "mid", "high")
_CONFIDENCE_LABELS = {"low": "<50%", "mid": "50-70%", "high": ">70%"}

_NO_LESSONS = "- Not enough data yet to derive lessons. Need at least 3 trades per category."


@dataclass
class BucketStats:
    """Win/loss tally for one slice of the trade history."""

    wins: int = 0
    losses: int = 0
    pnl: float = 0.0

    @property
    def total(self) -> int:
        return self.wins + self.losses

    @property
    def win_rate(self) -> float:
        """Win rate in percent, 0 for an empty bucket."""
        return self.wins / self.total * 100 if self.total else 0.0

    def add(self, pnl: float) -> None:
        if pnl > 0:
            self.wins += 1
        else:
            self.losses += 1
        self.pnl += pnl


@dataclass
class JoinedTrade:
    """A closed trade with the indicator state of the signal active at its entry."""

    trade: ClosedTradeRecord
    rsi: float | None = None
    signal_confidence: float | None = None

    @property
    def confidence(self) -> float | None:
        """Signal confidence, falling back to the confidence stored on the trade."""
        if self.signal_confidence is not None:
            return self.signal_confidence
        return self.trade.confidence


@dataclass
class PerformanceStats:
    """Aggregated outcome statistics over all closed trades."""

    overall: BucketStats = field(default_factory=BucketStats)
    by_pair: dict[str, BucketStats] = field(default_factory=dict)
    by_direction: dict[Direction, BucketStats] = field(
        default_factory=lambda: {Direction.LONG: BucketStats(), Direction.SHORT: BucketStats()}
    )
    by_rsi_zone: dict[str, BucketStats] = field(
        default_factory=lambda: {zone: BucketStats() for zone in _RSI_ZONES}
    )
    by_confidence: dict[str, BucketStats] = field(
        default_factory=lambda: {bucket: BucketStats() for bucket in _CONFIDENCE_BUCKETS}
    )
    recent: list[JoinedTrade] = field(default_factory=list)

    @property
    def total_trades(self) -> int:
        return self.overall.total


@dataclass
class LearningDigest:
    """One generated digest: rendered text plus the stats behind it."""

    text: str
    total_trades: int
    win_rate: float
    generated_at: datetime
    stats: PerformanceStats = field(default_factory=PerformanceStats)
    lessons: list[str] = field(default_factory=list)


def rsi_zone(rsi: float) -> str:
    if rsi < RSI_OVERSOLD:
        return "oversold"
    if rsi > RSI_OVERBOUGHT:
        return "overbought"
    return "neutral"


def confidence_bucket(confidence: float) -> str:
    if confidence < 50:
        return "low"
    if confidence < 70:
        return "mid"
    return "high"


def compute_stats(joined: list[JoinedTrade]) -> PerformanceStats:
    """Aggregate joined trades. Input is expected most recently closed first."""
    stats = PerformanceStats()
    for item in joined:
        trade = item.trade
        stats.overall.add(trade.pnl)
        stats.by_pair.setdefault(trade.pair, BucketStats()).add(trade.pnl)
        stats.by_direction.setdefault(trade.direction, BucketStats()).add(trade.pnl)
        if item.rsi is not None:
            stats.by_rsi_zone[rsi_zone(item.rsi)].add(trade.pnl)
        if item.confidence is not None:
            stats.by_confidence[confidence_bucket(item.confidence)].add(trade.pnl)
    stats.recent = joined[:RECENT_TRADES]
    return stats


def derive_lessons(stats: PerformanceStats) -> list[str]:
    """Threshold-triggered textual lessons. Empty when no threshold is met."""
    lessons = []

    long_side = stats.by_direction[Direction.LONG]
    short_side = stats.by_direction[Direction.SHORT]
    if long_side.total >= MIN_LESSON_SAMPLES and short_side.total >= MIN_LESSON_SAMPLES:
        if long_side.win_rate > short_side.win_rate + DIRECTION_EDGE_PCT:
            lessons.append(
                f"- LONG signals significantly outperform SHORT "
                f"({long_side.win_rate:.0f}% vs {short_side.win_rate:.0f}%). Favor LONG entries."
            )
        elif short_side.win_rate > long_side.win_rate + DIRECTION_EDGE_PCT:
            lessons.append(
                f"- SHORT signals significantly outperform LONG "
                f"({short_side.win_rate:.0f}% vs {long_side.win_rate:.0f}%). Favor SHORT entries."
            )

    high = stats.by_confidence["high"]
    if high.total >= MIN_LESSON_SAMPLES:
        if high.win_rate < 50:
            lessons.append(
                f"- WARNING: High confidence signals (>70%) only winning {high.win_rate:.0f}%. "
                "Model is overconfident. Raise threshold."
            )
        elif high.win_rate > 70:
            lessons.append(
                f"- High confidence signals (>70%) performing well at "
                f"{high.win_rate:.0f}% win rate. Trust them."
            )

    oversold = stats.by_rsi_zone["oversold"]
    if oversold.total >= MIN_LESSON_SAMPLES:
        if oversold.win_rate > 65:
            lessons.append(
                f"- Oversold RSI (<30) entries have {oversold.win_rate:.0f}% win rate. "
                "Good reversal signals."
            )
        elif oversold.win_rate < 35:
            lessons.append(
                f"- Oversold RSI (<30) entries only {oversold.win_rate:.0f}% win rate. "
                "Catching falling knives, avoid."
            )

    return lessons


def _signed(value: float) -> str:
    return f"{value:+.2f}"


def _bucket_line(label: str, bucket: BucketStats, with_pnl: bool = True) -> str:
    line = f"- {label}: {bucket.win_rate:.0f}% win rate ({bucket.wins}W/{bucket.losses}L)"
    if with_pnl:
        line += f", P&L: {_signed(bucket.pnl)}"
    return line


def render_digest(stats: PerformanceStats, lessons: list[str], generated_at: datetime) -> str:
    """Render the markdown digest injected into the reasoning prompt."""
    overall = stats.overall
    lines = [
        "# Agent Learning Memory",
        "",
        f"Last updated: {generated_at.isoformat(timespec='seconds')} "
        f"| Total closed trades: {overall.total}",
        "",
        "## Overall Performance",
        f"- Win rate: {overall.win_rate:.1f}% ({overall.wins}W / {overall.losses}L)",
        f"- Total P&L: {_signed(overall.pnl)}",
        "",
        "## Performance by Pair",
    ]
    lines.extend(_bucket_line(pair, bucket) for pair, bucket in stats.by_pair.items())

    lines += ["", "## Performance by Direction"]
    lines.extend(
        _bucket_line(direction.value.upper(), bucket)
        for direction, bucket in stats.by_direction.items()
        if bucket.total
    )

    lines += ["", "## Performance by RSI Zone at Entry"]
    lines.extend(
        _bucket_line(f"RSI {zone} (<30 / 30-70 / >70)", bucket, with_pnl=False)
        for zone, bucket in stats.by_rsi_zone.items()
        if bucket.total
    )

    lines += ["", "## Performance by Signal Confidence"]
    lines.extend(
        _bucket_line(f"Confidence {_CONFIDENCE_LABELS[level]}", bucket, with_pnl=False)
        for level, bucket in stats.by_confidence.items()
        if bucket.total
    )

    lines += ["", f"## Recent Trades (last {RECENT_TRADES})"]
    for item in stats.recent:
        trade = item.trade
        result = "WIN" if trade.is_win else "LOSS"
        rsi = f"{item.rsi:.0f}" if item.rsi is not None else "?"
        conf = f"{item.confidence:.0f}%" if item.confidence is not None else "?"
        lines.append(
            f"- {trade.pair} {trade.direction.value.upper()} -> {result} "
            f"({_signed(trade.pnl)}) | RSI: {rsi}, Conf: {conf}"
        )

    lines += ["", "## Key Lessons (auto-derived)"]
    lines.extend(lessons or [_NO_LESSONS])

    return "\n".join(lines) + "\n"


def write_atomic(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` through a same-directory temp file and os.replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    )
    try:
        with tmp:
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp.name, path)
    except BaseException:
        if os.path.exists(tmp.name):
            os.unlink(tmp.name)
        raise


class LearningMemory:
    """Builds and serves the performance digest.

    Args:
        store: Signal store, used to find the signal active at each trade's entry.
        trade_feed: Source of closed trades.
        path: Digest file location.
    """

    def __init__(self, store: SignalStore, trade_feed: TradeFeed, path: str | Path) -> None:
        self._store = store
        self._trade_feed = trade_feed
        self._path = Path(path)
        self._lock = asyncio.Lock()
        self._context: str | None = None
        self._last_digest: LearningDigest | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def last_digest(self) -> LearningDigest | None:
        return self._last_digest

    async def _join_trades(self, trades: list[ClosedTradeRecord]) -> list[JoinedTrade]:
        joined = []
        for trade in trades:
            signal = await self._store.get_signal_at(trade.pair, trade.entry_time_ms)
            joined.append(
                JoinedTrade(
                    trade=trade,
                    rsi=signal.rsi if signal is not None else None,
                    signal_confidence=signal.confidence if signal is not None else None,
                )
            )
        return joined

    async def rebuild(self) -> LearningDigest:
        """Regenerate the digest from every closed trade and replace the file."""
        async with self._lock:
            generated_at = datetime.now(timezone.utc)
            trades = await self._trade_feed.get_closed_trades()

            if not trades:
                digest = LearningDigest(
                    text=PLACEHOLDER_DIGEST,
                    total_trades=0,
                    win_rate=0.0,
                    generated_at=generated_at,
                )
            else:
                stats = compute_stats(await self._join_trades(trades))
                lessons = derive_lessons(stats)
                digest = LearningDigest(
                    text=render_digest(stats, lessons, generated_at),
                    total_trades=stats.total_trades,
                    win_rate=stats.overall.win_rate,
                    generated_at=generated_at,
                    stats=stats,
                    lessons=lessons,
                )

            await asyncio.to_thread(write_atomic, self._path, digest.text)
            self._context = digest.text
            self._last_digest = digest

        logger.info(
            "learning_digest_rebuilt",
            total_trades=digest.total_trades,
            win_rate=round(digest.win_rate, 1),
            lessons=len(digest.lessons),
        )
        return digest

    def get_context(self) -> str:
        """Last written digest, or an empty string if none is available."""
        if self._context is not None:
            return self._context
        try:
            self._context = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("learning_context_read_failed", path=str(self._path), error=str(e))
            return ""
        return self._context
