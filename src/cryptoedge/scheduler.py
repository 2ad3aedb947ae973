"""Signal scheduler -- single-flight generation cycles on a timer or on demand.

Each cycle:
  1. LEARN: rebuild the learning digest from closed trades (optional)
  2. GENERATE: run every configured pair concurrently, each under a deadline
  3. PUBLISH: broadcast the per-pair result map, or a generic notice when
     no pair succeeded

At most one cycle is in flight. A timer fire that lands during a cycle is
skipped; a manual refresh during a cycle fails with GenerationInProgress.
When the reasoning model is unavailable the cycle is skipped before the
state ever leaves IDLE.
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum

from cryptoedge.broadcast import SignalHub
from cryptoedge.config import AppSettings
from cryptoedge.engine import SignalGenerator
from cryptoedge.exceptions import GenerationInProgress, ReasoningUnavailable, SignalEngineError
from cryptoedge.learning import LearningMemory
from cryptoedge.logging import get_logger
from cryptoedge.models import Signal
from cryptoedge.reasoning.client import ReasoningClient

logger = get_logger(__name__)

SIGNALS_UNAVAILABLE_MESSAGE = "Signals are temporarily unavailable. Please try again later."


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class SignalScheduler:
    """Recurring timer plus on-demand trigger around one guarded cycle.

    Args:
        settings: Application-wide settings.
        generator: Per-pair signal pipeline.
        reasoning: Reasoning client, consulted for availability before a cycle.
        learning: Learning memory, rebuilt at the start of each cycle.
        hub: Subscriber hub for cycle results.
    """

    def __init__(
        self,
        settings: AppSettings,
        generator: SignalGenerator,
        reasoning: ReasoningClient,
        learning: LearningMemory,
        hub: SignalHub,
    ) -> None:
        self._settings = settings
        self._generator = generator
        self._reasoning = reasoning
        self._learning = learning
        self._hub = hub
        self._state = SchedulerState.IDLE
        self._state_lock = asyncio.Lock()
        self._running = False
        self._timer_tasks: set[asyncio.Task] = set()
        self._last_cycle: dict | None = None
        self._skipped_cycles = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        """Whether the recurring timer loop is active."""
        return self._running

    # ──────────────────────────────────────────────
    # State guard
    # ──────────────────────────────────────────────

    async def _try_begin_cycle(self) -> bool:
        """Atomically move IDLE -> RUNNING. False if a cycle is already in flight."""
        async with self._state_lock:
            if self._state is SchedulerState.RUNNING:
                return False
            self._state = SchedulerState.RUNNING
            return True

    async def _end_cycle(self) -> None:
        async with self._state_lock:
            self._state = SchedulerState.IDLE

    # ──────────────────────────────────────────────
    # Timer loop
    # ──────────────────────────────────────────────

    async def start(self) -> None:
        """Run the recurring loop until stop(). The first cycle fires immediately."""
        logger.info(
            "signal_scheduler_starting",
            pairs=self._settings.signal.pairs,
            interval_seconds=self._settings.signal.interval_seconds,
        )
        self._running = True
        try:
            await self._run_loop()
        finally:
            self._running = False
            logger.info("signal_scheduler_stopped")

    async def stop(self) -> None:
        """Stop the timer loop and cancel any timer-triggered cycle still in flight."""
        logger.info("signal_scheduler_stopping")
        self._running = False
        tasks = list(self._timer_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_loop(self) -> None:
        while self._running:
            try:
                task = asyncio.create_task(self._on_timer())
                self._timer_tasks.add(task)
                task.add_done_callback(self._timer_tasks.discard)
                await asyncio.sleep(self._settings.signal.interval_seconds)
            except asyncio.CancelledError:
                break

    async def _on_timer(self) -> None:
        if not self._reasoning.is_available():
            self._skipped_cycles += 1
            logger.info("signal_cycle_skipped", reason="reasoning_unavailable")
            return
        if not await self._try_begin_cycle():
            self._skipped_cycles += 1
            logger.info("signal_cycle_skipped", reason="generation_in_progress")
            return
        try:
            await self._run_cycle(trigger="timer")
        except Exception as e:
            logger.error("signal_cycle_error", error=str(e), exc_info=True)
        finally:
            await self._end_cycle()

    # ──────────────────────────────────────────────
    # Manual trigger
    # ──────────────────────────────────────────────

    async def refresh_now(self) -> dict[str, Signal | None]:
        """Run one cycle immediately and return the per-pair results.

        Raises:
            ReasoningUnavailable: the reasoning model is not configured or disabled.
            GenerationInProgress: a cycle is already running.
        """
        if not self._reasoning.is_available():
            raise ReasoningUnavailable("manual refresh requested without a reasoning model")
        if not await self._try_begin_cycle():
            logger.info("manual_refresh_rejected", reason="generation_in_progress")
            raise GenerationInProgress("a signal generation cycle is already running")
        try:
            return await self._run_cycle(trigger="manual")
        finally:
            await self._end_cycle()

    # ──────────────────────────────────────────────
    # Cycle
    # ──────────────────────────────────────────────

    async def _generate_with_deadline(self, pair: str) -> tuple[Signal | None, str]:
        """Run one pair under the cycle deadline. Returns (signal, outcome category)."""
        deadline = self._settings.signal.cycle_deadline_seconds
        try:
            signal = await asyncio.wait_for(
                self._generator.generate_signal(pair), timeout=deadline
            )
        except asyncio.TimeoutError:
            logger.warning("pair_generation_failed", pair=pair, category="deadline_exceeded", deadline=deadline)
            return None, "deadline_exceeded"
        except SignalEngineError as e:
            logger.warning("pair_generation_failed", pair=pair, category=e.category, error=str(e))
            return None, e.category
        except Exception as e:
            logger.error(
                "pair_generation_failed",
                pair=pair,
                category="internal",
                error=str(e),
                exc_info=True,
            )
            return None, "internal"
        return signal, "ok"

    async def _run_cycle(self, trigger: str) -> dict[str, Signal | None]:
        started = time.monotonic()
        started_at_ms = int(time.time() * 1000)
        pairs = list(self._settings.signal.pairs)
        logger.info("signal_cycle_started", trigger=trigger, pairs=pairs)

        if self._settings.signal.rebuild_learning_each_cycle:
            try:
                await self._learning.rebuild()
            except Exception as e:
                logger.warning("learning_rebuild_failed", error=str(e), exc_info=True)

        outcomes = await asyncio.gather(*(self._generate_with_deadline(p) for p in pairs))
        results = {pair: signal for pair, (signal, _) in zip(pairs, outcomes)}
        succeeded = sum(1 for signal in results.values() if signal is not None)

        if succeeded:
            await self._hub.broadcast(
                "signals",
                {pair: s.to_dict() if s is not None else None for pair, s in results.items()},
            )
        else:
            await self._hub.broadcast(
                "signals_unavailable", {"message": SIGNALS_UNAVAILABLE_MESSAGE}
            )

        duration_ms = int((time.monotonic() - started) * 1000)
        self._last_cycle = {
            "trigger": trigger,
            "started_at_ms": started_at_ms,
            "duration_ms": duration_ms,
            "succeeded": succeeded,
            "failed": len(pairs) - succeeded,
            "outcomes": {pair: category for pair, (_, category) in zip(pairs, outcomes)},
        }
        logger.info(
            "signal_cycle_completed",
            trigger=trigger,
            succeeded=succeeded,
            failed=len(pairs) - succeeded,
            duration_ms=duration_ms,
        )
        return results

    def get_status(self) -> dict:
        """Return current scheduler status.

        Returns:
            Dict with: state, running, pairs, interval_seconds,
            reasoning_available, skipped_cycles, last_cycle.
        """
        return {
            "state": self._state.value,
            "running": self._running,
            "pairs": list(self._settings.signal.pairs),
            "interval_seconds": self._settings.signal.interval_seconds,
            "reasoning_available": self._reasoning.is_available(),
            "skipped_cycles": self._skipped_cycles,
            "last_cycle": self._last_cycle,
        }
