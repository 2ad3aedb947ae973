"""Entry point for the CryptoEdge signal engine.

Wires all components together, optionally embeds the FastAPI server, and
starts the signal scheduler. When the server is enabled (default), the
scheduler and the API share a single asyncio event loop via uvicorn's
programmatic API and FastAPI's lifespan context manager.

Handles SIGINT/SIGTERM for graceful shutdown.

Component wiring order (in _build_components):
1. AppSettings (configuration)
2. Logging setup
3. SignalDatabase + SignalStore + SqliteTradeFeed (persistence)
4. MarketDataClient (ccxt public endpoints)
5. LiquidityService (cached macro context)
6. ReasoningClient (LLM analysis)
7. LearningMemory (performance digest)
8. SignalHub (subscriber broadcast)
9. SignalGenerator (per-pair pipeline)
10. SignalScheduler (single-flight cycles)
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from cryptoedge.broadcast import SignalHub
from cryptoedge.config import AppSettings
from cryptoedge.engine import SignalGenerator
from cryptoedge.exceptions import UpstreamFetchError
from cryptoedge.exchange.ccxt_client import CcxtMarketDataClient
from cryptoedge.learning import LearningMemory
from cryptoedge.liquidity import LiquidityService
from cryptoedge.logging import get_logger, setup_logging
from cryptoedge.reasoning.client import ReasoningClient
from cryptoedge.scheduler import SignalScheduler
from cryptoedge.storage.database import SignalDatabase
from cryptoedge.storage.store import SignalStore
from cryptoedge.storage.trades import SqliteTradeFeed


async def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all engine components from settings.

    Note: Does NOT open the database or call market_client.connect() --
    that happens in the lifespan (server mode) or run() (headless mode).

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    logger = get_logger("cryptoedge.main")

    # 3. Persistence
    database = SignalDatabase(settings.storage.db_path)
    store = SignalStore(database)
    trade_feed = SqliteTradeFeed(database)

    # 4. Exchange market data
    market_client = CcxtMarketDataClient(settings.exchange)

    # 5. Liquidity context
    liquidity = LiquidityService(settings.liquidity)

    # 6. Reasoning model
    reasoning = ReasoningClient(settings.reasoning)
    if not reasoning.is_available():
        logger.warning(
            "reasoning_not_configured",
            note="Set LLM_API_KEY to enable signal generation. "
            "Cycles are skipped until then.",
        )

    # 7. Learning memory
    learning = LearningMemory(store, trade_feed, settings.storage.learning_path)

    # 8. Broadcast hub
    hub = SignalHub(send_timeout=settings.server.broadcast_send_timeout)

    # 9. Per-pair generator
    generator = SignalGenerator(
        settings=settings,
        market_client=market_client,
        liquidity=liquidity,
        reasoning=reasoning,
        learning=learning,
        store=store,
    )

    # 10. Scheduler
    scheduler = SignalScheduler(
        settings=settings,
        generator=generator,
        reasoning=reasoning,
        learning=learning,
        hub=hub,
    )

    return {
        "database": database,
        "store": store,
        "trade_feed": trade_feed,
        "market_client": market_client,
        "liquidity": liquidity,
        "reasoning": reasoning,
        "learning": learning,
        "hub": hub,
        "generator": generator,
        "scheduler": scheduler,
    }


async def _startup(components: dict[str, Any]) -> None:
    await components["database"].connect()
    try:
        await components["market_client"].connect()
    except UpstreamFetchError as e:
        # ccxt loads markets lazily on the first fetch; cycles retry on their own.
        get_logger("cryptoedge.main").warning("exchange_connect_failed", error=str(e))


async def _shutdown(components: dict[str, Any]) -> None:
    await components["market_client"].close()
    await components["liquidity"].close()
    await components["reasoning"].close()
    await components["database"].close()


def _setup_signal_handlers(scheduler: SignalScheduler) -> None:
    """Register OS signal handlers for graceful shutdown.

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("cryptoedge.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        asyncio.create_task(scheduler.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage engine component lifecycle within the FastAPI application.

    On startup: stores components on app.state, opens the database,
    connects to the exchange and starts the scheduler as a background task.

    On shutdown: stops the scheduler, cancels its task and releases
    every client and the database.
    """
    logger = get_logger("cryptoedge.main")
    components = app.state.components

    # Store components on app.state for route handler access
    app.state.store = components["store"]
    app.state.scheduler = components["scheduler"]
    app.state.learning = components["learning"]
    app.state.liquidity = components["liquidity"]

    await _startup(components)

    scheduler_task = asyncio.create_task(components["scheduler"].start())

    logger.info("lifespan_started", pairs=app.state.settings.signal.pairs)

    yield

    await components["scheduler"].stop()

    scheduler_task.cancel()
    try:
        await scheduler_task
    except asyncio.CancelledError:
        pass

    await _shutdown(components)

    logger.info("cryptoedge_stopped")


async def run() -> None:
    """Run the signal engine.

    When the server is enabled (SERVER_ENABLED=true, the default):
    - Creates the FastAPI app with lifespan
    - Runs scheduler and API in a single asyncio event loop via uvicorn

    When the server is disabled (SERVER_ENABLED=false):
    - Runs the scheduler directly without a web server
    """
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level, settings.log_dir)
    logger = get_logger("cryptoedge.main")

    # 3-10. Build all components
    components = await _build_components(settings)

    if settings.server.enabled:
        from cryptoedge.api.app import create_app

        app = create_app(lifespan=lifespan, hub=components["hub"])
        app.state.settings = settings
        app.state.components = components

        logger.info(
            "starting_with_server",
            host=settings.server.host,
            port=settings.server.port,
        )

        config = uvicorn.Config(
            app,
            host=settings.server.host,
            port=settings.server.port,
            log_level="warning",  # Suppress uvicorn access logs
        )
        server = uvicorn.Server(config)
        await server.serve()
    else:
        _setup_signal_handlers(components["scheduler"])

        logger.info(
            "starting_without_server",
            pairs=settings.signal.pairs,
            interval_seconds=settings.signal.interval_seconds,
        )

        try:
            await _startup(components)
            await components["scheduler"].start()
        finally:
            await _shutdown(components)
            logger.info("cryptoedge_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
