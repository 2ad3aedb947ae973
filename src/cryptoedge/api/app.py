"""FastAPI application factory with signal routes and the subscriber WebSocket."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cryptoedge.api.routes import signals, status, ws
from cryptoedge.broadcast import SignalHub
from cryptoedge.exceptions import (
    GenerationInProgress,
    InvalidReasoningOutput,
    ReasoningTimeout,
    ReasoningUnavailable,
    SignalEngineError,
    UpstreamFetchError,
)

log = structlog.get_logger(__name__)

_STATUS_CODES: dict[type[SignalEngineError], int] = {
    GenerationInProgress: 409,
    ReasoningUnavailable: 503,
    ReasoningTimeout: 503,
    InvalidReasoningOutput: 503,
    UpstreamFetchError: 503,
}


def status_code_for(exc: SignalEngineError) -> int:
    for exc_type, code in _STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return code
    return 500


async def _engine_error_handler(request: Request, exc: SignalEngineError) -> JSONResponse:
    """Map engine errors to their public message. Internal detail stays in the logs."""
    log.warning(
        "api_request_failed",
        path=request.url.path,
        category=exc.category,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"error": exc.public_message},
    )


def create_app(lifespan: Any = None, hub: SignalHub | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.
        hub: Subscriber hub shared with the scheduler.

    Returns:
        Configured FastAPI application with routes and the WebSocket hub.
    """
    app = FastAPI(
        title="CryptoEdge Signal Engine",
        lifespan=lifespan,
    )

    # Store WebSocket hub on app state for access from route handlers
    app.state.hub = hub if hub is not None else SignalHub()

    app.add_exception_handler(SignalEngineError, _engine_error_handler)

    app.include_router(signals.router, prefix="/api/signals")
    app.include_router(status.router, prefix="/api")
    app.include_router(ws.router)

    return app
