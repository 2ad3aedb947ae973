"""JSON endpoints for latest signals, history, manual refresh and the learning digest."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from cryptoedge.learning import LearningDigest

log = structlog.get_logger(__name__)

router = APIRouter()

MAX_HISTORY_LIMIT = 500


def _pair_from_path(pair: str) -> str:
    """URL-safe pair name (``BTC-EUR``) to the canonical form (``BTC/EUR``)."""
    return pair.replace("-", "/").upper()


def _digest_summary(digest: LearningDigest) -> dict:
    return {
        "total_trades": digest.total_trades,
        "win_rate": round(digest.win_rate, 1),
        "generated_at": digest.generated_at.isoformat(),
        "lessons": digest.lessons,
    }


@router.get("/latest")
async def get_latest(request: Request) -> JSONResponse:
    """Latest signal per configured pair (null where none exists yet)."""
    store = request.app.state.store
    pairs = request.app.state.settings.signal.pairs
    latest = await store.get_latest_for_pairs(pairs)
    return JSONResponse(
        content={
            "signals": {
                pair: signal.to_dict() if signal is not None else None
                for pair, signal in latest.items()
            }
        }
    )


@router.get("/history/{pair}")
async def get_history(
    request: Request,
    pair: str,
    limit: int | None = Query(default=None, ge=1, le=MAX_HISTORY_LIMIT),
) -> JSONResponse:
    """Signal history for one pair, newest first."""
    store = request.app.state.store
    canonical = _pair_from_path(pair)
    if limit is None:
        limit = request.app.state.settings.signal.history_default_limit
    history = await store.get_history(canonical, limit)
    return JSONResponse(
        content={"pair": canonical, "signals": [s.to_dict() for s in history]}
    )


@router.post("/refresh")
async def refresh(request: Request) -> JSONResponse:
    """Run a generation cycle now.

    GenerationInProgress (409) and ReasoningUnavailable (503) propagate to
    the app-level error handler.
    """
    scheduler = request.app.state.scheduler
    results = await scheduler.refresh_now()
    log.info(
        "manual_refresh_completed",
        succeeded=sum(1 for s in results.values() if s is not None),
    )
    return JSONResponse(
        content={
            "signals": {
                pair: signal.to_dict() if signal is not None else None
                for pair, signal in results.items()
            }
        }
    )


@router.get("/learning")
async def get_learning(request: Request) -> JSONResponse:
    """Current learning digest text as injected into the reasoning prompt."""
    learning = request.app.state.learning
    content: dict = {"text": learning.get_context()}
    if learning.last_digest is not None:
        content.update(_digest_summary(learning.last_digest))
    return JSONResponse(content=content)


@router.post("/learning/rebuild")
async def rebuild_learning(request: Request) -> JSONResponse:
    """Regenerate the learning digest from all closed trades."""
    learning = request.app.state.learning
    try:
        digest = await learning.rebuild()
    except Exception as e:
        log.error("learning_rebuild_failed", error=str(e), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Learning memory could not be rebuilt. Please try again later."},
        )
    return JSONResponse(content={"text": digest.text, **_digest_summary(digest)})
