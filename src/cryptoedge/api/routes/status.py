"""Engine status endpoint."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter()


@router.get("/status")
async def get_status(request: Request) -> JSONResponse:
    """Scheduler state, last cycle outcome, cached liquidity and subscriber count."""
    scheduler = request.app.state.scheduler
    liquidity = request.app.state.liquidity
    hub = request.app.state.hub

    cached = liquidity.cached
    liquidity_data = None
    if cached is not None:
        liquidity_data = asdict(cached)
        liquidity_data["trend"] = cached.trend.value

    return JSONResponse(
        content={
            "scheduler": scheduler.get_status(),
            "liquidity": liquidity_data,
            "subscribers": len(hub.connections),
        }
    )
