"""WebSocket endpoint for real-time signal broadcast to subscribers."""

from __future__ import annotations

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from cryptoedge.broadcast import SignalHub

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Subscribe to signal broadcasts."""
    hub: SignalHub = websocket.app.state.hub
    await websocket.accept()
    await hub.connect(websocket)
    try:
        while True:
            # Consume messages to keep connection alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        hub.disconnect(websocket)
