"""Websocket endpoint for real-time notifications."""
import json
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from academyhub.api.deps import resolve_user_from_token
from academyhub.core.database import get_db
from academyhub.core.relay import channel_room
from academyhub.core.structured_logging import log_json

logger = logging.getLogger(__name__)
router = APIRouter()

# Application-defined close code for a missing or bad access token
WS_CLOSE_UNAUTHORIZED = 4401


@router.websocket("/ws")
async def websocket_notifications(
    websocket: WebSocket,
    token: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Push channel for the authenticated user.

    Authenticate with ``?token=<access token>``. The connection joins the
    user's own room; clients join or leave channel rooms by sending
    ``{"action": "join" | "leave", "channel": "<id>"}``.
    """
    user = await resolve_user_from_token(token, db) if token else None
    user_id = user.id if user is not None else None
    # Release the connection; the socket may stay open for hours
    await db.rollback()

    await websocket.accept()
    if user_id is None:
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return

    relay = websocket.app.state.relay
    room = await relay.connect(user_id, websocket)
    log_json(logger, logging.INFO, "ws_connected", user_id=str(user_id), room=room)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                log_json(logger, logging.WARNING, "ws_bad_message", user_id=str(user_id))
                continue
            if not isinstance(message, dict):
                continue
            action = message.get("action")
            channel = message.get("channel")
            if not channel:
                continue
            if action == "join":
                await relay.join(channel_room(channel), websocket)
            elif action == "leave":
                await relay.leave(channel_room(channel), websocket)
    except WebSocketDisconnect:
        pass
    finally:
        await relay.disconnect(websocket)
        log_json(logger, logging.INFO, "ws_disconnected", user_id=str(user_id))
