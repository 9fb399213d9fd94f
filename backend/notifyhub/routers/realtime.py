"""WebSocket endpoint that registers live sessions with the fanout layer."""

import logging

import jwt
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from notifyhub.core.auth import decode_user_token
from notifyhub.core.dependencies import get_fanout

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def notifications_socket(websocket: WebSocket, token: str = Query(default="")) -> None:
    try:
        user_id = decode_user_token(token)
    except jwt.InvalidTokenError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    fanout = get_fanout(websocket)
    try:
        await fanout.connect(user_id, websocket)
    except Exception:
        logger.warning("Could not register socket for user %s", user_id)
        return

    try:
        while True:
            # Clients only listen; inbound frames are read to notice the close.
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await fanout.disconnect(websocket)
