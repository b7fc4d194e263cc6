"""
WebSocket endpoint for live events.

Clients connect to ``/ws?token=<access token>`` and receive
``{"event", "data"}`` frames. Inbound frames are ignored apart from keeping
the socket open.
"""

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy import select

from core.errors import AuthenticationError
from core.realtime import manager
from core.security import decode_access_token
from database.engine import AsyncSessionLocal
from database.models.users import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


async def _authenticate(token: str) -> int | None:
    try:
        payload = decode_access_token(token)
        user_id = int(payload["sub"])
    except (AuthenticationError, KeyError, ValueError):
        return None

    async with AsyncSessionLocal() as session:
        exists = await session.scalar(select(User.id).where(User.id == user_id))
    return exists


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, token: str = Query("")):
    user_id = await _authenticate(token)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await manager.connect(user_id, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(user_id, websocket)
