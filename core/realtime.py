"""
Real-time push over WebSockets.

Delivery is best effort: a push to a user without an open socket is dropped,
a failing socket is discarded, and nothing is retried. The durable record of
anything pushed (notification, message) is always written first by the caller.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks open sockets per user id within this process."""

    def __init__(self):
        self._connections: Dict[int, Set[WebSocket]] = defaultdict(set)

    async def connect(self, user_id: int, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections[user_id].add(websocket)
        logger.info(f"Realtime socket opened for user {user_id}")

    def disconnect(self, user_id: int, websocket: WebSocket) -> None:
        sockets = self._connections.get(user_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            self._connections.pop(user_id, None)
        logger.info(f"Realtime socket closed for user {user_id}")

    def is_online(self, user_id: int) -> bool:
        return bool(self._connections.get(user_id))

    async def push(self, user_id: int, event: str, payload: Dict[str, Any]) -> int:
        """
        Send an event to every socket the user has open.

        Returns:
            Number of sockets the event was handed to
        """
        delivered = 0
        for websocket in list(self._connections.get(user_id, ())):
            try:
                await websocket.send_json({"event": event, "data": payload})
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping realtime socket for user {user_id}: {e}")
                self.disconnect(user_id, websocket)
        return delivered


manager = ConnectionManager()

# Strong references to in-flight push tasks so they are not garbage collected
_background_tasks: Set[asyncio.Task] = set()


def _log_push_failure(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            f"Realtime push failed: {type(exc).__name__}: {exc}",
            exc_info=(type(exc), exc, exc.__traceback__),
        )


def schedule_push(
    user_id: int,
    event: str,
    payload: Dict[str, Any],
    connection_manager: Optional[ConnectionManager] = None,
) -> asyncio.Task:
    """Fire-and-forget push. Failures are logged, never raised to the caller."""
    target = connection_manager or manager
    task = asyncio.create_task(target.push(user_id, event, payload))
    _background_tasks.add(task)
    task.add_done_callback(_log_push_failure)
    return task
