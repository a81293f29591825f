"""
In-memory connection manager for chat WebSocket: subscribe/unsubscribe/broadcast
by conversation_id.
"""
import asyncio
import json
import logging
import uuid
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks WebSocket connections per conversation and broadcasts events."""

    def __init__(self) -> None:
        # conversation_id -> set of WebSocket
        self._conversations: Dict[uuid.UUID, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        # Strong refs to in-flight broadcasts scheduled by publish
        self._tasks: Set[asyncio.Task] = set()

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Remember the server loop so worker threads can publish onto it."""
        self._loop = loop

    async def subscribe(self, websocket: WebSocket, conversation_id: uuid.UUID) -> None:
        self._loop = asyncio.get_running_loop()
        async with self._lock:
            self._conversations.setdefault(conversation_id, set()).add(websocket)
        logger.debug("Subscribed ws to conversation %s", conversation_id)

    async def unsubscribe(self, websocket: WebSocket, conversation_id: uuid.UUID) -> None:
        async with self._lock:
            sockets = self._conversations.get(conversation_id)
            if sockets is not None:
                sockets.discard(websocket)
                if not sockets:
                    del self._conversations[conversation_id]
        logger.debug("Unsubscribed ws from conversation %s", conversation_id)

    async def unsubscribe_all(self, websocket: WebSocket, conversation_ids: Set[uuid.UUID]) -> None:
        for cid in list(conversation_ids):
            await self.unsubscribe(websocket, cid)

    def subscriber_count(self, conversation_id: uuid.UUID) -> int:
        return len(self._conversations.get(conversation_id) or ())

    async def broadcast(
        self,
        conversation_id: uuid.UUID,
        event: str,
        payload: Any,
        exclude_websocket: Optional[WebSocket] = None,
    ) -> None:
        """Send JSON event to every socket subscribed to the conversation (except exclude_websocket)."""
        msg = json.dumps({
            "event": event,
            "conversation_id": str(conversation_id),
            "payload": payload,
        }, default=str)
        async with self._lock:
            sockets = set(self._conversations.get(conversation_id) or [])
        dead = []
        for ws in sockets:
            if ws is exclude_websocket:
                continue
            try:
                await ws.send_text(msg)
            except Exception as e:
                logger.warning("Broadcast send failed: %s", e)
                dead.append(ws)
        if dead:
            async with self._lock:
                live = self._conversations.get(conversation_id)
                if live is not None:
                    live.difference_update(dead)
                    if not live:
                        del self._conversations[conversation_id]

    def publish(self, conversation_id: uuid.UUID, event: str, payload: Any) -> None:
        """
        Fire-and-forget broadcast from sync code. Works from the event loop
        thread and from threadpool workers; broadcasts are scheduled in
        publish order.
        """
        coro_factory = lambda: self.broadcast(conversation_id, event, payload)  # noqa: E731
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is not None:
            task = running.create_task(coro_factory())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        elif self._loop is not None and self._loop.is_running():
            asyncio.run_coroutine_threadsafe(coro_factory(), self._loop)
        else:
            # No loop to deliver on (e.g. scripts, tests without a server)
            logger.debug("Dropped %s for conversation %s: no event loop", event, conversation_id)


connection_manager = ConnectionManager()
