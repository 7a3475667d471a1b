"""
Renderer connections and change events.

Each connected renderer gets a `hello` carrying the current revision, then a
`diagram_updated` event (with the next revision) whenever the session's view
state changes. Renderers refetch GET /api/diagram on each event and can
ignore revisions they have already rendered.
"""
import asyncio
import json
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Tracks renderer sockets and fans out revisioned events."""

    def __init__(self):
        self._clients: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._revision = 0

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def connection_count(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        await websocket.send_text(json.dumps({"type": "hello", "revision": self._revision}))
        async with self._lock:
            self._clients.add(websocket)
        logger.info("Renderer connected (%d open)", len(self._clients))

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self._clients.discard(websocket)
        logger.info("Renderer disconnected (%d open)", len(self._clients))

    async def broadcast(self, message: dict) -> int:
        """
        Send one message to every renderer concurrently.

        Renderers whose send raises are dropped. Returns how many received it.
        """
        async with self._lock:
            clients = list(self._clients)
        if not clients:
            return 0

        payload = json.dumps(message)
        results = await asyncio.gather(
            *(client.send_text(payload) for client in clients),
            return_exceptions=True,
        )
        dead = {client for client, result in zip(clients, results) if isinstance(result, Exception)}
        if dead:
            async with self._lock:
                self._clients -= dead
            logger.debug("Dropped %d unreachable renderers", len(dead))
        return len(clients) - len(dead)

    async def notify_diagram_updated(self, loaded: bool = True) -> int:
        """Bump the revision and tell renderers to refetch."""
        self._revision += 1
        return await self.broadcast({
            "type": "diagram_updated",
            "loaded": loaded,
            "revision": self._revision,
        })


ws_manager = WebSocketManager()
