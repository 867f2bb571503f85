from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket

from voicebed.backend.types import WsEvent

logger = logging.getLogger("voicebed.ws")


class WebSocketManager:
    """Fans playback events out to every connected ``/ws/playback`` listener."""

    def __init__(self) -> None:
        self._listeners: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, greeting: WsEvent | None = None) -> None:
        await websocket.accept()
        if greeting is not None:
            await websocket.send_json(greeting.model_dump())
        async with self._lock:
            self._listeners.add(websocket)
            total = len(self._listeners)
        logger.debug("playback listener connected (%d total)", total)

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._listeners.discard(websocket)

    async def publish(self, event: WsEvent) -> None:
        payload = event.model_dump()
        async with self._lock:
            listeners = tuple(self._listeners)
        failed = []
        for listener in listeners:
            try:
                await listener.send_json(payload)
            except Exception as exc:
                logger.debug("dropping playback listener after %s: %s", event.type, exc)
                failed.append(listener)
        if failed:
            async with self._lock:
                self._listeners.difference_update(failed)
