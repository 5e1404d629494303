from __future__ import annotations

import asyncio
import inspect
import json
import logging
import uuid
from typing import Any, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from chatrelay.channel.base import CONNECT, DISCONNECT, EventHandler

logger = logging.getLogger(__name__)


class WebSocketChannel:
    """Channel over a WebSocket carrying JSON frames `{"event": ..., "data": ...}`."""

    def __init__(
        self,
        url: str,
        *,
        connect: Callable[[str], Any] = websockets.connect,
    ) -> None:
        self._url = url
        self._connect = connect
        self._handlers: dict[str, list[EventHandler]] = {}
        self._websocket: Any = None
        self.id: Optional[str] = None

    def on(self, event: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    async def emit(self, event: str, data: Any) -> None:
        if self._websocket is None:
            raise RuntimeError(f"Cannot emit {event!r}: channel is not connected")
        await self._websocket.send(json.dumps({"event": event, "data": data}, ensure_ascii=False))

    async def close(self) -> None:
        if self._websocket is not None:
            await self._websocket.close()

    async def run(self) -> None:
        """Connect and dispatch frames until the server closes the socket."""

        async with self._connect(self._url) as websocket:
            self._websocket = websocket
            self.id = uuid.uuid4().hex
            await self._dispatch(CONNECT, None)
            try:
                while True:
                    try:
                        raw = await websocket.recv()
                    except ConnectionClosed:
                        break
                    await self._handle_frame(raw)
            finally:
                self._websocket = None
                await self._dispatch(DISCONNECT, None)
                self.id = None

    async def _handle_frame(self, raw: Any) -> None:
        try:
            frame = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            logger.warning("Ignoring non-JSON channel frame")
            return
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            logger.warning("Ignoring channel frame without an event name")
            return
        await self._dispatch(frame["event"], frame.get("data"))

    async def _dispatch(self, event: str, data: Any) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                result = handler(data)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                logger.exception("Channel handler for %s failed", event)
