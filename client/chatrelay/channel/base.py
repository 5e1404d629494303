from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, Protocol, Union

EventHandler = Callable[[Any], Union[None, Awaitable[None]]]

CONNECT = "connect"
DISCONNECT = "disconnect"
MESSAGE = "message"
CONNECT_SUCCESS = "connect:success"


class Channel(Protocol):
    """Bidirectional event channel delivering parsed payload objects."""

    id: Optional[str]

    def on(self, event: str, handler: EventHandler) -> None:
        """Register a handler for an inbound event."""

    async def emit(self, event: str, data: Any) -> None:
        """Send an event to the server."""
