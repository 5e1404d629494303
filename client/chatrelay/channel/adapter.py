from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from chatrelay.channel.base import CONNECT, CONNECT_SUCCESS, DISCONNECT, MESSAGE, Channel
from chatrelay.core.errors import PayloadError

if TYPE_CHECKING:
    from chatrelay.services.chat_relay import ChatRelay

logger = logging.getLogger(__name__)


class ChannelAdapter:
    """Route channel events into the relay."""

    def __init__(self, relay: "ChatRelay") -> None:
        self._relay = relay
        self._channel: Optional[Channel] = None

    def bind(self, channel: Channel) -> None:
        """Attach handlers for connect, disconnect and message events."""

        self._channel = channel
        channel.on(CONNECT, self._on_connect)
        channel.on(DISCONNECT, self._on_disconnect)
        channel.on(MESSAGE, self._on_message)

    async def _on_connect(self, _data: Any = None) -> None:
        channel = self._channel
        if channel is None:
            return
        self._relay.socket_id = channel.id
        logger.info("Channel connected as %s", channel.id)
        await channel.emit(CONNECT_SUCCESS, {})

    async def _on_disconnect(self, _data: Any = None) -> None:
        logger.info("Channel %s disconnected", self._relay.socket_id)
        self._relay.socket_id = None

    async def _on_message(self, payload: Any) -> None:
        try:
            self._relay.receive_payload(payload)
        except PayloadError as exc:
            logger.warning("Dropping malformed channel payload: %s", exc)
