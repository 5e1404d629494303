from __future__ import annotations

import json
from typing import Any

import pytest
from websockets.exceptions import ConnectionClosedOK

from chatrelay.channel.adapter import ChannelAdapter
from chatrelay.channel.websocket import WebSocketChannel
from payloads import inbound


class FakeWebSocket:
    """Replays queued frames, then reports a clean close."""

    def __init__(self, frames: list[Any]) -> None:
        self._frames = list(frames)
        self.sent: list[dict] = []
        self.closed = False

    async def __aenter__(self) -> "FakeWebSocket":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.closed = True

    async def recv(self) -> Any:
        if not self._frames:
            raise ConnectionClosedOK(None, None)
        return self._frames.pop(0)

    async def send(self, raw: str) -> None:
        self.sent.append(json.loads(raw))

    async def close(self) -> None:
        self.closed = True


def _channel(frames: list[Any]) -> tuple[WebSocketChannel, FakeWebSocket]:
    websocket = FakeWebSocket(frames)

    def connect(url: str) -> FakeWebSocket:
        assert url == "ws://relay.test/ws"
        return websocket

    return WebSocketChannel("ws://relay.test/ws", connect=connect), websocket


def _frame(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": data})


@pytest.mark.anyio
async def test_connect_acknowledges_over_the_channel(relay) -> None:
    channel, websocket = _channel([])
    ChannelAdapter(relay).bind(channel)

    await channel.run()

    assert websocket.sent == [{"event": "connect:success", "data": {}}]
    assert relay.socket_id is None
    assert websocket.closed


@pytest.mark.anyio
async def test_socket_id_is_set_while_connected(relay) -> None:
    channel, _websocket = _channel([_frame("message", inbound("A", "me", "u1"))])
    ids_during_message = []
    ChannelAdapter(relay).bind(channel)
    channel.on("message", lambda _data: ids_during_message.append(relay.socket_id))

    await channel.run()

    assert ids_during_message and ids_during_message[0] is not None
    assert relay.socket_id is None


@pytest.mark.anyio
async def test_inbound_messages_reach_the_relay(relay) -> None:
    frames = [
        _frame("message", inbound("A", "me", "u1", timestamp=100)),
        _frame("message", inbound("A", "me", "u2", timestamp=200)),
    ]
    channel, _websocket = _channel(frames)
    ChannelAdapter(relay).bind(channel)

    await channel.run()
    await relay.histories.drain()

    assert relay.unread_message_count_total == 2
    assert [record["uuid"] for record in relay.histories.get("me-A")] == ["u1", "u2"]


@pytest.mark.anyio
async def test_bad_frames_do_not_stop_the_receive_loop(relay) -> None:
    frames = [
        "not json",
        json.dumps(["no", "event"]),
        _frame("message", {"from": "A"}),
        _frame("message", inbound("A", "me", "u1")),
    ]
    channel, _websocket = _channel(frames)
    ChannelAdapter(relay).bind(channel)

    await channel.run()

    assert [item.key for item in relay.session_list] == ["me-A"]


@pytest.mark.anyio
async def test_emit_before_connect_raises() -> None:
    channel, _websocket = _channel([])

    with pytest.raises(RuntimeError):
        await channel.emit("connect:success", {})
