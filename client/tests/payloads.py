from __future__ import annotations

from typing import Any


def inbound(
    sender: str,
    receiver: str,
    uuid: str,
    *,
    timestamp: int = 100,
    content: str = "hi",
    name: str = "Peer",
    avatar: str = "peer.png",
) -> dict[str, Any]:
    """Payload as delivered by the server for a message from a peer."""

    return {
        "from": sender,
        "to": receiver,
        "uuid": uuid,
        "msg": {"content": content},
        "ext": {"timestamp": timestamp, "avatar": avatar, "name": name},
    }


def local(
    sender: str,
    receiver: str,
    uuid: str,
    *,
    content: str = "hello",
    name: str = "Peer",
    avatar: str = "peer.png",
) -> dict[str, Any]:
    """Payload echoed locally for a message this client sent."""

    return {
        "from": sender,
        "to": receiver,
        "uuid": uuid,
        "msg": {"content": content},
        "localeExt": {"toInfo": {"userId": receiver, "avatar": avatar, "name": name}},
    }
