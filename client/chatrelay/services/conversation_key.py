from __future__ import annotations

from typing import Any, Mapping

from chatrelay.core.errors import PayloadError
from chatrelay.schemas.payload import LOCAL_MARKER_FIELD, ChatPayload


def derive_key(payload: Mapping[str, Any] | ChatPayload) -> str:
    """Return the conversation key for a payload, independent of direction.

    The local user's id is always the first segment: it is `from` on
    payloads sent from this client and `to` on payloads received from a peer.
    """

    if isinstance(payload, ChatPayload):
        sender, receiver, is_local = payload.sender, payload.receiver, payload.is_local
    else:
        try:
            sender, receiver = payload["from"], payload["to"]
        except (KeyError, TypeError) as exc:
            raise PayloadError("payload needs both `from` and `to` to derive a key") from exc
        is_local = bool(payload.get(LOCAL_MARKER_FIELD))

    if is_local:
        return f"{sender}-{receiver}"
    return f"{receiver}-{sender}"
