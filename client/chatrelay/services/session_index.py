from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from chatrelay.schemas.payload import ChatPayload, PeerInfo
from chatrelay.schemas.session import SessionItem, SessionView
from chatrelay.services.conversation_key import derive_key
from chatrelay.services.relative_time import humanize_since
from chatrelay.utils.time_utils import now_ms

logger = logging.getLogger(__name__)

SessionListener = Callable[[frozenset[str]], None]


class SessionIndex:
    """In-memory map of conversation key to its latest session summary.

    Derived views (`sorted_sessions`, `total_unread`) are computed on every
    read. Mutations notify subscribers with the set of keys that changed.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], int] = now_ms,
        locale: str = "zh-cn",
    ) -> None:
        self._items: dict[str, SessionItem] = {}
        self._clock = clock
        self._locale = locale
        self._listeners: list[SessionListener] = []

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def get(self, key: str) -> Optional[SessionItem]:
        return self._items.get(key)

    def keys(self) -> list[str]:
        return list(self._items.keys())

    def items(self) -> list[tuple[str, SessionItem]]:
        return list(self._items.items())

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a change listener; returns a callable that removes it."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def upsert_from_payload(self, payload: Mapping[str, Any] | ChatPayload) -> SessionItem:
        """Replace the session for the payload's conversation with a fresh summary."""

        parsed = ChatPayload.parse(payload)
        key = derive_key(parsed)
        previous = self._items.get(key)

        if parsed.locale_ext is not None:
            to_info = parsed.locale_ext.to_info
            item = SessionItem(
                key=key,
                avatar=to_info.avatar,
                name=to_info.name,
                latest_message=parsed.msg.content,
                timestamp=self._clock(),
                un_read_message_count=0,
                to_info=to_info,
            )
        else:
            ext = parsed.ext
            item = SessionItem(
                key=key,
                avatar=ext.avatar,
                name=ext.name,
                latest_message=parsed.msg.content,
                timestamp=ext.timestamp,
                un_read_message_count=previous.un_read_message_count + 1 if previous else 1,
                to_info=PeerInfo(user_id=parsed.sender, avatar=ext.avatar, name=ext.name),
            )

        self._items[key] = item
        self._notify({key})
        return item

    def clear_unread(self, key: str) -> Optional[SessionItem]:
        """Reset the unread count of an existing session; unknown keys are ignored."""

        item = self._items.get(key)
        if item is None:
            return None
        cleared = item.model_copy(update={"un_read_message_count": 0})
        self._items[key] = cleared
        self._notify({key})
        return cleared

    def load(self, items: Iterable[SessionItem]) -> int:
        """Merge restored sessions into the index, overwriting same-key entries."""

        changed: set[str] = set()
        for item in items:
            self._items[item.key] = item
            changed.add(item.key)
        if changed:
            self._notify(changed)
        return len(changed)

    def sorted_sessions(self, now: Optional[int] = None) -> list[SessionView]:
        """Return sessions newest first, each labelled with its relative time."""

        reference = self._clock() if now is None else now
        ordered = sorted(self._items.values(), key=lambda item: item.timestamp, reverse=True)
        return [
            SessionView(
                **item.model_dump(),
                latest_time=humanize_since(item.timestamp, reference, self._locale),
            )
            for item in ordered
        ]

    def total_unread(self) -> int:
        return sum(item.un_read_message_count for item in self._items.values())

    def _notify(self, keys: set[str]) -> None:
        changed = frozenset(keys)
        for listener in list(self._listeners):
            try:
                listener(changed)
            except Exception:  # noqa: BLE001
                logger.exception("Session listener failed for keys %s", sorted(changed))
