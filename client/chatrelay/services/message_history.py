from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine, Mapping, Optional

from chatrelay.schemas.payload import ChatPayload, to_message_record
from chatrelay.services.persistence import PersistenceSynchronizer

logger = logging.getLogger(__name__)

HistoryListener = Callable[[str], None]


class MessageHistoryCache:
    """Per-conversation message lists, hydrated lazily from the store.

    The list returned for a key is the live cached list; restores update it
    in place, so holders of the list see restored messages once they land.
    """

    def __init__(self, synchronizer: PersistenceSynchronizer) -> None:
        self._synchronizer = synchronizer
        self._histories: dict[str, list[dict[str, Any]]] = {}
        # Keys whose restore has been issued; never cleared.
        self._hydrated: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self._listeners: list[HistoryListener] = []

    @property
    def pending(self) -> int:
        """Number of background persist/restore tasks still running."""

        return len(self._tasks)

    def get(self, key: str) -> Optional[list[dict[str, Any]]]:
        return self._histories.get(key)

    def is_hydrated(self, key: str) -> bool:
        return key in self._hydrated

    def subscribe(self, listener: HistoryListener) -> Callable[[], None]:
        """Register a listener called with the key of every changed history."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def append(self, key: str, payload: Mapping[str, Any] | ChatPayload) -> dict[str, Any]:
        """Append a message to a conversation and persist just that record."""

        record = to_message_record(payload)
        self._histories.setdefault(key, []).append(record)
        self._notify(key)
        self._spawn(self._synchronizer.save_message(key, record), f"persist {key}")
        return record

    def get_or_init(self, current_key: Optional[str]) -> list[dict[str, Any]]:
        """Return the cached history for the open conversation.

        The first call for a key schedules a background restore and marks the
        key hydrated right away, so repeated reads never restore twice.
        The restore is scheduled even when nothing was persisted for the key;
        it then finishes without touching the cache.
        """

        if not current_key:
            return []
        if current_key not in self._hydrated:
            self._hydrated.add(current_key)
            self._spawn(self._restore(current_key), f"restore {current_key}")
        return self._histories.setdefault(current_key, [])

    async def drain(self) -> None:
        """Wait until every issued persist and restore has finished."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _restore(self, key: str) -> None:
        restored = await self._synchronizer.restore_messages(key)
        if restored is None:
            return
        self._merge(key, restored)

    def _merge(self, key: str, restored: list[dict[str, Any]]) -> None:
        # Messages appended while the restore was in flight are newer than
        # anything persisted before it, so they stay at the tail.
        current = self._histories.setdefault(key, [])
        live_ids = {record.get("uuid") for record in current}
        older = [record for record in restored if record.get("uuid") not in live_ids]
        if not older:
            return
        current[:0] = older
        logger.debug("Restored %d messages into %s", len(older), key)
        self._notify(key)

    def _spawn(self, coro: Coroutine[Any, Any, Any], label: str) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is not None:
                logger.error("Background %s failed: %s", label, exc, exc_info=exc)

        task.add_done_callback(_done)

    def _notify(self, key: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(key)
            except Exception:  # noqa: BLE001
                logger.exception("History listener failed for %s", key)
