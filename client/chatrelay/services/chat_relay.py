from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping, Optional

from chatrelay.core.config import Settings
from chatrelay.schemas.payload import ChatPayload
from chatrelay.schemas.session import SessionItem, SessionView
from chatrelay.services.lifecycle import AppLifecycle, is_leaving_foreground
from chatrelay.services.message_history import MessageHistoryCache
from chatrelay.services.persistence import PersistenceSynchronizer
from chatrelay.services.session_index import SessionIndex
from chatrelay.store.kv_store import KeyValueStore
from chatrelay.utils.time_utils import now_ms

logger = logging.getLogger(__name__)


class ChatRelay:
    """Client-side relay: session index and message histories kept in sync with a store."""

    def __init__(
        self,
        settings: Settings,
        store: KeyValueStore,
        lifecycle: AppLifecycle,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._settings = settings
        self._synchronizer = PersistenceSynchronizer(store, settings.history_page_size)
        self.sessions = SessionIndex(clock=clock, locale=settings.time_locale)
        self.histories = MessageHistoryCache(self._synchronizer)
        self.current_chat_key: Optional[str] = None
        self.socket_id: Optional[str] = None
        self._started = False
        self._persist_tasks: set[asyncio.Task] = set()
        self._unsubscribe_lifecycle = lifecycle.subscribe(self.handle_app_state_change)

    async def start(self) -> int:
        """Restore the persisted session index. Runs once per relay."""

        if self._started:
            return 0
        self._started = True
        restored = await self._synchronizer.restore_sessions()
        loaded = self.sessions.load(restored)
        logger.info("Restored %d sessions from local store", loaded)
        return loaded

    def receive_payload(self, payload: Mapping[str, Any] | ChatPayload) -> SessionItem:
        """Feed a payload that arrived on the channel."""

        return self._ingest(payload)

    def push_locale_payload(self, payload: Mapping[str, Any] | ChatPayload) -> SessionItem:
        """Feed a payload sent from this client through the same path as inbound ones."""

        return self._ingest(payload)

    def clear_unread_message_count(self, key: str) -> None:
        self.sessions.clear_unread(key)

    @property
    def session_list(self) -> list[SessionView]:
        return self.sessions.sorted_sessions()

    @property
    def unread_message_count_total(self) -> int:
        return self.sessions.total_unread()

    @property
    def current_chat_room_history(self) -> list[dict[str, Any]]:
        return self.histories.get_or_init(self.current_chat_key)

    def handle_app_state_change(self, state: str) -> None:
        """Persist the session index when the app leaves the foreground."""

        if not is_leaving_foreground(self._settings.app_platform, state):
            return
        task = asyncio.create_task(self.persist_sessions())
        self._persist_tasks.add(task)
        task.add_done_callback(self._on_persist_done)

    def _on_persist_done(self, task: asyncio.Task) -> None:
        self._persist_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Session persist failed: %s", task.exception())

    async def persist_sessions(self) -> int:
        return await self._synchronizer.save_sessions(self.sessions.items())

    async def shutdown(self) -> None:
        """Stop listening to the lifecycle and wait for in-flight store work."""

        self._unsubscribe_lifecycle()
        if self._persist_tasks:
            await asyncio.gather(*list(self._persist_tasks), return_exceptions=True)
        await self.histories.drain()

    def _ingest(self, payload: Mapping[str, Any] | ChatPayload) -> SessionItem:
        item = self.sessions.upsert_from_payload(payload)
        self.histories.append(item.key, payload)
        return item
