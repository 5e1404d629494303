from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError

from chatrelay.core.errors import RelayError
from chatrelay.schemas.session import SessionItem
from chatrelay.store.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

SESSION_KEYS_KEY = "session:list:map:keys"
SESSION_ITEM_PREFIX = "session:list:"
MESSAGE_HISTORY_PREFIX = "message:history:"
MESSAGE_ITEM_PREFIX = "message:item:"
LIST_SEPARATOR = ","

DEFAULT_PAGE_SIZE = 13


def session_item_key(key: str) -> str:
    return f"{SESSION_ITEM_PREFIX}{key}"


def message_history_key(key: str) -> str:
    return f"{MESSAGE_HISTORY_PREFIX}{key}"


def message_item_key(uuid: str) -> str:
    return f"{MESSAGE_ITEM_PREFIX}{uuid}"


def _split_list(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [item for item in raw.split(LIST_SEPARATOR) if item]


class PersistenceSynchronizer:
    """Save and restore sessions and message histories in a key-value store.

    Layout:
      session:list:map:keys    comma-joined conversation keys
      session:list:<key>       JSON session snapshot
      message:history:<key>    comma-joined message uuids, oldest first
      message:item:<uuid>      JSON message record

    Every operation is attempted once. Failures are logged and contained to
    the operation (or, for session restore, the single key) that hit them.
    """

    def __init__(self, store: KeyValueStore, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._store = store
        self._page_size = page_size
        # Serializes the read-modify-write of each conversation's id list.
        self._history_locks: dict[str, asyncio.Lock] = {}

    @property
    def page_size(self) -> int:
        return self._page_size

    async def save_message(self, key: str, record: Mapping[str, Any]) -> bool:
        """Persist one new message record and append its uuid to the history list.

        The record is written before the id list, so an interrupted save can
        leave an orphan record but never an id without a record.
        Saves for the same key run one at a time, in the order they were issued.
        """

        uuid = str(record.get("uuid") or "")
        if not uuid:
            logger.warning("Skipping persist of message without uuid in %s", key)
            return False
        history_key = message_history_key(key)
        async with self._history_lock(key):
            try:
                await self._store.set_item(
                    message_item_key(uuid), json.dumps(dict(record), ensure_ascii=False)
                )
                history = await self._store.get_item(history_key)
                joined = f"{history}{LIST_SEPARATOR}{uuid}" if history else uuid
                await self._store.set_item(history_key, joined)
            except (RelayError, TypeError, ValueError) as exc:
                logger.error("Failed to persist message %s for %s: %s", uuid, key, exc)
                return False
        return True

    async def restore_messages(self, key: str) -> Optional[list[dict[str, Any]]]:
        """Load the latest page of persisted messages for a conversation.

        Returns None when nothing is persisted for the key or the restore
        failed; the caller keeps its in-memory history in that case.
        """

        try:
            history = await self._store.get_item(message_history_key(key))
            uuids = _split_list(history)
            if not uuids:
                return None
            page = uuids[-self._page_size :]
            rows = await self._store.multi_get([message_item_key(uuid) for uuid in page])
        except RelayError as exc:
            logger.error("Failed to read message history for %s: %s", key, exc)
            return None

        records: list[dict[str, Any]] = []
        for item_key, raw in rows:
            if raw is None:
                logger.warning("Message history for %s references missing %s", key, item_key)
                continue
            try:
                record = json.loads(raw)
            except json.JSONDecodeError as exc:
                logger.error("Corrupt message record %s in %s: %s", item_key, key, exc)
                return None
            if isinstance(record, dict):
                records.append(record)
        return records

    async def save_sessions(self, items: Iterable[tuple[str, SessionItem]]) -> int:
        """Write the key list and one snapshot per session. Returns snapshots written."""

        entries = list(items)
        try:
            await self._store.set_item(
                SESSION_KEYS_KEY, LIST_SEPARATOR.join(key for key, _ in entries)
            )
        except RelayError as exc:
            logger.error("Failed to persist session key list: %s", exc)
            return 0

        written = 0
        for key, item in entries:
            try:
                await self._store.set_item(session_item_key(key), item.to_json())
            except RelayError as exc:
                logger.error("Failed to persist session %s: %s", key, exc)
                continue
            written += 1
        logger.info("Persisted %d/%d sessions", written, len(entries))
        return written

    async def restore_sessions(self) -> list[SessionItem]:
        """Read every persisted session snapshot; bad entries are skipped."""

        try:
            keys = _split_list(await self._store.get_item(SESSION_KEYS_KEY))
        except RelayError as exc:
            logger.error("Failed to read session key list: %s", exc)
            return []

        restored: list[SessionItem] = []
        for key in keys:
            try:
                raw = await self._store.get_item(session_item_key(key))
            except RelayError as exc:
                logger.error("Failed to read session %s: %s", key, exc)
                continue
            if raw is None:
                logger.warning("Session key list references missing snapshot %s", key)
                continue
            try:
                restored.append(SessionItem.from_json(raw))
            except ValidationError as exc:
                logger.error("Corrupt session snapshot %s: %s", key, exc)
        return restored

    def _history_lock(self, key: str) -> asyncio.Lock:
        lock = self._history_locks.get(key)
        if lock is None:
            lock = self._history_locks[key] = asyncio.Lock()
        return lock
