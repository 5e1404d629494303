from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatrelay.core.errors import StoreError
from chatrelay.repos.kv_repo import KeyValueRepo


class KeyValueStore(ABC):
    """Abstract async string key-value store."""

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        """Return the value under a key, or None when absent."""

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store a value under a key, replacing any previous value."""

    @abstractmethod
    async def multi_get(self, keys: Sequence[str]) -> list[tuple[str, Optional[str]]]:
        """Return (key, value) pairs in request order; missing values are None."""

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Delete a key if present."""


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store, mostly useful for tests and ephemeral runs."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    async def multi_get(self, keys: Sequence[str]) -> list[tuple[str, Optional[str]]]:
        return [(key, self._data.get(key)) for key in keys]

    async def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        """Return a copy of the stored data."""

        return dict(self._data)


class SQLiteKeyValueStore(KeyValueStore):
    """SQLAlchemy-backed store; each call runs in its own short transaction."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def get_item(self, key: str) -> Optional[str]:
        try:
            async with self._sessionmaker() as db:
                return await KeyValueRepo(db).get_value(key)
        except SQLAlchemyError as exc:
            raise StoreError(f"get_item({key!r}) failed: {exc}") from exc

    async def set_item(self, key: str, value: str) -> None:
        try:
            async with self._sessionmaker() as db:
                async with db.begin():
                    await KeyValueRepo(db).upsert_value(key, value)
        except SQLAlchemyError as exc:
            raise StoreError(f"set_item({key!r}) failed: {exc}") from exc

    async def multi_get(self, keys: Sequence[str]) -> list[tuple[str, Optional[str]]]:
        try:
            async with self._sessionmaker() as db:
                found = await KeyValueRepo(db).get_values(keys)
        except SQLAlchemyError as exc:
            raise StoreError(f"multi_get of {len(keys)} keys failed: {exc}") from exc
        return [(key, found.get(key)) for key in keys]

    async def remove_item(self, key: str) -> None:
        try:
            async with self._sessionmaker() as db:
                async with db.begin():
                    await KeyValueRepo(db).delete_value(key)
        except SQLAlchemyError as exc:
            raise StoreError(f"remove_item({key!r}) failed: {exc}") from exc
