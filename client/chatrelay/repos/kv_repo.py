from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from chatrelay.db.models import KeyValueEntry
from chatrelay.utils.time_utils import utc_now


class KeyValueRepo:
    """Repository for raw key-value rows."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_value(self, key: str) -> Optional[str]:
        """Fetch the value stored under a key."""

        result = await self._db.execute(
            select(KeyValueEntry.value).where(KeyValueEntry.key == key)
        )
        return result.scalar_one_or_none()

    async def get_values(self, keys: Sequence[str]) -> dict[str, str]:
        """Fetch all existing values for the given keys in one query."""

        if not keys:
            return {}
        result = await self._db.execute(
            select(KeyValueEntry.key, KeyValueEntry.value).where(
                KeyValueEntry.key.in_(list(keys))
            )
        )
        return {key: value for key, value in result}

    async def upsert_value(self, key: str, value: str) -> None:
        """Insert or replace the value under a key in a single statement."""

        now = utc_now()
        stmt = sqlite_insert(KeyValueEntry).values(key=key, value=value, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[KeyValueEntry.key],
            set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
        )
        await self._db.execute(stmt)
        await self._db.flush()

    async def delete_value(self, key: str) -> None:
        """Delete the row for a key if present."""

        await self._db.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))
        await self._db.flush()
