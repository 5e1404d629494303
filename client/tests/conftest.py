import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from chatrelay.core.config import Settings, get_settings
from chatrelay.db.base import create_engine, create_sessionmaker, init_db
from chatrelay.services.chat_relay import ChatRelay
from chatrelay.services.lifecycle import AppLifecycle
from chatrelay.store.kv_store import MemoryKeyValueStore, SQLiteKeyValueStore

FIXED_NOW_MS = 1_700_000_000_000


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.setenv("STORE_URL", "memory://")
    monkeypatch.setenv("APP_PLATFORM", "ios")
    monkeypatch.setenv("TIME_LOCALE", "en")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
async def sqlite_store(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test_relay.db'}")
    await init_db(engine)
    yield SQLiteKeyValueStore(create_sessionmaker(engine))
    await engine.dispose()


@pytest.fixture
def lifecycle():
    return AppLifecycle()


@pytest.fixture
async def relay(settings: Settings, store, lifecycle):
    relay = ChatRelay(settings, store, lifecycle, clock=lambda: FIXED_NOW_MS)
    await relay.start()
    yield relay
    await relay.shutdown()
