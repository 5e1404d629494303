from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from chatrelay.channel.adapter import ChannelAdapter
from chatrelay.channel.websocket import WebSocketChannel
from chatrelay.core.config import Settings, get_settings
from chatrelay.core.logging import setup_logging
from chatrelay.db.base import create_engine, create_sessionmaker, init_db
from chatrelay.services.chat_relay import ChatRelay
from chatrelay.services.lifecycle import AppLifecycle
from chatrelay.store.kv_store import KeyValueStore, MemoryKeyValueStore, SQLiteKeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class RelayRuntime:
    """A started relay together with the resources it owns."""

    relay: ChatRelay
    store: KeyValueStore
    lifecycle: AppLifecycle
    engine: Optional[AsyncEngine] = None

    async def aclose(self) -> None:
        await self.relay.shutdown()
        if self.engine is not None:
            await self.engine.dispose()


async def create_runtime(
    settings: Optional[Settings] = None,
    lifecycle: Optional[AppLifecycle] = None,
) -> RelayRuntime:
    """Create the store, build the relay and restore its session index."""

    settings = settings or get_settings()
    setup_logging(settings.log_level)
    lifecycle = lifecycle or AppLifecycle()

    engine: Optional[AsyncEngine] = None
    store: KeyValueStore
    if settings.uses_memory_store():
        store = MemoryKeyValueStore()
    else:
        engine = create_engine(settings.store_url)
        await init_db(engine)
        store = SQLiteKeyValueStore(create_sessionmaker(engine))

    relay = ChatRelay(settings, store, lifecycle)
    await relay.start()
    return RelayRuntime(relay=relay, store=store, lifecycle=lifecycle, engine=engine)


async def run(settings: Optional[Settings] = None) -> None:
    """Run the relay against the configured channel until it disconnects."""

    settings = settings or get_settings()
    runtime = await create_runtime(settings)
    endpoint = settings.channel_endpoint()
    channel = WebSocketChannel(endpoint)
    ChannelAdapter(runtime.relay).bind(channel)
    logger.info("Connecting to %s", endpoint)
    try:
        await channel.run()
    finally:
        await runtime.relay.persist_sessions()
        await runtime.aclose()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
