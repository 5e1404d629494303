from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Relay settings loaded from environment variables."""

    app_env: str = Field(default="dev", alias="APP_ENV")
    app_platform: str = Field(default="ios", alias="APP_PLATFORM")
    channel_url: str = Field(default="ws://127.0.0.1:3000/ws", alias="CHANNEL_URL")
    channel_token: str = Field(default="", alias="CHANNEL_TOKEN")
    store_url: str = Field(
        default="sqlite+aiosqlite:///./chat_relay.db", alias="STORE_URL"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    # Larger pages break scroll-to-bottom on the first render of lazy list views.
    history_page_size: int = Field(default=13, alias="HISTORY_PAGE_SIZE")
    time_locale: str = Field(default="zh-cn", alias="TIME_LOCALE")

    model_config = SettingsConfigDict(env_file=(".env", "client/.env"), extra="ignore")

    def channel_endpoint(self) -> str:
        """Return the channel URL with the auth token attached, if any."""

        token: Optional[str] = (self.channel_token or "").strip() or None
        if not token:
            return self.channel_url
        separator = "&" if "?" in self.channel_url else "?"
        return f"{self.channel_url}{separator}token={token}"

    def uses_memory_store(self) -> bool:
        """Return True when the store URL selects the in-process backend."""

        return self.store_url.strip().lower().startswith("memory://")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached relay settings."""

    return Settings()
