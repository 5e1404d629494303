from __future__ import annotations

from typing import Optional

from pydantic import ConfigDict, Field

from chatrelay.schemas.common import PayloadModel
from chatrelay.schemas.payload import PeerInfo


class SessionItem(PayloadModel):
    """Summary of a conversation's latest state."""

    model_config = ConfigDict(extra="ignore")

    key: str
    avatar: Optional[str] = None
    name: Optional[str] = None
    latest_message: str = Field(default="", alias="latestMessage")
    timestamp: int
    un_read_message_count: int = Field(default=0, ge=0, alias="unReadMessageCount")
    to_info: PeerInfo = Field(alias="toInfo")

    def to_json(self) -> str:
        """Serialize to the stored snapshot format."""

        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str) -> "SessionItem":
        """Parse a stored snapshot."""

        return cls.model_validate_json(raw)


class SessionView(SessionItem):
    """Session item annotated with a relative-time label for display."""

    latest_time: str = Field(alias="latestTime")
