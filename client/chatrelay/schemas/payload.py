from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import Field, ValidationError, field_validator, model_validator

from chatrelay.core.errors import PayloadError
from chatrelay.schemas.common import PayloadModel

LOCAL_MARKER_FIELD = "localeExt"


class PeerInfo(PayloadModel):
    """Descriptor of the other participant of a conversation."""

    user_id: Optional[str] = Field(default=None, alias="userId")
    avatar: Optional[str] = None
    name: Optional[str] = None

    @field_validator("user_id", mode="before")
    @classmethod
    def _coerce_user_id(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)


class MessageBody(PayloadModel):
    """Message content carried in the `msg` field."""

    content: str = ""


class MessageExt(PayloadModel):
    """Peer metadata attached by the server to inbound messages."""

    timestamp: int
    avatar: Optional[str] = None
    name: Optional[str] = None


class LocaleExt(PayloadModel):
    """Metadata attached to payloads sent from this client."""

    to_info: PeerInfo = Field(alias="toInfo")


class ChatPayload(PayloadModel):
    """A single chat message as seen on the channel."""

    sender: str = Field(alias="from")
    receiver: str = Field(alias="to")
    uuid: str
    msg: MessageBody
    ext: Optional[MessageExt] = None
    locale_ext: Optional[LocaleExt] = Field(default=None, alias=LOCAL_MARKER_FIELD)

    @field_validator("sender", "receiver", "uuid", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @model_validator(mode="after")
    def _require_direction_metadata(self) -> "ChatPayload":
        if self.locale_ext is None and self.ext is None:
            raise ValueError("inbound payload must carry `ext` metadata")
        return self

    @property
    def is_local(self) -> bool:
        """Return True when the payload originated from this client."""

        return self.locale_ext is not None

    @classmethod
    def parse(cls, raw: Mapping[str, Any] | "ChatPayload") -> "ChatPayload":
        """Validate a raw payload mapping, raising PayloadError on bad shape."""

        if isinstance(raw, ChatPayload):
            return raw
        if not isinstance(raw, Mapping):
            raise PayloadError(f"payload must be an object, got {type(raw).__name__}")
        try:
            return cls.model_validate(dict(raw))
        except ValidationError as exc:
            raise PayloadError(f"invalid chat payload: {exc.error_count()} error(s): {exc}") from exc


def to_message_record(raw: Mapping[str, Any] | ChatPayload) -> dict[str, Any]:
    """Return the storable record: the raw payload without local-only fields."""

    if isinstance(raw, ChatPayload):
        data = raw.model_dump(by_alias=True, exclude_none=True)
    else:
        data = dict(raw)
    data.pop(LOCAL_MARKER_FIELD, None)
    return data
