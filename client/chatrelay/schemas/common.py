from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class PayloadModel(BaseModel):
    """Base model for channel payloads; accepts field names or wire aliases."""

    model_config = ConfigDict(
        populate_by_name=True, extra="allow", protected_namespaces=()
    )
