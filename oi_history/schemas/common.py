from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ArtifactBase(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:  # noqa: D401 - concise helper
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_json(cls, payload: str):  # noqa: ANN001
        return cls.model_validate_json(payload)
