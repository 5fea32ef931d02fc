from __future__ import annotations

from datetime import date, datetime

from pydantic import Field

from oi_history.schemas.common import ArtifactBase


class DisplayRow(ArtifactBase):
    timestamp: datetime
    time: str
    ce_total: float = Field(alias="ceTotal")
    pe_total: float = Field(alias="peTotal")
    pcr: str
    ce_diff: float = Field(default=0.0, alias="ceDiff")
    pe_diff: float = Field(default=0.0, alias="peDiff")


class HistoryArtifact(ArtifactBase):
    schema_version: int = 1
    generated_at: datetime
    selected_date: date | None = None
    time_filter: str | None = None
    strike_count: int
    row_count: int = 0
    rows: list[DisplayRow] = Field(default_factory=list)
