from __future__ import annotations

from datetime import datetime
import math
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

OptionSide = Literal["CE", "PE"]


def _as_number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        out = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(out) or math.isinf(out):
        return 0.0
    return out


class _ChainModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class SideOI(_ChainModel):
    open_interest: float = Field(default=0.0, alias="openInterest")

    @field_validator("open_interest", mode="before")
    @classmethod
    def _coerce_oi(cls, value: Any) -> float:
        return _as_number(value)


class OptionRow(_ChainModel):
    strike_price: float = Field(default=0.0, alias="strikePrice")
    ce: SideOI | None = Field(default=None, alias="CE")
    pe: SideOI | None = Field(default=None, alias="PE")

    @field_validator("strike_price", mode="before")
    @classmethod
    def _coerce_strike(cls, value: Any) -> float:
        return _as_number(value)

    @field_validator("ce", "pe", mode="before")
    @classmethod
    def _drop_non_mapping(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, SideOI)) else None

    def open_interest(self, side: OptionSide) -> float:
        leg = self.ce if side == "CE" else self.pe
        return leg.open_interest if leg is not None else 0.0


class Records(_ChainModel):
    underlying_value: float = Field(default=0.0, alias="underlyingValue")
    data: list[OptionRow] = Field(default_factory=list)

    @field_validator("underlying_value", mode="before")
    @classmethod
    def _coerce_underlying(cls, value: Any) -> float:
        return _as_number(value)

    @field_validator("data", mode="before")
    @classmethod
    def _keep_rows(cls, value: Any) -> list:
        if not isinstance(value, (list, tuple)):
            return []
        return [row for row in value if isinstance(row, (dict, OptionRow))]


class SideTotal(_ChainModel):
    tot_oi: float = Field(default=0.0, alias="totOI")

    @field_validator("tot_oi", mode="before")
    @classmethod
    def _coerce_total(cls, value: Any) -> float:
        return _as_number(value)


class Filtered(_ChainModel):
    ce: SideTotal = Field(default_factory=SideTotal, alias="CE")
    pe: SideTotal = Field(default_factory=SideTotal, alias="PE")

    @field_validator("ce", "pe", mode="before")
    @classmethod
    def _default_side(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, SideTotal)) else {}


class ChainPayload(_ChainModel):
    records: Records = Field(default_factory=Records)
    filtered: Filtered = Field(default_factory=Filtered)

    @field_validator("records", "filtered", mode="before")
    @classmethod
    def _default_section(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, Records, Filtered)) else {}


class Snapshot(_ChainModel):
    """One captured option chain, keyed by the instant it was taken."""

    timestamp: datetime
    data: ChainPayload = Field(default_factory=ChainPayload)

    @field_validator("data", mode="before")
    @classmethod
    def _default_payload(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, ChainPayload)) else {}

    @property
    def underlying_value(self) -> float:
        return self.data.records.underlying_value

    @property
    def ce_total(self) -> float:
        return self.data.filtered.ce.tot_oi

    @property
    def pe_total(self) -> float:
        return self.data.filtered.pe.tot_oi

    def strike_oi(self) -> dict[float, tuple[float, float]]:
        """Map strike -> (CE OI, PE OI); the first row listed for a strike wins."""
        out: dict[float, tuple[float, float]] = {}
        for row in self.data.records.data:
            key = strike_key(row.strike_price)
            if key in out:
                continue
            out[key] = (row.open_interest("CE"), row.open_interest("PE"))
        return out


def strike_key(strike: float) -> float:
    return round(float(strike), 6)
