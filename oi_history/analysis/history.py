"""
Reduce a raw, append-only run of option-chain snapshots into display rows.

Stages, applied oldest-first:

1. ``filter_by_date`` keeps one calendar day.
2. ``filter_by_trailing_window`` keeps the last N hours (skipped for past days).
3. ``dedupe_by_strike_band`` drops snapshots whose CE/PE OI did not move at any
   strike near ATM, compared with the last snapshot that was kept.
4. ``project_metrics`` derives totals, diffs and PCR, then flips to newest-first.

Nothing here performs I/O or keeps state between calls; missing fields in the
chain payload read as zero instead of raising.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from functools import reduce
import logging
from typing import Any, Iterable, Mapping, Sequence

from pydantic import ValidationError

from oi_history.analysis.strikes import DEFAULT_STRIKE_STEP, atm_strike, strike_band
from oi_history.config import Clock, HistoryConfig, Rounding
from oi_history.models import Snapshot
from oi_history.schemas.common import utc_now
from oi_history.schemas.history import DisplayRow, HistoryArtifact

logger = logging.getLogger(__name__)

TRAILING_WINDOW_HOURS = {"1h": 1, "3h": 3, "6h": 6}
DEFAULT_TRAILING_HOURS = 24
ZERO_PCR = "0.00"

_CLOCK_FORMATS = {"24h": "%H:%M:%S", "12h": "%I:%M:%S"}
_PCR_QUANTUM = Decimal("0.01")


def coerce_snapshots(snapshots: Iterable[Snapshot | Mapping[str, Any]]) -> list[Snapshot]:
    """Validate raw records, skipping any whose timestamp cannot be parsed."""
    out: list[Snapshot] = []
    for idx, item in enumerate(snapshots):
        if isinstance(item, Snapshot):
            out.append(item)
            continue
        try:
            out.append(Snapshot.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping snapshot #%d: %s", idx, exc.errors(include_url=False)[0].get("msg"))
    return out


def _localize(naive: datetime, tz: tzinfo | None) -> datetime:
    if tz is not None:
        return naive.replace(tzinfo=tz)
    return naive.astimezone()


def to_local(ts: datetime, tz: tzinfo | None = None) -> datetime:
    """Aware datetime in `tz` (system local zone when None); naive input is read as local."""
    if ts.tzinfo is None:
        return _localize(ts, tz)
    return ts.astimezone(tz)


def _resolve_now(now: datetime | None, tz: tzinfo | None) -> datetime:
    if now is None:
        return utc_now().astimezone(tz)
    return to_local(now, tz)


def day_bounds(selected_date: date, tz: tzinfo | None = None) -> tuple[datetime, datetime]:
    start = _localize(datetime.combine(selected_date, time.min), tz)
    end = _localize(datetime.combine(selected_date, time.max), tz)
    return start, end


def filter_by_date(
    snapshots: Sequence[Snapshot],
    selected_date: date | None,
    *,
    tz: tzinfo | None = None,
) -> list[Snapshot]:
    if selected_date is None:
        return list(snapshots)
    start, end = day_bounds(selected_date, tz)
    return [s for s in snapshots if start <= to_local(s.timestamp, tz) <= end]


def is_past_date(selected_date: date | None, *, now: datetime | None = None, tz: tzinfo | None = None) -> bool:
    if selected_date is None:
        return False
    return selected_date < _resolve_now(now, tz).date()


def trailing_window_hours(time_filter: str | None) -> int | None:
    if time_filter is None or time_filter == "all":
        return None
    return TRAILING_WINDOW_HOURS.get(time_filter, DEFAULT_TRAILING_HOURS)


def filter_by_trailing_window(
    snapshots: Sequence[Snapshot],
    time_filter: str | None,
    *,
    selected_date: date | None = None,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> list[Snapshot]:
    """
    Keep snapshots taken within the trailing window ending at `now`.

    A past `selected_date` shows the whole day: a window relative to the
    current wall clock would otherwise exclude all of it.
    """
    hours = trailing_window_hours(time_filter)
    if hours is None:
        return list(snapshots)
    if is_past_date(selected_date, now=now, tz=tz):
        return list(snapshots)
    cutoff = _resolve_now(now, tz) - timedelta(hours=hours)
    return [s for s in snapshots if to_local(s.timestamp, tz) >= cutoff]


def band_oi_changed(candidate: Snapshot, reference: Snapshot, band: Sequence[float]) -> bool:
    cand_oi = candidate.strike_oi()
    ref_oi = reference.strike_oi()
    for strike in band:
        if cand_oi.get(strike, (0.0, 0.0)) != ref_oi.get(strike, (0.0, 0.0)):
            return True
    return False


@dataclass
class _BandFold:
    kept: list[Snapshot] = field(default_factory=list)
    last_kept: Snapshot | None = None


def dedupe_by_strike_band(
    snapshots: Sequence[Snapshot],
    strike_count: int,
    *,
    step: float = DEFAULT_STRIKE_STEP,
    rounding: Rounding = "half_away_from_zero",
) -> list[Snapshot]:
    """
    Collapse runs of snapshots with no OI movement near the money.

    Each candidate is compared with the most recently *kept* snapshot, so a
    slow drift spread over several dropped snapshots still surfaces once it
    adds up to a change.
    """

    def _step(state: _BandFold, snapshot: Snapshot) -> _BandFold:
        if state.last_kept is None:
            state.kept.append(snapshot)
            state.last_kept = snapshot
            return state
        atm = atm_strike(snapshot.underlying_value, step=step, rounding=rounding)
        band = strike_band(atm, strike_count, step=step)
        if band_oi_changed(snapshot, state.last_kept, band):
            state.kept.append(snapshot)
            state.last_kept = snapshot
        return state

    return reduce(_step, snapshots, _BandFold()).kept


def format_pcr(ce_total: float, pe_total: float) -> str:
    """PE/CE ratio to two decimals, ties rounded away from zero."""
    if ce_total > 0:
        ratio = Decimal(str(pe_total / ce_total)).quantize(_PCR_QUANTUM, rounding=ROUND_HALF_UP)
        return f"{ratio:.2f}"
    return ZERO_PCR


def format_time(ts: datetime, *, clock: Clock = "24h", tz: tzinfo | None = None) -> str:
    local = to_local(ts, tz)
    text = local.strftime(_CLOCK_FORMATS.get(clock, _CLOCK_FORMATS["24h"]))
    if clock == "12h":
        # %p is locale dependent; the marker is always AM or PM.
        return f"{text} {'AM' if local.hour < 12 else 'PM'}"
    return text


def project_metrics(
    snapshots: Sequence[Snapshot],
    *,
    clock: Clock = "24h",
    tz: tzinfo | None = None,
) -> list[DisplayRow]:
    rows: list[DisplayRow] = []
    prev: Snapshot | None = None
    for snapshot in snapshots:
        ce_total = snapshot.ce_total
        pe_total = snapshot.pe_total
        rows.append(
            DisplayRow(
                timestamp=snapshot.timestamp,
                time=format_time(snapshot.timestamp, clock=clock, tz=tz),
                ce_total=ce_total,
                pe_total=pe_total,
                pcr=format_pcr(ce_total, pe_total),
                ce_diff=ce_total - prev.ce_total if prev is not None else 0.0,
                pe_diff=pe_total - prev.pe_total if prev is not None else 0.0,
            )
        )
        prev = snapshot
    rows.reverse()
    return rows


def reduce_snapshot_history(
    snapshots: Iterable[Snapshot | Mapping[str, Any]],
    *,
    selected_date: date | None = None,
    time_filter: str | None = None,
    strike_count: int | None = None,
    config: HistoryConfig | None = None,
    now: datetime | None = None,
) -> list[DisplayRow]:
    """Run all four stages; returns display rows newest-first."""
    cfg = config or HistoryConfig()
    tz = cfg.tzinfo()
    count = cfg.strike_count if strike_count is None else strike_count

    parsed = coerce_snapshots(snapshots)
    dated = filter_by_date(parsed, selected_date, tz=tz)
    windowed = filter_by_trailing_window(dated, time_filter, selected_date=selected_date, now=now, tz=tz)
    kept = dedupe_by_strike_band(windowed, count, step=cfg.strike_step, rounding=cfg.rounding)
    logger.debug(
        "history reduce input=%d dated=%d windowed=%d kept=%d",
        len(parsed),
        len(dated),
        len(windowed),
        len(kept),
    )
    return project_metrics(kept, clock=cfg.clock, tz=tz)


def build_history_artifact(
    rows: Sequence[DisplayRow],
    *,
    strike_count: int,
    selected_date: date | None = None,
    time_filter: str | None = None,
    generated_at: datetime | None = None,
) -> HistoryArtifact:
    return HistoryArtifact(
        generated_at=generated_at or utc_now(),
        selected_date=selected_date,
        time_filter=time_filter,
        strike_count=strike_count,
        row_count=len(rows),
        rows=list(rows),
    )
