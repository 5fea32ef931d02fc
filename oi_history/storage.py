from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Sequence

import pandas as pd

from oi_history.schemas.history import DisplayRow, HistoryArtifact

HISTORY_CSV_COLUMNS = ["timestamp", "time", "ceTotal", "ceDiff", "peTotal", "peDiff", "pcr"]


def _parse_jsonl(raw: str) -> list[Any]:
    return [json.loads(line) for line in raw.splitlines() if line.strip()]


def load_snapshots(path: Path) -> list[dict[str, Any]]:
    """
    Read captured snapshots, oldest first.

    Accepts a JSON array, an object with a ``history`` array, or JSONL with
    one snapshot per line. Records are returned unvalidated; the reducer
    skips entries it cannot parse.
    """
    raw = path.read_text(encoding="utf-8")
    if not raw.strip():
        return []
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        try:
            payload = _parse_jsonl(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid snapshots JSON at {path}") from exc

    if isinstance(payload, dict):
        if "history" in payload:
            payload = payload["history"]
        elif "timestamp" in payload:
            payload = [payload]
    if not isinstance(payload, list):
        raise ValueError(f"Invalid snapshots JSON at {path}: expected a list of snapshots")
    return [item for item in payload if isinstance(item, dict)]


def save_history_artifact(path: Path, artifact: HistoryArtifact) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(artifact.to_dict(), indent=2), encoding="utf-8")


def history_frame(rows: Sequence[DisplayRow]) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame(columns=HISTORY_CSV_COLUMNS)
    return pd.DataFrame([row.to_dict() for row in rows], columns=HISTORY_CSV_COLUMNS)


def write_history_csv(path: Path, rows: Sequence[DisplayRow]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    history_frame(rows).to_csv(path, index=False)
