from __future__ import annotations

from oi_history.schemas.common import ArtifactBase, utc_now
from oi_history.schemas.history import DisplayRow, HistoryArtifact

__all__ = [
    "ArtifactBase",
    "DisplayRow",
    "HistoryArtifact",
    "utc_now",
]
