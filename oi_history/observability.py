from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
import logging
import os
from pathlib import Path
import time

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOGGER_NAME = "oi_history"


@dataclass(frozen=True)
class RunLogger:
    logger: logging.Logger
    log_path: Path
    started_at: datetime
    start_perf: float
    command_name: str


def _safe_name(value: str) -> str:
    cleaned = "".join(ch if ch.isalnum() or ch in {"-", "_"} else "_" for ch in value.strip())
    return cleaned or "oi_history"


def build_log_path(log_dir: Path, command_name: str, *, now: datetime | None = None) -> Path:
    timestamp = (now or datetime.now(timezone.utc)).astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return log_dir / f"{_safe_name(command_name)}_{timestamp}_{os.getpid()}.log"


def partition_day(now: datetime, partition_tz: tzinfo | None = None) -> str:
    """Day folder name for a run; `partition_tz=None` uses the machine zone."""
    return now.astimezone(partition_tz).strftime("%Y-%m-%d")


def setup_run_logger(
    log_dir: Path,
    command_name: str,
    *,
    level: int = logging.INFO,
    log_path: Path | None = None,
    partition_tz: tzinfo | None = None,
    now: datetime | None = None,
) -> RunLogger | None:
    """
    Attach a per-run file handler to the package logger.

    Without an explicit `log_path` the file lands in `log_dir/<YYYY-MM-DD>/`,
    the day taken in `partition_tz` (the same zone history rows are shown in).
    Returns None when the log location cannot be created.
    """
    started_at = now or datetime.now(timezone.utc)
    if log_path is None:
        day_dir = log_dir / partition_day(started_at, partition_tz)
        log_path = build_log_path(day_dir, command_name, now=started_at)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        return None

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False
    _drop_file_handlers(logger)

    handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    logger.info("Start %s", command_name)
    return RunLogger(
        logger=logger,
        log_path=log_path,
        started_at=started_at,
        start_perf=time.perf_counter(),
        command_name=command_name,
    )


def finalize_run_logger(run_logger: RunLogger) -> None:
    elapsed = time.perf_counter() - run_logger.start_perf
    run_logger.logger.info("End %s duration=%.2fs", run_logger.command_name, elapsed)
    for handler in list(run_logger.logger.handlers):
        if isinstance(handler, logging.FileHandler):
            handler.flush()


def _drop_file_handlers(logger: logging.Logger) -> None:
    # one log file per run; handlers left by an earlier run in the same process go
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            handler.close()
            logger.removeHandler(handler)
