from __future__ import annotations

from datetime import datetime, timezone
import logging
import os
from pathlib import Path
from zoneinfo import ZoneInfo

from oi_history.observability import build_log_path, finalize_run_logger, partition_day, setup_run_logger


def test_build_log_path_sanitizes_command_name(tmp_path: Path) -> None:
    now = datetime(2026, 10, 19, 4, 30, 0, tzinfo=timezone.utc)
    path = build_log_path(tmp_path, "history export/json", now=now)
    assert path.parent == tmp_path
    assert path.name == f"history_export_json_20261019T043000Z_{os.getpid()}.log"


def test_setup_run_logger_explicit_path(tmp_path: Path) -> None:
    log_path = tmp_path / "nested" / "run.log"
    run_logger = setup_run_logger(tmp_path, "history", log_path=log_path)
    assert run_logger is not None
    assert run_logger.log_path == log_path

    logging.getLogger("oi_history.analysis.history").info("child logger line")
    finalize_run_logger(run_logger)

    content = log_path.read_text(encoding="utf-8")
    assert "INFO oi_history: Start history" in content
    assert "child logger line" in content
    assert "End history duration=" in content


def test_setup_run_logger_partitions_by_day(tmp_path: Path) -> None:
    run_logger = setup_run_logger(tmp_path / "logs", "config-template")
    assert run_logger is not None
    finalize_run_logger(run_logger)
    assert run_logger.log_path is not None
    assert run_logger.log_path.parent.parent == tmp_path / "logs"
    assert run_logger.log_path.name.startswith("config-template_")


def test_log_day_folder_follows_partition_zone(tmp_path: Path) -> None:
    now = datetime(2026, 10, 19, 20, 0, tzinfo=timezone.utc)
    kolkata = setup_run_logger(tmp_path, "history", partition_tz=ZoneInfo("Asia/Kolkata"), now=now)
    assert kolkata is not None
    finalize_run_logger(kolkata)
    assert kolkata.log_path.parent == tmp_path / "2026-10-20"
    assert kolkata.log_path.name.startswith("history_20261019T200000Z_")

    utc = setup_run_logger(tmp_path, "history", partition_tz=timezone.utc, now=now)
    assert utc is not None
    finalize_run_logger(utc)
    assert utc.log_path.parent == tmp_path / "2026-10-19"


def test_partition_day_defaults_to_machine_zone() -> None:
    now = datetime(2026, 10, 19, 20, 0, tzinfo=timezone.utc)
    assert partition_day(now) == now.astimezone().strftime("%Y-%m-%d")
