from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from pathlib import Path

import typer
from rich.console import Console

from oi_history.analysis.history import (
    TRAILING_WINDOW_HOURS,
    build_history_artifact,
    reduce_snapshot_history,
)
from oi_history.config import ConfigError, load_history_config, write_config_template
from oi_history.observability import finalize_run_logger, setup_run_logger
from oi_history.reporting import render_history
from oi_history.storage import load_snapshots, save_history_artifact, write_history_csv

app = typer.Typer(add_completion=False, help="Reduce captured option-chain snapshots into an OI history.")

logger = logging.getLogger(__name__)

_KNOWN_TIME_FILTERS = {*TRAILING_WINDOW_HOURS, "24h", "all"}


@dataclass(frozen=True)
class _LogSettings:
    log_dir: Path = Path("data/logs")
    level: int = logging.INFO


def _parse_date(value: str) -> date:
    value = value.strip()
    for fmt in ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise typer.BadParameter("Invalid date format. Use YYYY-MM-DD (recommended).")


@app.callback()
def main(
    ctx: typer.Context,
    log_dir: Path = typer.Option(
        Path("data/logs"),
        "--log-dir",
        help="Directory for per-run log files (partitioned by day).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log reducer stage counts (DEBUG)."),
) -> None:
    ctx.obj = _LogSettings(log_dir=log_dir, level=logging.DEBUG if verbose else logging.INFO)


def _start_run_logger(ctx: typer.Context, command_name: str, tz: tzinfo | None) -> None:
    settings = ctx.obj if isinstance(ctx.obj, _LogSettings) else _LogSettings()
    run_logger = setup_run_logger(settings.log_dir, command_name, level=settings.level, partition_tz=tz)
    if run_logger is not None:
        ctx.call_on_close(lambda: finalize_run_logger(run_logger))


@app.command("history")
def history(
    ctx: typer.Context,
    snapshots_path: Path = typer.Argument(..., help="Snapshots file (JSON array, {'history': [...]}, or JSONL)."),
    date_text: str | None = typer.Option(None, "--date", help="Calendar day to show (YYYY-MM-DD)."),
    time_filter: str | None = typer.Option(
        None,
        "--time-filter",
        help="Trailing window: 1h|3h|6h|24h|all (default from config).",
    ),
    strike_count: int | None = typer.Option(
        None,
        "--strike-count",
        min=1,
        help="Strikes around ATM compared when collapsing unchanged snapshots (odd).",
    ),
    config_path: Path | None = typer.Option(None, "--config", help="YAML config (see config/history.yaml)."),
    limit: int | None = typer.Option(None, "--limit", min=1, help="Show only the newest N rows."),
    as_json: bool = typer.Option(False, "--json", help="Print the history artifact as JSON."),
    out: Path | None = typer.Option(None, "--out", help="Write the history artifact JSON to this path."),
    csv_path: Path | None = typer.Option(None, "--csv", help="Write history rows as CSV to this path."),
) -> None:
    """Filter, de-duplicate and summarise OI history (newest first)."""
    console = Console()

    try:
        cfg = load_history_config(config_path)
    except ConfigError as exc:
        _start_run_logger(ctx, "history", None)
        logger.error("Invalid config %s: %s", config_path, exc)
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(2) from exc
    _start_run_logger(ctx, "history", cfg.tzinfo())

    try:
        snapshots = load_snapshots(snapshots_path)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(2) from exc

    selected_date = _parse_date(date_text) if date_text else None
    effective_filter = time_filter or cfg.time_filter
    if effective_filter not in _KNOWN_TIME_FILTERS:
        logger.warning("Unrecognised time filter %r; using the 24h window", effective_filter)
    count = strike_count or cfg.strike_count

    rows = reduce_snapshot_history(
        snapshots,
        selected_date=selected_date,
        time_filter=effective_filter,
        strike_count=count,
        config=cfg,
    )
    logger.info("history snapshots=%d rows=%d", len(snapshots), len(rows))

    artifact = build_history_artifact(
        rows,
        strike_count=count,
        selected_date=selected_date,
        time_filter=effective_filter,
    )
    if out is not None:
        save_history_artifact(out, artifact)
        logger.info("Wrote history artifact %s", out)
    if csv_path is not None:
        write_history_csv(csv_path, rows)
        logger.info("Wrote history CSV %s", csv_path)

    if as_json:
        typer.echo(json.dumps(artifact.to_dict(), indent=2))
        return
    render_history(console, rows, limit=limit)


@app.command("config-template")
def config_template(
    ctx: typer.Context,
    path: Path = typer.Argument(Path("config/history.yaml"), help="Where to write the YAML config."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    """Write a config file holding the default reduction settings."""
    _start_run_logger(ctx, "config-template", None)
    try:
        write_config_template(path, force=force)
    except FileExistsError as exc:
        raise typer.BadParameter(str(exc)) from exc
    Console().print(f"Wrote config to {path}")


if __name__ == "__main__":
    app()
