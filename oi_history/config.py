from __future__ import annotations

import json
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from jsonschema import Draft202012Validator
from pydantic import BaseModel, ConfigDict, Field

SCHEMA_PATH = Path(__file__).with_name("history.schema.json")

Rounding = Literal["half_away_from_zero", "half_even"]
Clock = Literal["24h", "12h"]
TimeFilter = Literal["1h", "3h", "6h", "24h", "all"]


class ConfigError(ValueError):
    pass


class HistoryConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    schema_version: int = 1

    # ATM strike = round(spot / strike_step) * strike_step
    strike_step: float = Field(default=50.0, gt=0.0)
    strike_count: int = Field(default=5, ge=1)
    rounding: Rounding = "half_away_from_zero"

    # Row rendering
    clock: Clock = "24h"
    # None -> system local zone
    timezone: str | None = None
    time_filter: TimeFilter = "all"

    def tzinfo(self) -> ZoneInfo | None:
        if not self.timezone:
            return None
        return ZoneInfo(self.timezone)


def load_history_config(
    config_path: Path | str | None = None,
    schema_path: Path | str = SCHEMA_PATH,
) -> HistoryConfig:
    if config_path is None:
        return HistoryConfig()

    config_path = Path(config_path)
    schema_path = Path(schema_path)

    if not config_path.exists():
        raise ConfigError(f"Missing config file: {config_path}")
    if not schema_path.exists():
        raise ConfigError(f"Missing schema file: {schema_path}")

    with config_path.open("r", encoding="utf-8") as f:
        try:
            cfg = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}") from exc

    if cfg is None:
        return HistoryConfig()
    if not isinstance(cfg, dict):
        raise ConfigError("History config is empty or invalid.")

    with schema_path.open("r", encoding="utf-8") as f:
        schema = json.load(f)

    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(cfg), key=lambda e: list(e.path))
    if errors:
        messages = []
        for err in errors[:10]:
            loc = ".".join(str(p) for p in err.path) or "<root>"
            messages.append(f"{loc}: {err.message}")
        raise ConfigError("History config schema validation failed: " + "; ".join(messages))

    _light_validate(cfg)
    return HistoryConfig.model_validate(cfg)


def _light_validate(cfg: dict) -> None:
    strike_count = int(cfg.get("strike_count", 1))
    if strike_count % 2 == 0:
        raise ConfigError("strike_count must be odd so the band is centred on ATM")

    tz_name = cfg.get("timezone")
    if tz_name:
        try:
            ZoneInfo(str(tz_name))
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"Unknown timezone: {tz_name}") from exc


def write_config_template(path: Path, *, force: bool = False) -> None:
    if path.exists() and not force:
        raise FileExistsError(f"{path} already exists (use --force to overwrite)")
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = HistoryConfig().model_dump(mode="json")
    path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
