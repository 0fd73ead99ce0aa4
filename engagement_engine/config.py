"""Engine configuration constants with optional YAML overrides."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from engagement_engine.errors import EngineError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """Named constants used across the engine.

    Defaults reproduce the dashboard and journal behavior; a YAML file can
    override any of them by field name.
    """

    # Calendar days are keyed in this zone.
    timezone: str = "America/Sao_Paulo"

    # Divisor for "average per day" over the unbounded All period, and the
    # length of its day series.
    all_time_day_count: int = 30

    # One micro-unit adds this much to a day's series value, capped.
    series_unit_weight: int = 10
    series_cap: int = 100

    # Volatility tiers by mood standard deviation (upper bounds, inclusive).
    low_volatility_max: float = 0.8
    moderate_volatility_max: float = 1.2

    top_labels_limit: int = 5

    weekday_labels: tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

    def __post_init__(self):
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError, TypeError) as exc:
            raise EngineError(
                f"Unknown timezone '{self.timezone}'", hint="use an IANA zone name such as America/Sao_Paulo"
            ) from exc
        if len(self.weekday_labels) != 7:
            raise EngineError("weekday_labels must name exactly 7 days, Monday first")
        if self.all_time_day_count < 1:
            raise EngineError("all_time_day_count must be at least 1")
        if self.low_volatility_max > self.moderate_volatility_max:
            raise EngineError("low_volatility_max must not exceed moderate_volatility_max")


DEFAULT_CONFIG = EngineConfig()


def _read_yaml(path: Path) -> dict:
    try:
        with open(path, encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise EngineError(f"Config file {path} is not valid YAML") from exc
    except OSError as exc:
        raise EngineError(f"Config file {path} could not be read") from exc

    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise EngineError(f"Config file {path} must contain a mapping")
    return payload


def load_config(path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """Load configuration, overlaying a YAML file on the defaults when present."""

    if path is None:
        return DEFAULT_CONFIG

    config_path = Path(path)
    if not config_path.exists():
        logger.info("Config file %s not found, using defaults", config_path)
        return DEFAULT_CONFIG

    overrides = _read_yaml(config_path)
    known = {field.name for field in fields(EngineConfig)}
    values = {}
    for key, value in overrides.items():
        if key not in known:
            logger.warning("Ignoring unknown config key %r in %s", key, config_path)
            continue
        values[key] = tuple(value) if key == "weekday_labels" else value

    return replace(DEFAULT_CONFIG, **values)
