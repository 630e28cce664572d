from __future__ import annotations

import logging
import os
import re
from datetime import time
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from nlcal import CONFIG_PATH

logger = logging.getLogger(__name__)

_CLOCK_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def _check_clock(value: str) -> str:
    if not _CLOCK_RE.match(value):
        raise ValueError(f"expected HH:MM, got {value!r}")
    return value


def parse_clock(value: str) -> time:
    """Turn a validated "HH:MM" string into a time."""
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


# =============================================================================
# Policy sections (args/scheduling.yaml)
# =============================================================================

class BusinessHoursConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    start_hour: int = Field(default=9, ge=0, le=23)
    end_hour: int = Field(default=17, ge=1, le=24)
    weekdays_only: bool = Field(default=True)

    @model_validator(mode="after")
    def _end_after_start(self) -> "BusinessHoursConfig":
        if self.end_hour <= self.start_hour:
            raise ValueError("business_hours.end_hour must be after start_hour")
        return self


class DurationConfig(BaseModel):
    """Default durations in minutes, keyed by meeting type."""

    model_config = ConfigDict(extra="allow")
    default: int = Field(default=30, ge=1)
    quick: int = Field(default=15, ge=1)
    meeting: int = Field(default=30, ge=1)
    lunch: int = Field(default=60, ge=1)
    workshop: int = Field(default=120, ge=1)
    one_on_one: int = Field(default=30, ge=1)


class TimeDefaultsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    default_time: str = Field(default="09:00")
    morning: str = Field(default="09:00")
    afternoon: str = Field(default="14:00")
    evening: str = Field(default="18:00")
    tonight: str = Field(default="19:00")

    @field_validator("default_time", "morning", "afternoon", "evening", "tonight")
    @classmethod
    def _valid_clock(cls, v: str) -> str:
        return _check_clock(v)


class SearchConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    high_priority_step_minutes: int = Field(default=15, ge=1)
    step_minutes: int = Field(default=30, ge=1)
    horizon_days: int = Field(default=14, ge=1)
    suggestion_limit: int = Field(default=1, ge=1)
    conflict_alternatives: int = Field(default=3, ge=1)
    target_window_days: int = Field(default=2, ge=0)


class GuardConfig(BaseModel):
    """Double-checked availability before a write."""

    model_config = ConfigDict(extra="allow")
    recheck_delay_seconds: float = Field(default=0.5, ge=0.0)


class RetryConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    max_attempts: int = Field(default=3, ge=1, le=10)
    initial_wait_seconds: float = Field(default=0.5, ge=0.0)
    max_wait_seconds: float = Field(default=5.0, ge=0.0)
    jitter_seconds: float = Field(default=0.25, ge=0.0)


class ParsingConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    clarification_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    hedging_words: list[str] = Field(
        default_factory=lambda: ["maybe", "probably", "perhaps", "might", "i think"]
    )
    default_title: str = Field(default="Untitled Event")


class InterpreterConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    enabled: bool = Field(default=False)
    model: str = Field(default="claude-3-5-haiku-latest")
    max_tokens: int = Field(default=1024, ge=1)
    default_confidence: float = Field(default=0.7, ge=0.0, le=1.0)


class EngineConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    timezone: str | None = Field(default=None)
    business_hours: BusinessHoursConfig = Field(default_factory=BusinessHoursConfig)
    durations: DurationConfig = Field(default_factory=DurationConfig)
    time_defaults: TimeDefaultsConfig = Field(default_factory=TimeDefaultsConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    guard: GuardConfig = Field(default_factory=GuardConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    parsing: ParsingConfig = Field(default_factory=ParsingConfig)
    interpreter: InterpreterConfig = Field(default_factory=InterpreterConfig)


# =============================================================================
# Loading
# =============================================================================

def load_config(path: str | Path | None = None) -> EngineConfig:
    """Load engine policy from YAML, falling back to defaults.

    Resolution order: explicit ``path``, ``$NLCAL_CONFIG``, then
    ``args/scheduling.yaml``. A missing file means defaults; an invalid one
    is logged and also means defaults.
    """
    if path is None:
        path = os.environ.get("NLCAL_CONFIG") or CONFIG_PATH
    yaml_path = Path(path)

    try:
        if yaml_path.exists():
            with open(yaml_path) as f:
                raw: dict[str, Any] = yaml.safe_load(f) or {}
        else:
            raw = {}

        # Allow the whole file to be nested under a top-level "scheduling" key
        if "scheduling" in raw and isinstance(raw["scheduling"], dict):
            raw = raw["scheduling"]

        return EngineConfig.model_validate(raw)
    except Exception as e:
        logger.warning(f"Config validation failed for {yaml_path}: {e}, using defaults")
        return EngineConfig()


__all__ = [
    "BusinessHoursConfig",
    "DurationConfig",
    "EngineConfig",
    "GuardConfig",
    "InterpreterConfig",
    "ParsingConfig",
    "RetryConfig",
    "SearchConfig",
    "TimeDefaultsConfig",
    "load_config",
    "parse_clock",
]
