"""Configuration dataclasses and loading helpers for transition generation."""

from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, Optional

ENV_PREFIX = "CROSSFADE_"


def _default_workers() -> int:
    """Worker count for CPU-bound decode and compositing pools."""
    return max(1, min(4, os.cpu_count() or 1))


def _parse_positive_int(value: Any, default: int) -> int:
    """Parse a positive integer with fallback to default."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _parse_positive_float(value: Any, default: float) -> float:
    """Parse a positive finite float with fallback to default."""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(parsed) or parsed <= 0:
        return default
    return parsed


def _parse_log_level(value: Any, default: str) -> str:
    if not isinstance(value, str) or not value.strip():
        return default
    level = value.strip().upper()
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        return default
    return level


@dataclass(frozen=True)
class TransitionSettings:
    """Defaults applied to every generation request unless overridden."""

    duration_seconds: float = 1.0
    frame_rate_hz: float = 60.0
    decode_workers: int = field(default_factory=_default_workers)
    composite_workers: int = field(default_factory=_default_workers)
    http_timeout: int = 10
    log_file: Optional[Path] = None
    log_level: str = "INFO"

    @property
    def total_duration_ms(self) -> float:
        return self.duration_seconds * 1000.0

    def with_overrides(
        self,
        *,
        duration_seconds: Optional[float] = None,
        frame_rate_hz: Optional[float] = None,
    ) -> "TransitionSettings":
        """Return settings with per-request timing overrides applied.

        Values are not validated here; the scheduler rejects non-positive
        timings with ``InvalidTiming``.
        """
        changes = {}
        if duration_seconds is not None:
            changes["duration_seconds"] = duration_seconds
        if frame_rate_hz is not None:
            changes["frame_rate_hz"] = frame_rate_hz
        return replace(self, **changes) if changes else self


def _parse_settings(data: Mapping[str, Any]) -> TransitionSettings:
    default = TransitionSettings()
    log_file = data.get("log_file")
    return TransitionSettings(
        duration_seconds=_parse_positive_float(data.get("duration_seconds"), default.duration_seconds),
        frame_rate_hz=_parse_positive_float(data.get("frame_rate_hz"), default.frame_rate_hz),
        decode_workers=_parse_positive_int(data.get("decode_workers"), default.decode_workers),
        composite_workers=_parse_positive_int(
            data.get("composite_workers"),
            default.composite_workers,
        ),
        http_timeout=_parse_positive_int(data.get("http_timeout"), default.http_timeout),
        log_file=Path(log_file) if log_file else None,
        log_level=_parse_log_level(data.get("log_level"), default.log_level),
    )


def _settings_from_env(env: Mapping[str, str]) -> TransitionSettings:
    """Settings derived from ``CROSSFADE_*`` environment variables."""
    keys = (
        "duration_seconds",
        "frame_rate_hz",
        "decode_workers",
        "composite_workers",
        "http_timeout",
        "log_file",
        "log_level",
    )
    return _parse_settings({key: env.get(f"{ENV_PREFIX}{key.upper()}") for key in keys})


def load_config(
    config_path: Path | str | None,
    env: Mapping[str, str] | None = None,
) -> TransitionSettings:
    """Load settings from a JSON file, falling back to the environment."""
    source_env = os.environ if env is None else env
    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
            if not isinstance(data, Mapping):
                raise ValueError(f"Configuration root in {path} must be an object")
            return _parse_settings(data)

    return _settings_from_env(source_env)


__all__ = [
    "TransitionSettings",
    "load_config",
    "_parse_positive_float",
    "_parse_positive_int",
]
