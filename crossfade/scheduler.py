"""Frame budgeting for transitions between adjacent images."""

from __future__ import annotations

import math

from crossfade.errors import DegenerateInput, InvalidTiming
from crossfade.models import TransitionPlan


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties away from zero for positive values.

    ``round()`` rounds ties to even (``round(2.5) == 2``); frame budgets use
    ``floor(x + 0.5)`` so 2.5 frames become 3.
    """
    return int(math.floor(value + 0.5))


def _require_positive(value: float, label: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidTiming(f"{label} must be a number, got {value!r}") from exc
    if not math.isfinite(number) or number <= 0:
        raise InvalidTiming(f"{label} must be a positive finite number, got {value!r}")
    return number


def frame_interval_ms(frame_rate_hz: float) -> float:
    """Milliseconds between displayed frames at ``frame_rate_hz``."""
    return 1000.0 / _require_positive(frame_rate_hz, "Frame rate")


def plan_transition(
    image_count: int,
    total_duration_ms: float,
    frame_interval_ms: float,
) -> TransitionPlan:
    """Work out how many frames each adjacent image pair receives.

    A single image is treated as a pair with itself so downstream code
    always has at least one transition. Very short durations degrade to one
    frame per pair rather than skipping pairs.
    """
    duration = _require_positive(total_duration_ms, "Duration")
    interval = _require_positive(frame_interval_ms, "Frame interval")
    if image_count < 1:
        raise DegenerateInput("At least one image is required for a transition")

    pair_count = max(image_count, 2) - 1
    frames_per_pair = max(1, round_half_up(duration / interval / pair_count))

    return TransitionPlan(
        pair_count=pair_count,
        frames_per_pair=frames_per_pair,
        opacity_step=1.0 / frames_per_pair,
    )


__all__ = ["frame_interval_ms", "plan_transition", "round_half_up"]
