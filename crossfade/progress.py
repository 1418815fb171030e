"""Progress reporting helpers used while assembling frames."""

from __future__ import annotations


def format_seconds(seconds: float) -> str:
    """Compact duration such as ``"1m05s"`` or ``"<1s"``."""
    whole = int(round(seconds))
    if whole <= 0:
        return "<1s"
    minutes, remainder = divmod(whole, 60)
    if minutes >= 60:
        hours, minutes = divmod(minutes, 60)
        return f"{hours}h{minutes:02d}m{remainder:02d}s"
    if minutes:
        return f"{minutes}m{remainder:02d}s"
    return f"{remainder}s"


def progress_interval(total: int, steps: int = 20) -> int:
    """How many items to process between progress log lines."""
    return max(1, total // steps)


def eta_string(elapsed: float, completed: int, total: int) -> str:
    """Remaining-time estimate from a linear extrapolation of ``elapsed``."""
    if total <= 0 or completed <= 0 or completed > total or elapsed <= 0.0:
        return "ETA estimating"
    remaining = elapsed * (total - completed) / completed
    return f"ETA {format_seconds(remaining)}"


__all__ = ["eta_string", "format_seconds", "progress_interval"]
