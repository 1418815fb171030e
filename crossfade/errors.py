"""Error types raised by the transition pipeline."""

from __future__ import annotations

from typing import Any, Optional, Tuple


class TransitionError(Exception):
    """Base class for every failure that aborts a transition run."""


class DecodeFailure(TransitionError):
    """An input image could not be turned into a pixel buffer."""

    def __init__(self, source: Any, reason: str) -> None:
        super().__init__(f"Failed to decode image {source}: {reason}")
        self.source = source
        self.reason = reason


class DimensionMismatch(TransitionError):
    """Two rasters handed to the compositor do not share a canvas size."""

    def __init__(
        self,
        expected: Tuple[int, ...],
        actual: Tuple[int, ...],
        detail: Optional[str] = None,
    ) -> None:
        message = f"Raster dimensions differ: expected {expected}, got {actual}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class DegenerateInput(TransitionError, ValueError):
    """No images were supplied for a transition."""


class InvalidTiming(TransitionError, ValueError):
    """Duration or frame rate is not a positive finite number."""


class GenerationCancelled(TransitionError):
    """A newer generation request superseded the running one."""


class PlaybackFailure(TransitionError):
    """The draw primitive failed while a sequence was playing."""

    def __init__(self, index: int, reason: str) -> None:
        super().__init__(f"Drawing frame {index} failed: {reason}")
        self.index = index


__all__ = [
    "DecodeFailure",
    "DegenerateInput",
    "DimensionMismatch",
    "GenerationCancelled",
    "InvalidTiming",
    "PlaybackFailure",
    "TransitionError",
]
