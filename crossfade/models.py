"""Data models shared by the transition pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

import numpy as np

CHANNELS = 4


@dataclass(frozen=True, eq=False)
class RasterBuffer:
    """RGBA pixels of one image, stored row-major as ``(height, width, 4)`` uint8.

    A writable ``pixels`` array is copied so the caller keeps ownership of
    it; a read-only array is adopted as is.
    """

    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if not isinstance(self.width, (int, np.integer)) or self.width <= 0:
            raise ValueError(f"Raster width must be a positive integer, got {self.width!r}")
        if not isinstance(self.height, (int, np.integer)) or self.height <= 0:
            raise ValueError(f"Raster height must be a positive integer, got {self.height!r}")
        expected = (self.height, self.width, CHANNELS)
        if self.pixels.shape != expected:
            raise ValueError(
                f"Pixel array shape {self.pixels.shape} does not match {expected}"
            )
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Pixel array must be uint8, got {self.pixels.dtype}")
        if self.pixels.flags.writeable:
            pixels = self.pixels.copy()
            pixels.flags.writeable = False
            object.__setattr__(self, "pixels", pixels)

    @classmethod
    def from_bytes(cls, width: int, height: int, data: bytes) -> "RasterBuffer":
        """Build a raster from an interleaved RGBA byte buffer."""
        expected_length = width * height * CHANNELS
        if len(data) != expected_length:
            raise ValueError(
                f"Buffer length {len(data)} does not match {width}x{height}x{CHANNELS}={expected_length}"
            )
        pixels = np.frombuffer(bytes(data), dtype=np.uint8).reshape(height, width, CHANNELS)
        return cls(width=width, height=height, pixels=pixels)

    @classmethod
    def blank(cls, width: int, height: int) -> "RasterBuffer":
        """Return a fully transparent raster."""
        return cls(
            width=width,
            height=height,
            pixels=np.zeros((height, width, CHANNELS), dtype=np.uint8),
        )

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()


@dataclass(frozen=True)
class TransitionPlan:
    """Frame budget for one transition run."""

    pair_count: int
    frames_per_pair: int
    opacity_step: float

    @property
    def total_frames(self) -> int:
        """Length of the resulting frame sequence, initial still included."""
        return 1 + self.pair_count * self.frames_per_pair

    def opacity_at(self, step: int) -> float:
        """Opacity of the "to" image for the ``step``-th frame of a pair (1-based)."""
        if step < 1 or step > self.frames_per_pair:
            raise ValueError(
                f"Frame step {step} outside 1..{self.frames_per_pair}"
            )
        if step == self.frames_per_pair:
            return 1.0
        return min(1.0, self.opacity_step * step)


@dataclass(frozen=True, eq=False)
class FrameSequence:
    """Ordered frames ready for playback: the first image, then every blended frame."""

    initial_frame: RasterBuffer
    frames: Tuple[RasterBuffer, ...]
    frame_interval_ms: float

    def __len__(self) -> int:
        return 1 + len(self.frames)

    def __getitem__(self, index: int) -> RasterBuffer:
        if index < 0:
            index += len(self)
        if index == 0:
            return self.initial_frame
        if index < 0 or index >= len(self):
            raise IndexError(f"Frame index {index} out of range")
        return self.frames[index - 1]

    def __iter__(self) -> Iterator[RasterBuffer]:
        yield self.initial_frame
        yield from self.frames

    @property
    def width(self) -> int:
        return self.initial_frame.width

    @property
    def height(self) -> int:
        return self.initial_frame.height

    @property
    def duration_ms(self) -> float:
        return len(self.frames) * self.frame_interval_ms


__all__ = [
    "CHANNELS",
    "FrameSequence",
    "RasterBuffer",
    "TransitionPlan",
]
