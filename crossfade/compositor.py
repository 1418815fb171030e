"""Linear opacity compositing of two equally sized rasters."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

from crossfade.errors import DimensionMismatch
from crossfade.models import CHANNELS, RasterBuffer


def _scratch_shape(width: int, height: int) -> Tuple[int, int, int]:
    return (height, width, CHANNELS)


def composite(
    source: RasterBuffer,
    target: RasterBuffer,
    opacity_to: float,
    scratch: Optional[np.ndarray] = None,
) -> RasterBuffer:
    """Blend ``source`` towards ``target`` with weight ``opacity_to``.

    Every channel of every pixel becomes
    ``floor(source * (1 - p) + target * p + 0.5)`` clamped to 0..255.
    ``scratch`` is an optional float64 accumulator owned by the caller; a new
    one is allocated when omitted. The returned raster never aliases it.
    """
    if source.size != target.size:
        raise DimensionMismatch(source.pixels.shape, target.pixels.shape)
    if not 0.0 < opacity_to <= 1.0:
        raise ValueError(f"opacity_to must be within (0, 1], got {opacity_to!r}")

    shape = _scratch_shape(source.width, source.height)
    if scratch is None:
        scratch = np.empty(shape, dtype=np.float64)
    elif scratch.shape != shape:
        raise DimensionMismatch(shape, scratch.shape, "scratch buffer")

    opacity_from = 1.0 - opacity_to
    np.multiply(source.pixels, opacity_from, out=scratch)
    scratch += target.pixels * opacity_to
    scratch += 0.5
    np.floor(scratch, out=scratch)
    np.clip(scratch, 0, 255, out=scratch)

    pixels = scratch.astype(np.uint8)
    pixels.flags.writeable = False
    return RasterBuffer(width=source.width, height=source.height, pixels=pixels)


class ScratchPool:
    """Reusable float accumulators keyed by canvas size.

    Each borrowed buffer belongs to a single caller until it is returned, so
    concurrent compositing never shares scratch memory.
    """

    def __init__(self) -> None:
        self._free: Dict[Tuple[int, int], List[np.ndarray]] = {}
        self._lock = threading.Lock()
        self.allocated = 0

    @contextmanager
    def borrow(self, width: int, height: int) -> Iterator[np.ndarray]:
        key = (width, height)
        with self._lock:
            free = self._free.setdefault(key, [])
            buffer = free.pop() if free else None
            if buffer is None:
                self.allocated += 1
        if buffer is None:
            buffer = np.empty(_scratch_shape(width, height), dtype=np.float64)
        try:
            yield buffer
        finally:
            with self._lock:
                self._free[key].append(buffer)

    def clear(self) -> None:
        with self._lock:
            self._free.clear()


__all__ = ["ScratchPool", "composite"]
