"""Draw targets for playback."""

from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np


class DirectorySink:
    """Write every drawn frame to ``output_dir`` as a numbered PNG."""

    def __init__(self, output_dir: Path | str, *, prefix: str = "frame") -> None:
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.prefix = prefix
        self.count = 0

    def path_for(self, index: int) -> Path:
        return self.output_dir / f"{self.prefix}_{index:06d}.png"

    def __call__(self, pixels: np.ndarray, width: int, height: int) -> None:
        bgra = cv2.cvtColor(np.ascontiguousarray(pixels), cv2.COLOR_RGBA2BGRA)
        success, buffer = cv2.imencode(".png", bgra)
        if not success:
            raise RuntimeError(f"Failed to encode {width}x{height} frame {self.count}")
        self.path_for(self.count).write_bytes(buffer.tobytes())
        self.count += 1

    def discard(self) -> None:
        """Remove every frame written so far."""
        for index in range(self.count):
            self.path_for(index).unlink(missing_ok=True)
        self.count = 0


__all__ = ["DirectorySink"]
