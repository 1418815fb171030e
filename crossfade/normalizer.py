"""Bring rasters of differing sizes onto one shared canvas."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from crossfade.models import CHANNELS, RasterBuffer


def target_size(images: Sequence[RasterBuffer]) -> Tuple[int, int]:
    """Largest width and height across ``images``, never smaller than 1x1."""
    width = max((image.width for image in images), default=1)
    height = max((image.height for image in images), default=1)
    return max(1, width), max(1, height)


class CanvasNormalizer:
    """Pad every raster to the largest canvas in the set.

    Sources are anchored at the top-left; uncovered pixels stay fully
    transparent. Nothing is scaled.
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    def normalize(self, images: Sequence[RasterBuffer]) -> List[RasterBuffer]:
        width, height = target_size(images)
        self.logger.debug(
            "Normalizing %s images onto a %sx%s canvas",
            len(images),
            width,
            height,
        )

        scratch = np.zeros((height, width, CHANNELS), dtype=np.uint8)
        normalized: List[RasterBuffer] = []
        for image in images:
            scratch.fill(0)
            scratch[: image.height, : image.width] = image.pixels
            normalized.append(RasterBuffer(width=width, height=height, pixels=scratch))
        return normalized


def normalize_images(
    images: Sequence[RasterBuffer],
    *,
    logger: Optional[logging.Logger] = None,
) -> List[RasterBuffer]:
    return CanvasNormalizer(logger=logger).normalize(images)


__all__ = ["CanvasNormalizer", "normalize_images", "target_size"]
