"""Turn user supplied image sources into RGBA rasters."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

import cv2
import numpy as np
import requests

from crossfade.errors import DecodeFailure
from crossfade.models import RasterBuffer

IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".bmp", ".webp", ".gif", ".tif", ".tiff"}

ImageSource = Union[str, Path]


def _is_url(source: ImageSource) -> bool:
    return isinstance(source, str) and source.lower().startswith(("http://", "https://"))


def collect_image_sources(
    paths: Iterable[ImageSource],
    *,
    logger: Optional[logging.Logger] = None,
) -> List[ImageSource]:
    """Expand directories and drop anything that is not an image.

    Directory contents are visited in name order; explicit files and URLs
    keep the order they were given in.
    """
    log = logger or logging.getLogger(__name__)
    sources: List[ImageSource] = []
    for entry in paths:
        if _is_url(entry):
            sources.append(entry)
            continue
        path = Path(entry)
        if path.is_dir():
            children = sorted(
                child for child in path.iterdir()
                if child.is_file() and child.suffix.lower() in IMAGE_EXTS
            )
            if not children:
                log.warning("No images found in directory %s", path)
            sources.extend(children)
        elif path.suffix.lower() in IMAGE_EXTS:
            sources.append(path)
        else:
            log.warning("Skipping non-image input %s", path)
    return sources


def _to_rgba(image: np.ndarray) -> Optional[np.ndarray]:
    if image.dtype != np.uint8:
        if image.dtype == np.uint16:
            image = (image >> 8).astype(np.uint8)
        else:
            return None
    if image.ndim == 2 or image.shape[2] == 1:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
    if image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    return None


class ImageLoader:
    """Read image bytes from disk or HTTP and decode them with OpenCV."""

    def __init__(
        self,
        *,
        logger: Optional[logging.Logger] = None,
        workers: int = 1,
        http_timeout: int = 10,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.workers = max(1, workers)
        self.http_timeout = http_timeout

    def decode_bytes(self, data: bytes, label: ImageSource = "<bytes>") -> RasterBuffer:
        if not data:
            raise DecodeFailure(label, "empty input")
        encoded = np.frombuffer(data, dtype=np.uint8)
        image = cv2.imdecode(encoded, cv2.IMREAD_UNCHANGED)
        if image is None:
            raise DecodeFailure(label, "not a decodable image")
        rgba = _to_rgba(image)
        if rgba is None:
            raise DecodeFailure(label, f"unsupported pixel layout {image.shape} {image.dtype}")
        height, width = rgba.shape[:2]
        return RasterBuffer(width=width, height=height, pixels=np.ascontiguousarray(rgba))

    def read_bytes(self, source: ImageSource) -> bytes:
        if _is_url(source):
            try:
                response = requests.get(source, timeout=self.http_timeout)
                response.raise_for_status()
            except requests.RequestException as exc:
                raise DecodeFailure(source, str(exc)) from exc
            return response.content

        try:
            return Path(source).read_bytes()
        except OSError as exc:
            raise DecodeFailure(source, str(exc)) from exc

    def load(self, source: ImageSource) -> RasterBuffer:
        raster = self.decode_bytes(self.read_bytes(source), source)
        self.logger.debug("Decoded %s (%sx%s)", source, raster.width, raster.height)
        return raster

    def load_all(self, sources: Sequence[ImageSource]) -> List[RasterBuffer]:
        """Decode ``sources`` concurrently, returning them in input order."""
        if not sources:
            return []

        if self.workers == 1 or len(sources) == 1:
            return [self.load(source) for source in sources]

        with ThreadPoolExecutor(max_workers=min(self.workers, len(sources))) as executor:
            futures = [executor.submit(self.load, source) for source in sources]
            try:
                return [future.result() for future in futures]
            except DecodeFailure:
                for future in futures:
                    future.cancel()
                raise


__all__ = ["IMAGE_EXTS", "ImageLoader", "collect_image_sources"]
