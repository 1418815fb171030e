"""
Alpha-blended transitions between an ordered list of still images.
"""

from .assembler import SequenceAssembler
from .compositor import ScratchPool, composite
from .config import TransitionSettings, load_config
from .decoding import ImageLoader, collect_image_sources
from .errors import (
    DecodeFailure,
    DegenerateInput,
    DimensionMismatch,
    GenerationCancelled,
    InvalidTiming,
    PlaybackFailure,
    TransitionError,
)
from .models import FrameSequence, RasterBuffer, TransitionPlan
from .normalizer import CanvasNormalizer, normalize_images, target_size
from .playback import PlaybackDriver, PlaybackState
from .scheduler import frame_interval_ms, plan_transition
from .session import GenerationJob, TransitionSession

__all__ = [
    "CanvasNormalizer",
    "DecodeFailure",
    "DegenerateInput",
    "DimensionMismatch",
    "FrameSequence",
    "GenerationCancelled",
    "GenerationJob",
    "ImageLoader",
    "InvalidTiming",
    "PlaybackDriver",
    "PlaybackFailure",
    "PlaybackState",
    "RasterBuffer",
    "ScratchPool",
    "SequenceAssembler",
    "TransitionError",
    "TransitionPlan",
    "TransitionSession",
    "TransitionSettings",
    "collect_image_sources",
    "composite",
    "frame_interval_ms",
    "load_config",
    "normalize_images",
    "plan_transition",
    "target_size",
]
