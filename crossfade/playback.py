"""Tick-driven playback of an assembled frame sequence."""

from __future__ import annotations

import enum
import logging
import threading
from typing import Any, Callable, Optional

import numpy as np
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from crossfade.errors import PlaybackFailure
from crossfade.models import FrameSequence

DrawFn = Callable[[np.ndarray, int, int], None]

PLAYBACK_JOB_ID = "crossfade_playback"


class PlaybackState(enum.Enum):
    IDLE = "idle"
    PLAYING = "playing"
    FINISHED = "finished"


class PlaybackDriver:
    """Show one frame per repaint tick until the sequence is exhausted.

    The first frame is drawn as soon as playback starts; every later frame
    waits for a tick. Cancelling returns the driver to ``IDLE`` and detaches
    it from the tick source; a frame that is being drawn is always finished.
    A failing draw stops playback and is re-raised from :meth:`wait`, so
    callers waiting on a scheduler thread still see it.
    """

    def __init__(self, draw: DrawFn, *, logger: Optional[logging.Logger] = None) -> None:
        self.draw = draw
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._done = threading.Event()
        self._state = PlaybackState.IDLE
        self._index = 0
        self._sequence: Optional[FrameSequence] = None
        self._scheduler: Any = None
        self._owns_scheduler = False
        self._job: Any = None
        self._error: Optional[PlaybackFailure] = None

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def index(self) -> int:
        """Index of the next frame to draw."""
        return self._index

    @property
    def error(self) -> Optional[PlaybackFailure]:
        return self._error

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def start(self, sequence: FrameSequence) -> None:
        with self._lock:
            self._detach()
            self._sequence = sequence
            self._error = None
            self._done.clear()
            self._index = 0
            self._state = PlaybackState.PLAYING
            self.logger.info(
                "Playing %s frames at %0.2f ms per frame",
                len(sequence),
                sequence.frame_interval_ms,
            )
            self._draw_next()

    def tick(self) -> bool:
        """Advance by one frame; returns ``False`` when nothing was drawn."""
        with self._lock:
            if self._state is not PlaybackState.PLAYING:
                return False
            self._draw_next()
            return True

    def cancel(self) -> None:
        with self._lock:
            if self._state is PlaybackState.PLAYING:
                self.logger.info("Playback cancelled at frame %s", self._index)
            self._state = PlaybackState.IDLE
            self._detach()
            self._done.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until playback ends; re-raises the failure that stopped it."""
        finished = self._done.wait(timeout)
        if self._error is not None:
            raise self._error
        return finished

    def _draw_next(self) -> None:
        sequence = self._sequence
        if sequence is None:
            raise RuntimeError("Playback has no frame sequence to draw")
        frame = sequence[self._index]
        try:
            self.draw(frame.pixels, frame.width, frame.height)
        except Exception as exc:
            self.logger.exception("Drawing frame %s failed; stopping playback", self._index)
            failure = PlaybackFailure(self._index, str(exc))
            self._error = failure
            self.cancel()
            raise failure from exc
        self._index += 1
        if self._index >= len(sequence):
            self._state = PlaybackState.FINISHED
            self.logger.info("Playback finished after %s frames", self._index)
            self._detach()
            self._done.set()

    # ------------------------------------------------------------------
    # Tick source
    # ------------------------------------------------------------------

    def play(
        self,
        sequence: FrameSequence,
        *,
        scheduler: Any = None,
        wait: bool = True,
        timeout: Optional[float] = None,
    ) -> "PlaybackDriver":
        """Start playback with ticks delivered by an APScheduler interval job.

        When no scheduler is supplied a private ``BackgroundScheduler`` is
        created and shut down once playback ends.
        """
        self.start(sequence)
        with self._lock:
            if self._state is not PlaybackState.PLAYING:
                return self
            self._owns_scheduler = scheduler is None
            self._scheduler = scheduler or BackgroundScheduler()
            self._job = self._scheduler.add_job(
                self.tick,
                trigger=IntervalTrigger(seconds=sequence.frame_interval_ms / 1000.0),
                id=PLAYBACK_JOB_ID,
                name="Crossfade Playback",
                max_instances=1,
                coalesce=True,
            )
            if self._owns_scheduler:
                self._scheduler.start()

        if wait:
            self.wait(timeout)
        return self

    def _detach(self) -> None:
        job, scheduler = self._job, self._scheduler
        self._job = None
        self._scheduler = None
        if job is not None:
            try:
                job.remove()
            except JobLookupError:
                pass
        if scheduler is not None and self._owns_scheduler:
            scheduler.shutdown(wait=False)
        self._owns_scheduler = False


__all__ = ["PlaybackDriver", "PlaybackState", "PLAYBACK_JOB_ID"]
