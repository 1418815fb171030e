"""Generation session tying decode, normalize, schedule, assemble and playback together."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from crossfade.assembler import SequenceAssembler
from crossfade.config import TransitionSettings
from crossfade.decoding import ImageLoader, ImageSource
from crossfade.errors import GenerationCancelled
from crossfade.models import FrameSequence, RasterBuffer, TransitionPlan
from crossfade.normalizer import CanvasNormalizer
from crossfade.playback import DrawFn, PlaybackDriver
from crossfade.scheduler import frame_interval_ms, plan_transition

STATUS_IDLE = "idle"
STATUS_LOADING = "loading"
STATUS_READY = "ready"
STATUS_FAILED = "failed"

JOB_HISTORY_LIMIT = 16


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class GenerationJob:
    job_id: str
    source_count: int
    status: str = "pending"
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None
    thread: Optional[threading.Thread] = field(default=None, repr=False)


class TransitionSession:
    """Owns the latest published frame sequence for one user session.

    Each request takes a fresh generation token. Work belonging to an older
    token stops at its next check and never publishes, so playback only ever
    sees the most recent request's frames.
    """

    def __init__(
        self,
        settings: Optional[TransitionSettings] = None,
        *,
        loader: Optional[ImageLoader] = None,
        assembler: Optional[SequenceAssembler] = None,
        normalizer: Optional[CanvasNormalizer] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings or TransitionSettings()
        self.logger = logger or logging.getLogger(__name__)
        self.loader = loader or ImageLoader(
            logger=self.logger,
            workers=self.settings.decode_workers,
            http_timeout=self.settings.http_timeout,
        )
        self.assembler = assembler or SequenceAssembler(
            logger=self.logger,
            workers=self.settings.composite_workers,
        )
        self.normalizer = normalizer or CanvasNormalizer(logger=self.logger)

        self._lock = threading.Lock()
        self._token = 0
        self._published: Optional[FrameSequence] = None
        self._status = STATUS_IDLE
        self._status_message = "Select images to build a transition"
        self._playback: Optional[PlaybackDriver] = None
        self._jobs: Dict[str, GenerationJob] = {}

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def status(self) -> str:
        return self._status

    @property
    def status_message(self) -> str:
        return self._status_message

    @property
    def current_sequence(self) -> Optional[FrameSequence]:
        return self._published

    @property
    def playable(self) -> bool:
        return self._status == STATUS_READY and self._published is not None

    def plan_for(
        self,
        image_count: int,
        *,
        duration_seconds: Optional[float] = None,
        frame_rate_hz: Optional[float] = None,
    ) -> TransitionPlan:
        settings = self.settings.with_overrides(
            duration_seconds=duration_seconds,
            frame_rate_hz=frame_rate_hz,
        )
        return plan_transition(
            image_count,
            settings.total_duration_ms,
            frame_interval_ms(settings.frame_rate_hz),
        )

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def _begin(self) -> int:
        with self._lock:
            self._token += 1
            token = self._token
            self._published = None
            self._status = STATUS_LOADING
            self._status_message = "loading"
            playback = self._playback
            self._playback = None
        if playback is not None:
            playback.cancel()
        return token

    def _is_current(self, token: int) -> bool:
        with self._lock:
            return self._token == token

    def _publish(self, token: int, sequence: FrameSequence) -> None:
        with self._lock:
            if self._token != token:
                raise GenerationCancelled("Generation superseded before publishing")
            self._published = sequence
            self._status = STATUS_READY
            self._status_message = "play"

    def _fail(self, token: int, exc: BaseException) -> None:
        with self._lock:
            if self._token != token:
                return
            self._status = STATUS_FAILED
            self._status_message = f"Transition failed: {exc}"

    def _run(
        self,
        token: int,
        count: int,
        produce_images: Callable[[], Sequence[RasterBuffer]],
        duration_seconds: Optional[float],
        frame_rate_hz: Optional[float],
    ) -> FrameSequence:
        try:
            settings = self.settings.with_overrides(
                duration_seconds=duration_seconds,
                frame_rate_hz=frame_rate_hz,
            )
            interval = frame_interval_ms(settings.frame_rate_hz)
            plan = plan_transition(count, settings.total_duration_ms, interval)
            self.logger.info(
                "Generating transition %s: %s images, %s pairs, %s frames per pair",
                token,
                count,
                plan.pair_count,
                plan.frames_per_pair,
            )

            images = produce_images()
            if not self._is_current(token):
                raise GenerationCancelled("Generation superseded while loading images")
            normalized = self.normalizer.normalize(images)
            sequence = self.assembler.assemble(
                normalized,
                plan,
                frame_interval_ms=interval,
                should_continue=lambda: self._is_current(token),
            )
            self._publish(token, sequence)
        except GenerationCancelled:
            self.logger.warning("Transition %s superseded by a newer request", token)
            raise
        except Exception as exc:
            self._fail(token, exc)
            self.logger.error("Transition %s failed: %s", token, exc)
            raise

        self.logger.info(
            "Transition %s ready: %s frames at %sx%s",
            token,
            len(sequence),
            sequence.width,
            sequence.height,
        )
        return sequence

    def generate(
        self,
        sources: Sequence[ImageSource],
        *,
        duration_seconds: Optional[float] = None,
        frame_rate_hz: Optional[float] = None,
    ) -> FrameSequence:
        """Decode ``sources`` and build their transition, replacing any earlier result."""
        sources = list(sources)
        token = self._begin()
        return self._run(
            token,
            len(sources),
            lambda: self.loader.load_all(sources),
            duration_seconds,
            frame_rate_hz,
        )

    def generate_from_rasters(
        self,
        images: Sequence[RasterBuffer],
        *,
        duration_seconds: Optional[float] = None,
        frame_rate_hz: Optional[float] = None,
    ) -> FrameSequence:
        images = list(images)
        token = self._begin()
        return self._run(
            token,
            len(images),
            lambda: images,
            duration_seconds,
            frame_rate_hz,
        )

    # ------------------------------------------------------------------
    # Background jobs
    # ------------------------------------------------------------------

    def _run_job(self, job: GenerationJob, target: Callable[[], FrameSequence]) -> None:
        job.status = "running"
        job.started_at = _utcnow()
        try:
            target()
        except GenerationCancelled:
            job.status = "superseded"
        except Exception as exc:
            self.logger.exception("Generation job %s failed: %s", job.job_id, exc)
            job.error = str(exc)
            job.status = "failed"
        else:
            job.status = "completed"
        job.finished_at = _utcnow()

    def submit(
        self,
        sources: Sequence[ImageSource],
        *,
        duration_seconds: Optional[float] = None,
        frame_rate_hz: Optional[float] = None,
    ) -> GenerationJob:
        """Run :meth:`generate` on a background thread."""
        sources = list(sources)
        job = GenerationJob(job_id=uuid.uuid4().hex, source_count=len(sources))

        def target() -> FrameSequence:
            return self.generate(
                sources,
                duration_seconds=duration_seconds,
                frame_rate_hz=frame_rate_hz,
            )

        thread = threading.Thread(
            target=self._run_job,
            args=(job, target),
            name=f"crossfade-job-{job.job_id[:8]}",
            daemon=True,
        )
        job.thread = thread
        with self._lock:
            self._prune_jobs()
            self._jobs[job.job_id] = job
        thread.start()
        return job

    def _prune_jobs(self) -> None:
        """Drop the oldest finished jobs beyond ``JOB_HISTORY_LIMIT``; caller holds the lock."""
        finished = [
            job_id
            for job_id, job in self._jobs.items()
            if job.status in {"completed", "failed", "superseded"}
        ]
        excess = len(self._jobs) - JOB_HISTORY_LIMIT + 1
        for job_id in finished[:max(0, excess)]:
            del self._jobs[job_id]

    def list_jobs(self) -> List[GenerationJob]:
        with self._lock:
            return list(self._jobs.values())

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def start_playback(
        self,
        draw: DrawFn,
        *,
        scheduler: Any = None,
        wait: bool = False,
        timeout: Optional[float] = None,
    ) -> PlaybackDriver:
        with self._lock:
            sequence = self._published
            if self._status != STATUS_READY or sequence is None:
                raise RuntimeError(f"No transition ready for playback (status: {self._status})")
            previous = self._playback
            driver = PlaybackDriver(draw, logger=self.logger)
            self._playback = driver
        if previous is not None:
            previous.cancel()
        return driver.play(sequence, scheduler=scheduler, wait=wait, timeout=timeout)


__all__ = [
    "GenerationJob",
    "JOB_HISTORY_LIMIT",
    "STATUS_FAILED",
    "STATUS_IDLE",
    "STATUS_LOADING",
    "STATUS_READY",
    "TransitionSession",
]
