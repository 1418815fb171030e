"""Assemble blended frames for every adjacent image pair into one sequence."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from time import perf_counter
from typing import Callable, List, Optional, Sequence, Tuple

from crossfade.compositor import ScratchPool, composite
from crossfade.errors import DegenerateInput, GenerationCancelled
from crossfade.models import FrameSequence, RasterBuffer, TransitionPlan
from crossfade.progress import eta_string, progress_interval

ContinueCheck = Callable[[], bool]

# (slot, from image index, to image index, opacity of the "to" image)
FrameJob = Tuple[int, int, int, float]


class SequenceAssembler:
    """Drive the compositor across all pairs in playback order."""

    def __init__(
        self,
        *,
        logger: Optional[logging.Logger] = None,
        workers: int = 1,
        pool: Optional[ScratchPool] = None,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.workers = max(1, workers)
        self.pool = pool or ScratchPool()

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    @staticmethod
    def frame_jobs(image_count: int, plan: TransitionPlan) -> List[FrameJob]:
        """Every frame to render, with the slot it occupies in the output."""
        jobs: List[FrameJob] = []
        for pair in range(plan.pair_count):
            source = pair
            target = pair + 1 if image_count > 1 else pair
            for step in range(1, plan.frames_per_pair + 1):
                slot = pair * plan.frames_per_pair + (step - 1)
                jobs.append((slot, source, target, plan.opacity_at(step)))
        return jobs

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def assemble(
        self,
        images: Sequence[RasterBuffer],
        plan: TransitionPlan,
        *,
        frame_interval_ms: float,
        should_continue: Optional[ContinueCheck] = None,
    ) -> FrameSequence:
        if not images:
            raise DegenerateInput("Cannot assemble a transition without images")
        expected_pairs = max(len(images), 2) - 1
        if plan.pair_count != expected_pairs:
            raise ValueError(
                f"Plan covers {plan.pair_count} pairs but {len(images)} images need {expected_pairs}"
            )

        check = should_continue or (lambda: True)
        jobs = self.frame_jobs(len(images), plan)
        frames: List[Optional[RasterBuffer]] = [None] * len(jobs)

        self.logger.info(
            "Assembling %s frames (%s pairs x %s frames) at %sx%s",
            len(jobs),
            plan.pair_count,
            plan.frames_per_pair,
            images[0].width,
            images[0].height,
        )

        if self.workers == 1:
            self._render_sequentially(images, jobs, frames, check)
        else:
            self._render_concurrently(images, jobs, frames, check)

        if not check():
            raise GenerationCancelled("Generation superseded before publishing")

        return FrameSequence(
            initial_frame=images[0],
            frames=tuple(frames),
            frame_interval_ms=frame_interval_ms,
        )

    def _render_frame(
        self,
        images: Sequence[RasterBuffer],
        job: FrameJob,
        check: ContinueCheck,
    ) -> Tuple[int, RasterBuffer]:
        slot, source_index, target_index, opacity = job
        if not check():
            raise GenerationCancelled(f"Generation superseded at frame {slot}")
        source = images[source_index]
        target = images[target_index]
        with self.pool.borrow(source.width, source.height) as scratch:
            frame = composite(source, target, opacity, scratch)
        return slot, frame

    def _render_sequentially(
        self,
        images: Sequence[RasterBuffer],
        jobs: Sequence[FrameJob],
        frames: List[Optional[RasterBuffer]],
        check: ContinueCheck,
    ) -> None:
        progress = _Progress(self.logger, len(jobs))
        for job in jobs:
            slot, frame = self._render_frame(images, job, check)
            frames[slot] = frame
            progress.advance()

    def _render_concurrently(
        self,
        images: Sequence[RasterBuffer],
        jobs: Sequence[FrameJob],
        frames: List[Optional[RasterBuffer]],
        check: ContinueCheck,
    ) -> None:
        progress = _Progress(self.logger, len(jobs))
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures: List[Future] = [
                executor.submit(self._render_frame, images, job, check)
                for job in jobs
            ]
            try:
                for future in as_completed(futures):
                    slot, frame = future.result()
                    frames[slot] = frame
                    progress.advance()
            except BaseException:
                for pending in futures:
                    pending.cancel()
                raise


class _Progress:
    def __init__(self, logger: logging.Logger, total: int) -> None:
        self.logger = logger
        self.total = total
        self.completed = 0
        self.interval = progress_interval(total)
        self.started = perf_counter()

    def advance(self) -> None:
        self.completed += 1
        if self.completed % self.interval and self.completed != self.total:
            return
        elapsed = perf_counter() - self.started
        self.logger.debug(
            "Frame compositing progress: %s/%s frames (%0.1f%%, %s)",
            self.completed,
            self.total,
            (self.completed / self.total) * 100.0,
            eta_string(elapsed, self.completed, self.total),
        )


__all__ = ["SequenceAssembler"]
