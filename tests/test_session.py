import gc
import logging
import sys
import threading
import weakref
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from crossfade.config import TransitionSettings
from crossfade.errors import DecodeFailure, DegenerateInput, GenerationCancelled, InvalidTiming
from crossfade.models import RasterBuffer
from crossfade.playback import PlaybackState
import crossfade.session as session_module
from crossfade.session import (
    STATUS_FAILED,
    STATUS_IDLE,
    STATUS_READY,
    TransitionSession,
)


def solid(width: int, height: int, rgba: tuple[int, int, int, int]) -> RasterBuffer:
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[...] = rgba
    return RasterBuffer(width=width, height=height, pixels=pixels)


RASTERS = {
    "red": solid(2, 1, (255, 0, 0, 255)),
    "blue": solid(2, 1, (0, 0, 255, 255)),
    "green": solid(3, 2, (0, 255, 0, 255)),
    "slow": solid(1, 1, (9, 9, 9, 255)),
}


class DictLoader:
    """Loader double resolving names from RASTERS; "slow" blocks until released."""

    def __init__(self):
        self.calls = []
        self.started = threading.Event()
        self.release = threading.Event()

    def load_all(self, sources):
        self.calls.append(list(sources))
        if "slow" in sources:
            self.started.set()
            assert self.release.wait(5)
        missing = [name for name in sources if name not in RASTERS]
        if missing:
            raise DecodeFailure(missing[0], "unknown test image")
        return [RASTERS[name] for name in sources]


class FakeJob:
    def __init__(self, func):
        self.func = func
        self.removed = False

    def remove(self):
        self.removed = True


class FakeScheduler:
    def __init__(self):
        self.jobs = []

    def add_job(self, func, trigger, **kwargs):
        job = FakeJob(func)
        self.jobs.append(job)
        return job


def build_session(loader=None, **settings) -> TransitionSession:
    settings.setdefault("composite_workers", 2)
    return TransitionSession(
        TransitionSettings(**settings),
        loader=loader or DictLoader(),
        logger=logging.getLogger("crossfade-tests"),
    )


def test_generate_publishes_sequence_and_enables_play():
    session = build_session()
    assert session.status == STATUS_IDLE
    assert session.playable is False

    sequence = session.generate(["red", "blue"], duration_seconds=0.1, frame_rate_hz=50)

    assert session.status == STATUS_READY
    assert session.status_message == "play"
    assert session.playable is True
    assert session.current_sequence is sequence
    assert len(sequence) == 6
    assert sequence[3].pixels[0, 0].tolist() == [102, 0, 153, 255]


def test_defaults_come_from_settings():
    session = build_session(duration_seconds=2.0, frame_rate_hz=30.0)

    sequence = session.generate(["red", "blue", "red"])

    assert len(sequence) == 1 + 2 * 30
    assert sequence.frame_interval_ms == pytest.approx(1000 / 30)


def test_mixed_sizes_are_normalized_before_blending():
    session = build_session()

    sequence = session.generate(["red", "green"], duration_seconds=0.1, frame_rate_hz=20)

    assert {frame.size for frame in sequence} == {(3, 2)}
    assert sequence[0].pixels[1, 0, 3] == 0


def test_pipeline_is_deterministic():
    images = [RASTERS["red"], RASTERS["blue"], RASTERS["red"]]
    first = build_session().generate_from_rasters(images, duration_seconds=0.5)
    second = build_session(composite_workers=1).generate_from_rasters(images, duration_seconds=0.5)

    assert [frame.tobytes() for frame in first] == [frame.tobytes() for frame in second]


def test_invalid_timing_rejected_before_decoding():
    loader = DictLoader()
    session = build_session(loader)

    with pytest.raises(InvalidTiming):
        session.generate(["red", "blue"], duration_seconds=0)
    with pytest.raises(InvalidTiming):
        session.generate(["red", "blue"], frame_rate_hz=-1)

    assert loader.calls == []
    assert session.status == STATUS_FAILED
    assert session.playable is False


def test_zero_images_rejected():
    session = build_session()

    with pytest.raises(DegenerateInput):
        session.generate([])

    assert session.status == STATUS_FAILED


def test_empty_request_with_bad_timing_reports_timing():
    session = build_session()

    with pytest.raises(InvalidTiming):
        session.generate_from_rasters([], duration_seconds=-1)
    with pytest.raises(InvalidTiming):
        session.generate([], frame_rate_hz=0)

    assert session.status == STATUS_FAILED


def test_decode_failure_aborts_and_reports():
    session = build_session()
    session.generate(["red", "blue"], duration_seconds=0.1)

    with pytest.raises(DecodeFailure):
        session.generate(["red", "missing.png"], duration_seconds=0.1)

    assert session.status == STATUS_FAILED
    assert "missing.png" in session.status_message
    assert session.current_sequence is None
    with pytest.raises(RuntimeError):
        session.start_playback(lambda pixels, width, height: None)


def test_newer_request_supersedes_running_generation():
    loader = DictLoader()
    session = build_session(loader)

    stale_job = session.submit(["slow", "red"], duration_seconds=0.1)
    assert loader.started.wait(5)

    fresh = session.generate(["red", "blue"], duration_seconds=0.1)
    loader.release.set()
    stale_job.thread.join(5)

    assert stale_job.status == "superseded"
    assert session.current_sequence is fresh
    assert session.status == STATUS_READY


def test_submit_completes_in_background():
    session = build_session()

    job = session.submit(["red", "blue"], duration_seconds=0.1)
    job.thread.join(5)

    assert job.status == "completed"
    assert session.current_sequence is not None
    assert job.started_at is not None and job.finished_at is not None
    assert session.list_jobs() == [job]


def test_failed_background_job_records_error():
    session = build_session()

    job = session.submit(["nope"], duration_seconds=0.1)
    job.thread.join(5)

    assert job.status == "failed"
    assert "nope" in job.error


def test_replaced_sequence_is_released():
    session = build_session()

    first_job = session.submit(["red", "blue"], duration_seconds=0.1)
    first_job.thread.join(5)
    first = weakref.ref(session.current_sequence)

    second_job = session.submit(["blue", "red"], duration_seconds=0.1)
    second_job.thread.join(5)
    gc.collect()

    assert first_job.status == second_job.status == "completed"
    assert not hasattr(first_job, "sequence")
    assert first() is None
    assert session.current_sequence is not None


def test_finished_jobs_are_pruned(monkeypatch):
    monkeypatch.setattr(session_module, "JOB_HISTORY_LIMIT", 2)
    session = build_session()

    jobs = []
    for _ in range(3):
        job = session.submit(["red"], duration_seconds=0.1)
        job.thread.join(5)
        jobs.append(job)

    assert session.list_jobs() == jobs[1:]


def test_stale_run_cannot_publish():
    session = build_session()
    token = session._begin()
    session._begin()

    with pytest.raises(GenerationCancelled):
        session._publish(token, session.generate_from_rasters([RASTERS["red"]]))


def test_playback_through_session_draws_every_frame():
    session = build_session()
    session.generate(["red", "blue"], duration_seconds=0.1, frame_rate_hz=50)
    drawn = []
    scheduler = FakeScheduler()

    driver = session.start_playback(
        lambda pixels, width, height: drawn.append(pixels[0, 0, 0]),
        scheduler=scheduler,
    )
    tick = scheduler.jobs[0].func
    while tick():
        pass

    assert driver.state is PlaybackState.FINISHED
    assert drawn == [255, 204, 153, 102, 51, 0]
    assert scheduler.jobs[0].removed is True


def test_new_generation_cancels_active_playback():
    session = build_session()
    session.generate(["red", "blue"], duration_seconds=0.1)
    driver = session.start_playback(lambda *args: None, scheduler=FakeScheduler())

    session.generate(["blue", "red"], duration_seconds=0.1)

    assert driver.state is PlaybackState.IDLE
    assert driver.tick() is False
