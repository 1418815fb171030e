import logging
import sys
from pathlib import Path
from unittest.mock import patch

import cv2
import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from crossfade import cli  # noqa: E402


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep the CLI from replacing pytest's root log handlers."""
    logger = logging.getLogger("crossfade-cli-tests")
    with patch.object(cli, "configure_logging", return_value=logger):
        yield logger


def write_png(path: Path, width: int, height: int, bgra: tuple[int, int, int, int]) -> Path:
    image = np.zeros((height, width, 4), dtype=np.uint8)
    image[...] = bgra
    cv2.imwrite(str(path), image)
    return path


def test_render_writes_every_frame(tmp_path):
    inputs = tmp_path / "inputs"
    inputs.mkdir()
    write_png(inputs / "01.png", 2, 1, (0, 0, 255, 255))
    write_png(inputs / "02.png", 2, 1, (255, 0, 0, 255))
    output_dir = tmp_path / "frames"

    code = cli.main(
        [
            "--config",
            str(tmp_path / "none.json"),
            "render",
            str(inputs),
            "--duration",
            "0.1",
            "--fps",
            "50",
            "--output-dir",
            str(output_dir),
            "--no-pace",
        ]
    )

    assert code == 0
    written = sorted(output_dir.glob("frame_*.png"))
    assert len(written) == 6
    third = cv2.imread(str(written[3]), cv2.IMREAD_UNCHANGED)
    # BGRA on disk: blue 153, red 102
    assert third[0, 0].tolist() == [153, 0, 102, 255]


def test_render_paced_playback(tmp_path):
    source = write_png(tmp_path / "only.png", 1, 1, (5, 6, 7, 255))
    output_dir = tmp_path / "paced"

    code = cli.main(
        [
            "--config",
            str(tmp_path / "none.json"),
            "render",
            str(source),
            "--duration",
            "0.05",
            "--fps",
            "100",
            "--output-dir",
            str(output_dir),
        ]
    )

    assert code == 0
    assert len(list(output_dir.glob("frame_*.png"))) == 6


def test_render_without_images_fails(tmp_path):
    (tmp_path / "notes.txt").write_text("nothing", encoding="utf-8")

    code = cli.main(
        [
            "--config",
            str(tmp_path / "none.json"),
            "render",
            str(tmp_path / "notes.txt"),
            "--output-dir",
            str(tmp_path / "out"),
        ]
    )

    assert code == 1
    assert not (tmp_path / "out").exists()


def test_render_reports_decode_failure(tmp_path):
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"nope")

    code = cli.main(["--config", str(tmp_path / "none.json"), "render", str(broken)])

    assert code == 1


def test_plan_command(tmp_path, caplog):
    caplog.set_level("INFO")

    code = cli.main(["--config", str(tmp_path / "none.json"), "plan", "3"])

    assert code == 0
    assert "2 pairs x 30 frames per pair" in caplog.text


def test_plan_rejects_bad_timing(tmp_path):
    code = cli.main(["--config", str(tmp_path / "none.json"), "plan", "2", "--fps", "0"])

    assert code == 1


def failing_on_third_frame(original):
    def draw(self, pixels, width, height):
        if self.count == 2:
            raise OSError("disk full")
        original(self, pixels, width, height)

    return draw


@pytest.mark.parametrize("pace_args", [[], ["--no-pace"]])
def test_render_aborts_when_a_frame_cannot_be_written(tmp_path, pace_args):
    first = write_png(tmp_path / "0.png", 1, 1, (0, 0, 255, 255))
    second = write_png(tmp_path / "1.png", 1, 1, (255, 0, 0, 255))
    output_dir = tmp_path / "frames"
    draw = failing_on_third_frame(cli.DirectorySink.__call__)

    with patch.object(cli.DirectorySink, "__call__", draw):
        code = cli.main(
            [
                "--config",
                str(tmp_path / "none.json"),
                "render",
                str(first),
                str(second),
                "--duration",
                "0.1",
                "--fps",
                "50",
                "--output-dir",
                str(output_dir),
                *pace_args,
            ]
        )

    assert code == 1
    assert list(output_dir.glob("frame_*.png")) == []
