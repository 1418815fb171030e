"""
Command line interface for building and playing image transitions.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from .config import TransitionSettings, load_config
from .decoding import collect_image_sources
from .errors import TransitionError
from .logging_setup import configure_logging
from .playback import PlaybackDriver
from .session import TransitionSession
from .sinks import DirectorySink


def _settings_for(args: argparse.Namespace) -> TransitionSettings:
    settings = load_config(args.config)
    workers = getattr(args, "workers", None)
    if workers:
        settings = replace(settings, decode_workers=workers, composite_workers=workers)
    return settings


def render_transition(
    session: TransitionSession,
    args: argparse.Namespace,
    logger: logging.Logger,
) -> int:
    sources = collect_image_sources(args.sources, logger=logger)
    try:
        sequence = session.generate(
            sources,
            duration_seconds=args.duration,
            frame_rate_hz=args.fps,
        )
    except TransitionError as exc:
        logger.error("Unable to build transition: %s", exc)
        return 1

    sink = DirectorySink(args.output_dir)
    try:
        if args.no_pace:
            driver = PlaybackDriver(sink, logger=logger)
            driver.start(sequence)
            while driver.tick():
                pass
        else:
            session.start_playback(sink, wait=True)
    except TransitionError as exc:
        logger.error("Playback aborted after %s frames: %s", sink.count, exc)
        sink.discard()
        return 1

    logger.info("Wrote %s frames to %s", sink.count, sink.output_dir)
    return 0


def show_plan(
    session: TransitionSession,
    args: argparse.Namespace,
    logger: logging.Logger,
) -> int:
    try:
        plan = session.plan_for(
            args.count,
            duration_seconds=args.duration,
            frame_rate_hz=args.fps,
        )
    except TransitionError as exc:
        logger.error("Invalid transition request: %s", exc)
        return 1

    logger.info(
        "%s pairs x %s frames per pair (opacity step %.4f), %s frames in total",
        plan.pair_count,
        plan.frames_per_pair,
        plan.opacity_step,
        plan.total_frames,
    )
    return 0


def _add_timing_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--duration",
        type=float,
        help="Total transition duration in seconds (default from config: 1).",
    )
    parser.add_argument(
        "--fps",
        type=float,
        help="Playback frame rate in Hz (default from config: 60).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Blend a list of images into a smooth crossfade and play it back.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config.json"),
        help="Path to a JSON settings file (default: config.json, environment when missing).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write logs to this file.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    render_parser = subparsers.add_parser(
        "render",
        help="Build the transition and play it into a directory of PNG frames.",
    )
    render_parser.add_argument(
        "sources",
        nargs="+",
        help="Image files, directories of images, or http(s) URLs, in playback order.",
    )
    _add_timing_arguments(render_parser)
    render_parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("frames"),
        help="Directory receiving the played frames (default: ./frames).",
    )
    render_parser.add_argument(
        "--workers",
        type=int,
        help="Worker threads for decoding and compositing.",
    )
    render_parser.add_argument(
        "--no-pace",
        action="store_true",
        help="Write frames as fast as possible instead of at the frame rate.",
    )

    plan_parser = subparsers.add_parser(
        "plan",
        help="Show how many frames a transition would use.",
    )
    plan_parser.add_argument("count", type=int, help="Number of images.")
    _add_timing_arguments(plan_parser)

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _settings_for(args)
    except ValueError as exc:
        parser.error(str(exc))

    logger = configure_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_file=args.log_file or settings.log_file,
    )
    session = TransitionSession(settings, logger=logger)

    if args.command == "render":
        return render_transition(session, args, logger)
    if args.command == "plan":
        return show_plan(session, args, logger)

    parser.error(f"Unhandled command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
