from __future__ import annotations

import argparse
import importlib.util
import json
import logging
import shutil
import sys
from typing import Iterable

import numpy as np
from rich.console import Console

from .config import EngineConfig, FeedbackConfig
from .engine import Engine
from .events import NonBlockingReader
from .logging_utils import (
    clear_run_context,
    configure_logging,
    debug_enabled,
    log_exception,
    set_run_context,
)
from .recording import RecordingStream
from .render import render_to_wav
from .sinks import open_sink
from .waveforms import PRESETS

_LOGGER = logging.getLogger("tickmix.cli")
# stdout carries the echoed event text.
_CONSOLE = Console(stderr=True)


def _report(lines: Iterable[str]) -> None:
    for line in lines:
        _CONSOLE.print(line)


def _log_payload(payload: str) -> None:
    try:
        decoded = json.loads(payload)
    except json.JSONDecodeError:
        _LOGGER.info("Side-channel payload: %r", payload)
        return
    _LOGGER.info("Side-channel message: %s", decoded)


def _add_engine_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--sample-rate", type=int, default=None)
    parser.add_argument("--headroom", type=float, default=None, help="Seconds buffered ahead.")
    parser.add_argument("--max-batch", type=float, default=None, help="Seconds per pacing tick.")
    parser.add_argument("--fade", type=float, default=None, help="Fade in/out seconds.")
    parser.add_argument("--echo-delay", type=float, default=None)
    parser.add_argument("--echo-feedback", type=float, default=None)
    parser.add_argument("--dry", action="store_true", help="Disable the feedback echo.")
    parser.add_argument("--regulate", action="store_true", help="Soft-limit the mix.")
    parser.add_argument(
        "--max-sounds", type=int, default=None, help="Sounds allowed to play at once."
    )


def _config_from_args(args: argparse.Namespace) -> EngineConfig:
    base = EngineConfig()
    feedback: tuple[FeedbackConfig, ...] | None = None
    if args.dry:
        feedback = ()
    elif args.echo_delay is not None or args.echo_feedback is not None:
        default = FeedbackConfig()
        feedback = (
            FeedbackConfig(
                delay_seconds=args.echo_delay or default.delay_seconds,
                feedback_scale=(
                    default.feedback_scale if args.echo_feedback is None else args.echo_feedback
                ),
            ),
        )
    return base.with_overrides(
        sample_rate=args.sample_rate,
        buffer_headroom_seconds=args.headroom,
        max_batch_seconds=args.max_batch,
        fade_seconds=args.fade,
        feedback=feedback,
        regulate=args.regulate or None,
        max_concurrent_sounds=args.max_sounds,
        sink=getattr(args, "sink", None),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tickmix")
    sub = parser.add_subparsers(dest="command", required=True)

    play = sub.add_parser("play", help="Sonify tick symbols read from stdin.")
    _add_engine_options(play)
    play.add_argument("--sink", choices=["sox", "sounddevice"], default=None)
    play.add_argument("--quiet", action="store_true", help="Do not echo input to stdout.")

    render = sub.add_parser("render", help="Render a symbol sequence to a WAV file.")
    _add_engine_options(render)
    render.add_argument("symbols", type=str, help=f"Symbols from {''.join(PRESETS)}.")
    render.add_argument("--spacing", type=float, default=0.1)
    render.add_argument("--tail", type=float, default=2.5, help="Seconds after the last sound.")
    render.add_argument("--output", type=str, default="ticks.wav")
    render.add_argument("--seed", type=int, default=None)

    record = sub.add_parser("record", help="Monitor the capture input through the channel.")
    _add_engine_options(record)
    record.add_argument("--sink", choices=["sox", "sounddevice"], default=None)
    record.add_argument("--duration", type=float, default=10.0)

    sub.add_parser("doctor", help="Check for audio tools and backends.")
    return parser


def _describe_sink(config: EngineConfig) -> str:
    if config.sink == "sox":
        return " ".join(config.resolved_play_command())
    return config.sink


def _run_play(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    set_run_context(mode="play", sample_rate=config.sample_rate, sink=_describe_sink(config))
    sink = open_sink(config)
    reader: NonBlockingReader | None = None
    try:
        engine = Engine(config, sink, on_payload=_log_payload)
        reader = NonBlockingReader(sys.stdin.fileno())
        engine.run(reader, None if args.quiet else sys.stdout)
        if engine.dropped_sounds:
            _LOGGER.info("Dropped %d sounds over the concurrency cap", engine.dropped_sounds)
    finally:
        if reader is not None:
            reader.close()
        sink.close()
    return 0


def _run_render(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    unknown = sorted({symbol for symbol in args.symbols if symbol not in PRESETS})
    if unknown:
        _CONSOLE.print(f"Unknown symbols: {''.join(unknown)} (valid: {''.join(PRESETS)})")
        return 2
    schedule = [(index * args.spacing, symbol) for index, symbol in enumerate(args.symbols)]
    duration = max(len(schedule) - 1, 0) * args.spacing + args.tail
    with _CONSOLE.status("Rendering ticks"):
        path = render_to_wav(
            args.output,
            schedule,
            duration,
            config,
            rng=np.random.default_rng(args.seed),
        )
    _CONSOLE.print(f"Wrote {len(schedule)} ticks to {path} (sr={config.sample_rate})")
    return 0


def _run_record(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    set_run_context(mode="record", sample_rate=config.sample_rate, sink=_describe_sink(config))
    sink = open_sink(config)
    recording: RecordingStream | None = None
    try:
        recording = RecordingStream.from_process(config)
        engine = Engine(config, sink)
        engine.add(recording)
        engine.play_for(args.duration)
    finally:
        if recording is not None:
            recording.close()
        sink.close()
    return 0


def _run_doctor() -> int:
    play_path = shutil.which("play")
    rec_path = shutil.which("rec")
    has_sounddevice = importlib.util.find_spec("sounddevice") is not None
    _report(
        [
            f"SoX play: {play_path or 'missing'}",
            f"SoX rec: {rec_path or 'missing'}",
            f"sounddevice installed: {has_sounddevice}",
            "Hints:",
            "- Install SoX for the default sink (apt install sox / brew install sox).",
            "- Or install tickmix[sounddevice] and pass --sink sounddevice.",
            "- Pipe a test run in with `pytest --tickmix | tickmix play`.",
        ]
    )
    return 0 if play_path or has_sounddevice else 1


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    clear_run_context()
    try:
        parser = build_parser()
        args = parser.parse_args(argv)

        if args.command == "play":
            return _run_play(args)
        if args.command == "render":
            return _run_render(args)
        if args.command == "record":
            return _run_record(args)
        if args.command == "doctor":
            return _run_doctor()

        parser.print_help()
        return 1
    except KeyboardInterrupt:
        _LOGGER.info("Interrupted")
        return 130
    except Exception as exc:
        _LOGGER.warning("tickmix CLI failed: %s", exc, exc_info=debug_enabled())
        path = log_exception("tickmix CLI", exc)
        _CONSOLE.print(f"[red]tickmix failed:[/red] {exc}")
        if path is not None:
            _CONSOLE.print(f"Details logged to {path}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
