from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import numpy as np

from .channel import Channel
from .config import EngineConfig, seconds_to_samples
from .sinks import WavSink
from .streams import FloatArray, Stream
from .waveforms import FAILURE_SYMBOL, build_sound

_LOGGER = logging.getLogger("tickmix.render")

Schedule = Iterable[tuple[float, Stream | str]]


def render_timeline(
    schedule: Schedule,
    duration: float,
    config: EngineConfig | None = None,
    *,
    rng: np.random.Generator | None = None,
    channel: Channel | None = None,
) -> FloatArray:
    """Render ``duration`` seconds of channel output without a clock.

    Each schedule entry is ``(start_seconds, sound)`` where ``sound`` is a
    stream or one of the preset symbols; it joins the mix at sample
    ``floor(start_seconds * sample_rate)``.
    """
    cfg = config or EngineConfig()
    generator = rng if rng is not None else np.random.default_rng()
    target = channel if channel is not None else Channel.from_config(cfg)
    total = seconds_to_samples(duration, cfg.sample_rate)

    pending = sorted(
        (
            (seconds_to_samples(start, cfg.sample_rate), index, sound)
            for index, (start, sound) in enumerate(schedule)
        ),
        key=lambda item: (item[0], item[1]),
    )
    output = target.play()
    rendered = np.empty(total, dtype=np.float32)
    cursor = 0
    for start, _, sound in pending:
        if start >= total:
            _LOGGER.debug("Dropping sound scheduled after the render window")
            continue
        if start > cursor:
            chunk = output.take(start - cursor)
            rendered[cursor : cursor + chunk.size] = chunk
            cursor += chunk.size
        if target.active_sounds >= cfg.max_concurrent_sounds:
            _LOGGER.debug("Dropping sound at sample %d: channel is full", start)
            continue
        if isinstance(sound, str):
            if sound == FAILURE_SYMBOL:
                target.dry_feedback()
            sound = build_sound(
                sound,
                rng=generator,
                sample_rate=cfg.sample_rate,
                fade_samples=cfg.fade_samples,
            )
        target.add(sound)
    if cursor < total:
        chunk = output.take(total - cursor)
        rendered[cursor : cursor + chunk.size] = chunk
        cursor += chunk.size
    return rendered[:cursor]


def render_to_wav(
    path: str | Path,
    schedule: Schedule,
    duration: float,
    config: EngineConfig | None = None,
    *,
    rng: np.random.Generator | None = None,
) -> Path:
    cfg = config or EngineConfig()
    samples = render_timeline(schedule, duration, cfg, rng=rng)
    sink = WavSink(path, sample_rate=cfg.sample_rate)
    try:
        sink.write(samples)
    finally:
        sink.close()
    return sink.path
