"""The engine context tying events, the channel and the output pacer together.

Everything the player mutates lives on one ``Engine`` owned by the caller and
driven from a single loop, so there is no shared state to lock.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from typing import IO, Callable

import numpy as np

from .channel import Channel
from .config import EngineConfig
from .errors import SinkClosedError
from .events import Event, EventParser, NonBlockingReader, Passthrough, SideChannel, SoundEvent
from .pacer import Clock, OutputPacer, PacingState
from .mixer import StreamId
from .sinks import Sink
from .streams import Stream
from .waveforms import FAILURE_SYMBOL, build_sound

_LOGGER = logging.getLogger("tickmix.engine")

PayloadHook = Callable[[str], None]


class Engine:
    def __init__(
        self,
        config: EngineConfig,
        sink: Sink,
        *,
        rng: np.random.Generator | None = None,
        clock: Clock = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        on_payload: PayloadHook | None = None,
    ) -> None:
        self.config = config
        self.sink = sink
        self.rng = rng if rng is not None else np.random.default_rng()
        self.channel = Channel.from_config(config)
        self.pacer = OutputPacer(
            self.channel.play(),
            sink,
            PacingState.from_config(config),
            clock=clock,
        )
        self.parser = EventParser()
        self.on_payload = on_payload
        self.first_sound_at: float | None = None
        self.dropped_sounds = 0
        self._clock = clock
        self._sleep = sleep

    @property
    def samples_written(self) -> int:
        return self.pacer.state.samples_written

    def add(self, stream: Stream) -> StreamId | None:
        """Start ``stream`` unless the concurrent-sound cap is already reached."""
        if self.channel.active_sounds >= self.config.max_concurrent_sounds:
            self.dropped_sounds += 1
            _LOGGER.debug("Dropping sound: %d already playing", self.config.max_concurrent_sounds)
            return None
        if self.first_sound_at is None:
            # Pacing counts from the first sound, not from process start.
            self.first_sound_at = self._clock()
            _LOGGER.debug("First sound at %.3f", self.first_sound_at)
        return self.channel.add(stream)

    def trigger(self, symbol: str) -> StreamId | None:
        if symbol == FAILURE_SYMBOL:
            self.channel.dry_feedback()
        sound = build_sound(
            symbol,
            rng=self.rng,
            sample_rate=self.config.sample_rate,
            fade_samples=self.config.fade_samples,
        )
        return self.add(sound)

    def tick(self) -> int:
        if self.first_sound_at is None:
            return 0
        return self.pacer.tick()

    def handle(self, events: Iterable[Event], echo: IO[str] | None = None) -> None:
        for event in events:
            match event:
                case SoundEvent(symbol=symbol):
                    self.trigger(symbol)
                    if echo is not None:
                        echo.write(symbol)
                case Passthrough(text=text):
                    if echo is not None:
                        echo.write(text)
                case SideChannel(payload=payload):
                    if self.on_payload is not None:
                        self.on_payload(payload)
                    else:
                        _LOGGER.debug("Ignoring side-channel payload (%d chars)", len(payload))
        if echo is not None:
            echo.flush()

    def play_for(self, seconds: float) -> None:
        """Keep pacing output for ``seconds`` of wall-clock time."""
        deadline = self._clock() + seconds
        while self._clock() < deadline:
            self.tick()
            self._sleep(self.config.tick_interval_seconds)

    def run(self, reader: NonBlockingReader, echo: IO[str] | None = None) -> None:
        """Play events from ``reader`` until it ends and the channel falls quiet.

        A sink failure stops the loop and propagates to the caller.
        """
        idle_since: float | None = None
        try:
            while True:
                text = reader.read()
                if text:
                    self.handle(self.parser.feed(text), echo)
                self.tick()
                if reader.eof:
                    now = self._clock()
                    if not self.channel.idle:
                        idle_since = None
                    elif idle_since is None:
                        idle_since = now
                    elif now - idle_since >= self.config.linger_seconds:
                        break
                if not text:
                    self._sleep(self.config.tick_interval_seconds)
        except SinkClosedError:
            _LOGGER.error("Stopping playback: audio sink is gone")
            raise
        _LOGGER.info("Playback finished after %d samples", self.samples_written)
