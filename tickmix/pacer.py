"""Wall-clock pacing of output batches against the sink's playback rate.

The sink plays audio in real time with its own buffer. Producing too far ahead
only adds latency and producing too little underruns it, so each tick writes
just enough to stay ``buffer_headroom_seconds`` ahead of the clock.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from pydantic import BaseModel, ConfigDict, field_validator

from .config import EngineConfig
from .errors import SinkClosedError
from .sinks import Sink
from .streams import Stream

_LOGGER = logging.getLogger("tickmix.pacer")

Clock = Callable[[], float]


class PacingState(BaseModel):
    sample_rate: int
    buffer_headroom_seconds: float
    max_batch_samples: int
    samples_written: int = 0
    started_at: float | None = None

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    @field_validator("max_batch_samples")
    @classmethod
    def _validate_batch(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_batch_samples must be at least 1")
        return value

    @classmethod
    def from_config(cls, config: EngineConfig) -> "PacingState":
        return cls(
            sample_rate=config.sample_rate,
            buffer_headroom_seconds=config.buffer_headroom_seconds,
            max_batch_samples=config.max_batch_samples,
        )

    @property
    def buffer_headroom_samples(self) -> int:
        return math.ceil(self.buffer_headroom_seconds * self.sample_rate)

    def elapsed_samples(self, now: float) -> int:
        if self.started_at is None:
            return 0
        return math.ceil((now - self.started_at) * self.sample_rate)

    def debt(self, now: float) -> int:
        """Samples owed to the sink; negative when already far enough ahead."""
        return self.elapsed_samples(now) + self.buffer_headroom_samples - self.samples_written

    def batch_size(self, now: float) -> int:
        return min(max(self.debt(now), 0), self.max_batch_samples)


class OutputPacer:
    """Pulls bounded batches from ``stream`` into ``sink`` on each tick.

    Ticking never blocks; a tick with no debt does nothing and the caller
    simply tries again later.
    """

    def __init__(
        self,
        stream: Stream,
        sink: Sink,
        state: PacingState,
        *,
        clock: Clock = time.monotonic,
    ) -> None:
        self.stream = stream
        self.sink = sink
        self.state = state
        self._clock = clock
        self.stopped = False

    def start(self) -> None:
        if self.state.started_at is None:
            self.state.started_at = self._clock()
            _LOGGER.debug("Pacing started at %.3f", self.state.started_at)

    def tick(self) -> int:
        if self.stopped:
            raise SinkClosedError("output pacer already stopped after a sink failure")
        self.start()
        size = self.state.batch_size(self._clock())
        if size <= 0:
            return 0
        batch = self.stream.take(size)
        try:
            self.sink.write(batch)
        except SinkClosedError:
            self.stopped = True
            _LOGGER.error("Audio sink failed after %d samples", self.state.samples_written)
            raise
        self.state.samples_written += int(batch.size)
        if batch.size < size:
            _LOGGER.warning("Output stream ended early (%d of %d samples)", batch.size, size)
        return int(batch.size)
