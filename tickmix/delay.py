"""Feedback delay lines (tape loops) for echo and reverb."""

from __future__ import annotations

import logging
import math

import numpy as np
from numpy.typing import NDArray

from .config import DEFAULT_SAMPLE_RATE
from .streams import Sample, Stream

_LOGGER = logging.getLogger("tickmix.delay")


class DelayLine:
    """Fixed-size ring buffer read and overwritten one slot per cycle.

    Each cycle reads ``buffer[index]`` and then stores the new write in that
    same slot before advancing, so a sample written now comes back exactly
    ``size`` cycles later. Reads and writes must alternate one-for-one.
    """

    def __init__(
        self,
        delay_seconds: float,
        feedback_scale: float,
        *,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
    ) -> None:
        self.size = max(1, math.floor(delay_seconds * sample_rate))
        self.feedback_scale = feedback_scale
        self._buffer: NDArray[np.float64] = np.zeros(self.size, dtype=np.float64)
        self._index = 0
        _LOGGER.debug("Delay line of %d samples, feedback %.3f", self.size, feedback_scale)

    @property
    def index(self) -> int:
        return self._index

    def read(self) -> float:
        return float(self._buffer[self._index])

    def write(self, sample: float) -> None:
        self._buffer[self._index] = sample * self.feedback_scale
        self._index = (self._index + 1) % self.size

    def clear(self) -> None:
        self._buffer.fill(0.0)

    def wrap(self, feed: Stream) -> Stream:
        """Delay ``feed`` by one loop period, writing it through the feedback scale."""
        return _DelayWrap(self, feed)

    def tap(self) -> Stream:
        """Endless stream of ``read()`` values; pair with one ``write()`` per pull."""
        return DelayTap(self)


class DelayTap(Stream):
    def __init__(self, line: DelayLine) -> None:
        super().__init__()
        self.line = line

    def _produce(self) -> Sample | None:
        return self.line.read()


class _DelayWrap(Stream):
    def __init__(self, line: DelayLine, feed: Stream) -> None:
        super().__init__()
        self._line = line
        self._feed = feed

    @property
    def exhausted(self) -> bool:
        return self._ended or self._feed.exhausted

    def _produce(self) -> Sample | None:
        delayed = self._line.read()
        incoming = self._feed.pull()
        if incoming is None:
            return None
        self._line.write(incoming)
        return delayed
