"""Stateful per-sample filters.

Constructing a filter over a stream is how it gets applied; the result is a
stream again, so filters chain in series.
"""

from __future__ import annotations

import logging
import math
from collections import deque

from .config import DEFAULT_SAMPLE_RATE
from .streams import FilteredStream, Sample, Stream

_LOGGER = logging.getLogger("tickmix.filters")


class EmaLowPass(FilteredStream):
    """Exponential moving average low-pass.

    Colours the sound less than a resonant filter; higher ``influence_hz``
    lets more of the high end through.
    """

    def __init__(
        self, source: Stream, *, influence_hz: float, sample_rate: int = DEFAULT_SAMPLE_RATE
    ) -> None:
        super().__init__(source)
        self.normalized_influence = min(influence_hz / sample_rate, 1.0)
        self.value = 0.0

    def process(self, sample: float) -> float:
        self.value += (sample - self.value) * self.normalized_influence
        return self.value


class RollingAverage(FilteredStream):
    """Simple moving average over the last ``span_seconds``; soft enough for echoes."""

    def __init__(
        self, source: Stream, *, span_seconds: float, sample_rate: int = DEFAULT_SAMPLE_RATE
    ) -> None:
        super().__init__(source)
        self.size = max(1, math.floor(span_seconds * sample_rate))
        self._window: deque[float] = deque([0.0] * self.size)
        self.average = 0.0

    def process(self, sample: float) -> float:
        self._window.append(sample)
        popped = self._window.popleft()
        self.average += (sample - popped) / self.size
        return self.average


class Dragging(FilteredStream):
    """Slew-rate limiter.

    Signals that move faster than the allowed slope turn into rough triangle
    waves, so high pitches fade out as laser-like sweeps.
    """

    def __init__(
        self,
        source: Stream,
        *,
        change_per_second: float,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
    ) -> None:
        super().__init__(source)
        self.max_change = change_per_second / sample_rate
        self.value = 0.0

    def process(self, sample: float) -> float:
        step = min(max(sample - self.value, -self.max_change), self.max_change)
        self.value += step
        return self.value


class Invert(FilteredStream):
    def process(self, sample: float) -> float:
        return -sample


class _Sum(FilteredStream):
    """Adds a second, lock-stepped stream onto the source."""

    def __init__(self, source: Stream, other: Stream) -> None:
        super().__init__(source)
        self._other = other

    @property
    def exhausted(self) -> bool:
        return super().exhausted or self._other.exhausted

    def _produce(self) -> Sample | None:
        sample = self.source.pull()
        other = self._other.pull()
        if sample is None or other is None:
            return None
        return sample + other

    def process(self, sample: float) -> float:
        return sample


class _Tee:
    """Feeds one upstream stream to two lock-stepped readers."""

    def __init__(self, source: Stream) -> None:
        self._source = source
        self._pending: list[deque[Sample | None]] = [deque(), deque()]

    def branch(self, which: int) -> Stream:
        return _TeeBranch(self, which)

    def next_for(self, which: int) -> Sample | None:
        queue = self._pending[which]
        if not queue:
            value = self._source.pull()
            for pending in self._pending:
                pending.append(value)
        return queue.popleft()

    @property
    def exhausted(self) -> bool:
        return self._source.exhausted


class _TeeBranch(Stream):
    def __init__(self, tee: _Tee, which: int) -> None:
        super().__init__()
        self._tee = tee
        self._which = which

    @property
    def exhausted(self) -> bool:
        return self._ended or (not self._tee._pending[self._which] and self._tee.exhausted)

    def _produce(self) -> Sample | None:
        return self._tee.next_for(self._which)


def high_pass(
    source: Stream, *, influence_hz: float, sample_rate: int = DEFAULT_SAMPLE_RATE
) -> Stream:
    """Dry signal minus its low-passed copy."""
    tee = _Tee(source)
    low = Invert(EmaLowPass(tee.branch(1), influence_hz=influence_hz, sample_rate=sample_rate))
    return _Sum(tee.branch(0), low)


class Regulator(FilteredStream):
    """Soft limiter that keeps summed sounds from clipping.

    A sample that would exceed 1.0 resets the scale so it lands exactly on
    1.0; afterwards the scale creeps back toward 1.0 by ``downstep`` per
    sample, which avoids zipper noise from instant recovery.
    """

    def __init__(self, source: Stream, *, sample_rate: int = DEFAULT_SAMPLE_RATE) -> None:
        super().__init__(source)
        self.scale = 1.0
        self.downstep = 1.0 - 1.0 / sample_rate

    def process(self, sample: float) -> float:
        out = sample * self.scale
        if out > 1.0:
            if sample != 0.0:
                self.scale = 1.0 / sample
            return 1.0
        if self.scale < 1.0:
            self.scale = min(self.scale / self.downstep, 1.0)
        else:
            self.scale = 1.0
        return out
