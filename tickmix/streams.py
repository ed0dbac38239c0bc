"""
Pull-based sample streams.

A stream hands out one float sample per ``pull()`` and returns ``None`` once
it has nothing left. Streams are single-consumer: pulling advances their
cursor, so two callers reading the same stream see interleaved samples.
Pulling again after ``None`` is a contract violation and raises
``StreamExhaustedError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from typing import Any

import numpy as np
from numpy.typing import NDArray

from .errors import StreamExhaustedError

FloatArray = NDArray[np.float32]
Sample = float


class Stream(ABC):
    """Base class for every sample source in the engine."""

    def __init__(self) -> None:
        self._ended = False

    @property
    def ended(self) -> bool:
        """True once ``pull()`` has returned ``None``."""
        return self._ended

    @property
    def exhausted(self) -> bool:
        """True when no further real sample will be produced.

        Finite streams override this so a mixer can drop them right after
        their final sample instead of one pull later.
        """
        return self._ended

    def pull(self) -> Sample | None:
        if self._ended:
            raise StreamExhaustedError(f"{type(self).__name__} was pulled after it ended")
        value = self._produce()
        if value is None:
            self._ended = True
        return value

    @abstractmethod
    def _produce(self) -> Sample | None:
        """Compute the next sample, or ``None`` when finished."""

    def take(self, count: int) -> FloatArray:
        """Pull up to ``count`` samples; shorter only if the stream ends."""
        out = np.empty(max(0, count), dtype=np.float32)
        filled = 0
        while filled < count:
            if self.exhausted:
                break
            value = self.pull()
            if value is None:
                break
            out[filled] = value
            filled += 1
        return out[:filled]

    def then(self, *others: Stream) -> Stream:
        return Concat(self, *others)

    def __iter__(self) -> Iterator[Sample]:
        return self

    def __next__(self) -> Sample:
        if self.exhausted:
            self._ended = True
            raise StopIteration
        value = self.pull()
        if value is None:
            raise StopIteration
        return value


class Silence(Stream):
    """Endless zeros; keeps a mixer producing output with no sounds queued."""

    def _produce(self) -> Sample | None:
        return 0.0


class Constant(Stream):
    def __init__(self, value: float) -> None:
        super().__init__()
        self.value = float(value)

    def _produce(self) -> Sample | None:
        return self.value


class SampleStream(Stream):
    """Finite stream over precomputed samples."""

    def __init__(self, samples: Sequence[float] | NDArray[Any]) -> None:
        super().__init__()
        self._samples: NDArray[np.float64] = np.asarray(samples, dtype=np.float64).reshape(-1)
        self._index = 0

    def __len__(self) -> int:
        return int(self._samples.size)

    @property
    def remaining(self) -> int:
        return int(self._samples.size) - self._index

    @property
    def exhausted(self) -> bool:
        return self._ended or self._index >= self._samples.size

    def _produce(self) -> Sample | None:
        if self._index >= self._samples.size:
            return None
        value = float(self._samples[self._index])
        self._index += 1
        return value


class Concat(Stream):
    """Plays each stream to its end, then moves on to the next."""

    def __init__(self, *streams: Stream) -> None:
        super().__init__()
        self._streams = list(streams)
        self._position = 0

    def _skip_exhausted(self) -> None:
        while self._position < len(self._streams) and self._streams[self._position].exhausted:
            self._position += 1

    @property
    def exhausted(self) -> bool:
        if self._ended:
            return True
        self._skip_exhausted()
        return self._position >= len(self._streams)

    def _produce(self) -> Sample | None:
        while True:
            self._skip_exhausted()
            if self._position >= len(self._streams):
                return None
            value = self._streams[self._position].pull()
            if value is not None:
                return value
            self._position += 1


class FilteredStream(Stream):
    """Single-input transform; the end of the source ends the filter."""

    def __init__(self, source: Stream) -> None:
        super().__init__()
        self.source = source

    @property
    def exhausted(self) -> bool:
        return self._ended or self.source.exhausted

    def _produce(self) -> Sample | None:
        sample = self.source.pull()
        if sample is None:
            return None
        return self.process(sample)

    @abstractmethod
    def process(self, sample: float) -> float:
        """Transform one input sample."""
