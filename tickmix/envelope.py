"""Waveform generators with click-free fade envelopes.

The sqrt ramps approximate an equal-power crossfade, so a sound never starts or
stops on a hard discontinuity.
"""

from __future__ import annotations

import logging
import math
from typing import Callable

from .config import DEFAULT_SAMPLE_RATE, seconds_to_samples
from .streams import Sample, Stream

_LOGGER = logging.getLogger("tickmix.envelope")

Waveform = Callable[[float, int], float]

DEFAULT_FADE_SAMPLES = seconds_to_samples(0.02, DEFAULT_SAMPLE_RATE)


def fade_in(index: int, length: int) -> float:
    """Gain rising from 0 at ``index`` 0 to 1 at ``index >= length``."""
    if length <= 0:
        return 1.0
    clamped = min(max(index, 0), length)
    return math.sqrt(clamped / length)


def fade_out(index: int, count: int, length: int) -> float:
    """Mirror of ``fade_in``: 1 until ``length`` samples before the end, 0 on the last sample."""
    return fade_in(count - 1 - index, length)


class FiniteGenerator(Stream):
    """Exactly ``floor(duration * sample_rate)`` samples of a faded waveform."""

    def __init__(
        self,
        duration_seconds: float,
        waveform: Waveform,
        *,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        fade_samples: int = DEFAULT_FADE_SAMPLES,
    ) -> None:
        super().__init__()
        self.sample_rate = sample_rate
        self.sample_count = seconds_to_samples(duration_seconds, sample_rate)
        self.fade_samples = max(1, fade_samples)
        self._waveform = waveform
        self._index = 0

    @property
    def remaining(self) -> int:
        return self.sample_count - self._index

    @property
    def exhausted(self) -> bool:
        return self._ended or self._index >= self.sample_count

    def _produce(self) -> Sample | None:
        i = self._index
        if i >= self.sample_count:
            return None
        self._index += 1
        gain = fade_in(i, self.fade_samples) * fade_out(i, self.sample_count, self.fade_samples)
        if gain == 0.0:
            return 0.0
        return gain * self._waveform(i / self.sample_rate, i)


class ControlledGenerator(Stream):
    """Unbounded generator stopped through ``end()``.

    The kill switch is only a flag; the generator notices it on its own next
    pull and fades out from the gain it had reached, so ending during the
    fade-in does not jump back to full volume first.
    """

    def __init__(
        self,
        waveform: Waveform,
        *,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        fade_samples: int = DEFAULT_FADE_SAMPLES,
    ) -> None:
        super().__init__()
        self.sample_rate = sample_rate
        self.fade_samples = max(1, fade_samples)
        self._waveform = waveform
        self._index = 0
        self._ending = False
        self._release_gain: float | None = None
        self._release_index = 0

    @property
    def ending(self) -> bool:
        return self._ending

    @property
    def exhausted(self) -> bool:
        return self._ended or (
            self._release_gain is not None and self._release_index >= self.fade_samples
        )

    def end(self) -> None:
        if not self._ending:
            _LOGGER.debug("Kill switch set after %d samples", self._index)
        self._ending = True

    def _produce(self) -> Sample | None:
        i = self._index
        if self._ending and self._release_gain is None:
            self._release_gain = fade_in(i, self.fade_samples)
        if self._release_gain is None:
            gain = fade_in(i, self.fade_samples)
        else:
            if self._release_index >= self.fade_samples:
                return None
            gain = self._release_gain * fade_out(
                self._release_index, self.fade_samples, self.fade_samples
            )
            self._release_index += 1
        self._index += 1
        return gain * self._waveform(i / self.sample_rate, i)
