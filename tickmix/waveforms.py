"""
Tick sound presets.

The oscillators take a sample index (not seconds) so the presets can bend
time with powers of the index; that ties their pitch to the sample rate.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable

import numpy as np

from .config import DEFAULT_SAMPLE_RATE
from .envelope import DEFAULT_FADE_SAMPLES, FiniteGenerator, Waveform

PASS_SYMBOL = "·"
PENDING_SYMBOL = "¤"
FAILURE_SYMBOL = "ƒ"


def square(
    sample: float,
    *,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    amplitude: float = 0.05,
    frequency: float = 1_000.0,
) -> float:
    half_period = sample_rate / (2 * frequency)
    return amplitude if (sample / half_period) % 2 < 1 else -amplitude


def sine(
    sample: float,
    *,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    amplitude: float = 0.1,
    frequency: float = 1_000.0,
) -> float:
    return math.sin(sample * frequency * 2 * math.pi / sample_rate) * amplitude


def saw(
    sample: float,
    *,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    amplitude: float = 0.1,
    frequency: float = 1_000.0,
) -> float:
    """Symmetric ramp (rises for one half period, falls for the next)."""
    half_period = sample_rate / (2 * frequency)
    phase = sample % half_period
    if (sample / half_period) % 2 <= 1:
        return amplitude * ((phase / half_period) - 0.5) * 2
    return amplitude * ((1 - (phase / half_period)) - 0.5) * 2


def _pass_chirp(jitter: float, sample_rate: int) -> Waveform:
    # Base pitch creeps up with t**1.1 while the jittered term sweeps faster.
    def wave(_: float, t: int) -> float:
        return sine(t**1.1 + 3 * t ** (1.01 + jitter), sample_rate=sample_rate)

    return wave


def _pending_sweep(jitter: float, sample_rate: int) -> Waveform:
    def wave(_: float, t: int) -> float:
        return saw(16.0 * t ** (0.8 + jitter + t / sample_rate / 20), sample_rate=sample_rate)

    return wave


def _failure_warble(jitter: float, sample_rate: int) -> Waveform:
    def wave(_: float, t: int) -> float:
        wobble = 200 * math.sin(t ** (0.5 + jitter) * 2_000 / sample_rate * math.pi)
        return square(t**0.78 - wobble, sample_rate=sample_rate)

    return wave


@dataclass(frozen=True, slots=True)
class SoundPreset:
    duration_seconds: float
    jitter_stddev: float
    factory: Callable[[float, int], Waveform]


PRESETS: Mapping[str, SoundPreset] = MappingProxyType(
    {
        PASS_SYMBOL: SoundPreset(0.2, 0.025, _pass_chirp),
        PENDING_SYMBOL: SoundPreset(0.5, 0.03, _pending_sweep),
        FAILURE_SYMBOL: SoundPreset(2.0, 0.03, _failure_warble),
    }
)


def build_sound(
    symbol: str,
    *,
    rng: np.random.Generator | None = None,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    fade_samples: int = DEFAULT_FADE_SAMPLES,
) -> FiniteGenerator:
    """A finite generator for one of the three recognised symbols.

    Each call draws fresh Gaussian jitter so repeated ticks never sound
    identical.
    """
    preset = PRESETS.get(symbol)
    if preset is None:
        raise KeyError(f"No sound for symbol {symbol!r}. Valid: {list(PRESETS)}")
    generator = rng if rng is not None else np.random.default_rng()
    jitter = float(generator.normal(0.0, preset.jitter_stddev))
    return FiniteGenerator(
        preset.duration_seconds,
        preset.factory(jitter, sample_rate),
        sample_rate=sample_rate,
        fade_samples=fade_samples,
    )
