from __future__ import annotations

import logging
import math
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidConfigError

_LOGGER = logging.getLogger("tickmix.config")

# Every waveform preset is tuned against this rate; changing it pitch-shifts them.
DEFAULT_SAMPLE_RATE = 41_000

SinkName = Literal["sox", "sounddevice"]


def seconds_to_samples(seconds: float, sample_rate: int) -> int:
    """Whole samples covered by ``seconds`` (floored, never negative)."""
    return max(0, math.floor(seconds * sample_rate))


class FeedbackConfig(BaseModel):
    """One feedback delay line (echo or reverb) attached to a channel."""

    delay_seconds: float = 0.18
    feedback_scale: float = 0.7
    smoothing_seconds: float | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("delay_seconds")
    @classmethod
    def _validate_delay(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("delay_seconds must be positive")
        return value

    @field_validator("feedback_scale")
    @classmethod
    def _validate_feedback(cls, value: float) -> float:
        if not math.isfinite(value) or abs(value) >= 1.0:
            # A loop gain of 1 or more never decays.
            raise ValueError("feedback_scale must be within (-1, 1)")
        return value

    @field_validator("smoothing_seconds")
    @classmethod
    def _validate_smoothing(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("smoothing_seconds must be positive when set")
        return value


class EngineConfig(BaseModel):
    sample_rate: int = DEFAULT_SAMPLE_RATE
    max_batch_seconds: float = 0.1
    buffer_headroom_seconds: float = 0.4
    fade_seconds: float = 0.02
    feedback: tuple[FeedbackConfig, ...] = Field(default_factory=lambda: (FeedbackConfig(),))
    regulate: bool = False
    tick_interval_seconds: float = 0.01
    linger_seconds: float = 3.0
    max_concurrent_sounds: int = 10
    failure_dry_seconds: float | None = 5.0
    sink: SinkName = "sox"
    play_command: tuple[str, ...] | None = None
    record_command: tuple[str, ...] | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("sample_rate")
    @classmethod
    def _validate_sample_rate(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("sample_rate must be positive")
        return value

    @field_validator("max_batch_seconds", "fade_seconds", "tick_interval_seconds")
    @classmethod
    def _validate_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("value must be positive")
        return value

    @field_validator("max_concurrent_sounds")
    @classmethod
    def _validate_sound_cap(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_concurrent_sounds must be at least 1")
        return value

    @field_validator("failure_dry_seconds")
    @classmethod
    def _validate_dry_ramp(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("failure_dry_seconds must be positive when set")
        return value

    @field_validator("buffer_headroom_seconds", "linger_seconds")
    @classmethod
    def _validate_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("value must not be negative")
        return value

    @property
    def max_batch_samples(self) -> int:
        return max(1, math.ceil(self.max_batch_seconds * self.sample_rate))

    @property
    def buffer_headroom_samples(self) -> int:
        return math.ceil(self.buffer_headroom_seconds * self.sample_rate)

    @property
    def fade_samples(self) -> int:
        return max(1, seconds_to_samples(self.fade_seconds, self.sample_rate))

    def resolved_play_command(self) -> tuple[str, ...]:
        if self.play_command is not None:
            return self.play_command
        return (
            "play",
            "-q",
            "-t",
            "raw",
            "-b",
            "32",
            "-r",
            str(self.sample_rate),
            "-c",
            "1",
            "-e",
            "floating-point",
            "--endian",
            "little",
            "-",
        )

    def resolved_record_command(self) -> tuple[str, ...]:
        if self.record_command is not None:
            return self.record_command
        return (
            "rec",
            "-q",
            "-t",
            "raw",
            "-r",
            str(self.sample_rate),
            "-c",
            "1",
            "-e",
            "signed",
            "-b",
            "16",
            "--endian",
            "little",
            "-",
        )

    def with_overrides(self, **updates: object) -> "EngineConfig":
        """Return a validated copy with the non-``None`` updates applied."""
        changes = {key: value for key, value in updates.items() if value is not None}
        if not changes:
            return self
        _LOGGER.debug("Applying config overrides: %s", sorted(changes))
        try:
            return EngineConfig.model_validate({**self.model_dump(), **changes})
        except ValidationError as exc:
            raise InvalidConfigError(f"Invalid engine config override: {exc}") from exc
