from __future__ import annotations

import logging

from .config import DEFAULT_SAMPLE_RATE, EngineConfig, seconds_to_samples
from .delay import DelayLine
from .envelope import fade_in
from .filters import Regulator, RollingAverage
from .mixer import Splicer, StreamId
from .streams import Sample, Silence, Stream

_LOGGER = logging.getLogger("tickmix.channel")


class Channel:
    """A mixer plus its feedback loops and output clamp.

    Sounds are added with ``add()`` and the mixed result is read from the
    stream returned by ``play()``. Each output sample is clamped to [-1, 1]
    and then written into every feedback delay line, whose taps sit in the
    mixer alongside the sounds.
    """

    def __init__(
        self,
        *,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        regulate: bool = False,
        silence: bool = True,
        dry_seconds: float | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self._dry_samples = (
            None if dry_seconds is None else max(1, seconds_to_samples(dry_seconds, sample_rate))
        )
        self._since_dry = self._dry_samples or 0
        self.mixer = Splicer()
        self._feedback: list[DelayLine] = []
        self._support_ids: set[StreamId] = set()
        self._output: Stream = self.mixer
        if regulate:
            self._output = Regulator(self.mixer, sample_rate=sample_rate)
        self._player: _ChannelOutput | None = None
        if silence:
            self.add_silence()

    @classmethod
    def from_config(cls, config: EngineConfig) -> "Channel":
        channel = cls(
            sample_rate=config.sample_rate,
            regulate=config.regulate,
            dry_seconds=config.failure_dry_seconds,
        )
        for effect in config.feedback:
            channel.add_feedback(
                effect.delay_seconds,
                effect.feedback_scale,
                smoothing_seconds=effect.smoothing_seconds,
            )
        return channel

    @property
    def feedback_lines(self) -> tuple[DelayLine, ...]:
        return tuple(self._feedback)

    @property
    def feedback_gain(self) -> float:
        """Gain applied to writes into the feedback lines."""
        if self._dry_samples is None:
            return 1.0
        return fade_in(self._since_dry, self._dry_samples)

    def dry_feedback(self) -> None:
        """Cut the echo writes to zero and ramp them back in over ``dry_seconds``."""
        if self._dry_samples is None:
            return
        self._since_dry = 0
        _LOGGER.debug("Feedback dried for %d samples", self._dry_samples)

    @property
    def active_sounds(self) -> int:
        return sum(1 for stream_id in self.mixer.active if stream_id not in self._support_ids)

    @property
    def idle(self) -> bool:
        return self.active_sounds == 0

    def add(self, stream: Stream) -> StreamId:
        return self.mixer.add(stream)

    def add_silence(self) -> StreamId:
        """Keep the channel producing samples even with no sounds playing.

        Without it a channel nested in another mixer drops out of that mixer
        as soon as it runs dry.
        """
        stream_id = self.mixer.add(Silence())
        self._support_ids.add(stream_id)
        return stream_id

    def add_feedback(
        self,
        delay_seconds: float,
        feedback_scale: float,
        *,
        smoothing_seconds: float | None = None,
    ) -> DelayLine:
        line = DelayLine(delay_seconds, feedback_scale, sample_rate=self.sample_rate)
        tap: Stream = line.tap()
        if smoothing_seconds is not None:
            tap = RollingAverage(tap, span_seconds=smoothing_seconds, sample_rate=self.sample_rate)
        self._support_ids.add(self.mixer.add(tap))
        self._feedback.append(line)
        _LOGGER.debug(
            "Feedback line added: %.3fs x %.2f (smoothing=%s)",
            delay_seconds,
            feedback_scale,
            smoothing_seconds,
        )
        return line

    def play(self) -> Stream:
        """The channel's output stream; there is one per channel."""
        if self._player is None:
            self._player = _ChannelOutput(self)
        return self._player

    def _next_sample(self) -> Sample | None:
        mixed = self._output.pull()
        if mixed is None:
            return None
        value = min(max(mixed, -1.0), 1.0)
        gain = self.feedback_gain
        for line in self._feedback:
            line.write(value * gain)
        if self._dry_samples is not None and self._since_dry < self._dry_samples:
            self._since_dry += 1
        return value


class _ChannelOutput(Stream):
    def __init__(self, channel: Channel) -> None:
        super().__init__()
        self._channel = channel

    def _produce(self) -> Sample | None:
        return self._channel._next_sample()
