import io
import os

import numpy as np
import pytest
import soundfile as sf

from tickmix.config import EngineConfig, seconds_to_samples
from tickmix.engine import Engine
from tickmix.errors import SinkClosedError
from tickmix.events import NonBlockingReader, Passthrough, SideChannel, SoundEvent
from tickmix.render import render_timeline, render_to_wav
from tickmix.sinks import MemorySink
from tickmix.streams import SampleStream


class FakeTime:
    def __init__(self) -> None:
        self.now = 0.0

    def clock(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


class _BrokenSink:
    def write(self, samples: np.ndarray) -> None:
        raise SinkClosedError("player went away")

    def close(self) -> None:
        pass


def _config(**overrides: object) -> EngineConfig:
    base = EngineConfig(
        sample_rate=1_024,
        max_batch_seconds=0.0625,
        buffer_headroom_seconds=0.125,
        tick_interval_seconds=1 / 64,
        linger_seconds=0.0625,
        feedback=(),
    )
    return base.with_overrides(**overrides)


def _pipe_with(data: bytes) -> tuple[NonBlockingReader, int]:
    read_fd, write_fd = os.pipe()
    os.write(write_fd, data)
    os.close(write_fd)
    return NonBlockingReader(read_fd), read_fd


def test_render_timeline_mixes_all_presets() -> None:
    config = EngineConfig()
    schedule = [(0.0, "·"), (0.1, "¤"), (0.3, "ƒ")]

    rendered = render_timeline(schedule, 2.3, config, rng=np.random.default_rng(11))

    assert rendered.dtype == np.float32
    assert rendered.size == seconds_to_samples(2.3, config.sample_rate)
    assert np.max(np.abs(rendered)) <= 1.0
    assert np.any(rendered != 0.0)


def test_render_timeline_places_streams_on_their_start_sample() -> None:
    config = EngineConfig(sample_rate=100, feedback=())

    rendered = render_timeline([(0.5, SampleStream([1.0])), (5.0, "·")], 1.0, config)

    assert rendered.size == 100
    assert rendered[50] == 1.0
    assert np.count_nonzero(rendered) == 1


def test_render_timeline_is_reproducible_with_a_seed() -> None:
    schedule = [(0.0, "·"), (0.05, "ƒ")]
    config = _config(feedback=EngineConfig().feedback)

    first = render_timeline(schedule, 1.0, config, rng=np.random.default_rng(3))
    second = render_timeline(schedule, 1.0, config, rng=np.random.default_rng(3))

    np.testing.assert_array_equal(first, second)


def test_render_to_wav(tmp_path) -> None:
    config = _config()
    path = render_to_wav(tmp_path / "out.wav", [(0.0, "¤")], 0.75, config)

    data, sample_rate = sf.read(path, dtype="float32")
    assert sample_rate == 1_024
    assert data.shape == (seconds_to_samples(0.75, 1_024),)


def test_tick_waits_for_the_first_sound() -> None:
    time = FakeTime()
    sink = MemorySink()
    engine = Engine(_config(), sink, clock=time.clock, sleep=time.sleep)

    time.now = 10.0
    assert engine.tick() == 0
    assert sink.batches == []

    engine.trigger("·")
    assert engine.first_sound_at == 10.0
    assert engine.tick() == 64
    assert engine.samples_written == 64


def test_handle_routes_events() -> None:
    payloads: list[str] = []
    echo = io.StringIO()
    engine = Engine(_config(), MemorySink(), on_payload=payloads.append)

    engine.handle([Passthrough("ok "), SoundEvent("ƒ"), SideChannel("{}")], echo)

    assert echo.getvalue() == "ok ƒ"
    assert payloads == ["{}"]
    assert engine.channel.active_sounds == 1


def test_run_plays_input_until_quiet() -> None:
    time = FakeTime()
    sink = MemorySink()
    payloads: list[str] = []
    echo = io.StringIO()
    engine = Engine(
        _config(),
        sink,
        rng=np.random.default_rng(5),
        clock=time.clock,
        sleep=time.sleep,
        on_payload=payloads.append,
    )
    reader, read_fd = _pipe_with('a·b↦{"x": 1}↤c'.encode())
    try:
        engine.run(reader, echo)
    finally:
        os.close(read_fd)

    assert echo.getvalue() == "a·bc"
    assert payloads == ['{"x": 1}']
    assert reader.eof
    assert engine.channel.idle
    sound_length = seconds_to_samples(0.2, 1_024)
    assert engine.samples_written >= sound_length
    assert np.any(sink.samples[:sound_length] != 0.0)


def test_run_propagates_sink_failure() -> None:
    time = FakeTime()
    engine = Engine(_config(), _BrokenSink(), clock=time.clock, sleep=time.sleep)
    reader, read_fd = _pipe_with("·".encode())
    try:
        with pytest.raises(SinkClosedError):
            engine.run(reader)
    finally:
        os.close(read_fd)

    assert engine.pacer.stopped


def test_burst_of_sounds_is_capped() -> None:
    engine = Engine(_config(max_concurrent_sounds=4), MemorySink())

    engine.handle(engine.parser.feed("ƒ" * 50))

    assert engine.channel.active_sounds == 4
    assert engine.dropped_sounds == 46
    engine.channel.play().take(100)
    assert engine.channel.active_sounds <= 4


def test_default_cap_holds_back_a_failure_storm() -> None:
    engine = Engine(EngineConfig(), MemorySink())

    engine.handle(engine.parser.feed("ƒ" * 500))

    assert engine.channel.active_sounds == EngineConfig().max_concurrent_sounds == 10


def test_capped_channel_accepts_sounds_again_once_they_finish() -> None:
    engine = Engine(_config(max_concurrent_sounds=2), MemorySink())
    engine.trigger("·")
    engine.trigger("·")
    assert engine.trigger("·") is None

    engine.channel.play().take(seconds_to_samples(0.2, 1_024))

    assert engine.channel.idle
    assert engine.trigger("·") is not None


def test_failure_dries_the_echo() -> None:
    engine = Engine(EngineConfig(), MemorySink())
    engine.trigger("·")
    assert engine.channel.feedback_gain == 1.0

    engine.trigger("ƒ")

    assert engine.channel.feedback_gain == 0.0
