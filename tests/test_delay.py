import pytest

from tickmix.channel import Channel
from tickmix.delay import DelayLine
from tickmix.streams import SampleStream


def _impulse(length: int) -> SampleStream:
    return SampleStream([1.0] + [0.0] * (length - 1))


def test_size_is_floor_of_delay_with_minimum_one() -> None:
    assert DelayLine(0.004, 0.5, sample_rate=1_000).size == 4
    assert DelayLine(0.0001, 0.5, sample_rate=1_000).size == 1


def test_read_then_write_same_slot() -> None:
    line = DelayLine(0.003, 0.5, sample_rate=1_000)

    assert line.read() == 0.0
    line.write(1.0)
    assert line.index == 1
    line.write(0.0)
    line.write(0.0)
    assert line.index == 0
    assert line.read() == 0.5


def test_wrapped_impulse_reappears_after_exactly_size_pulls() -> None:
    line = DelayLine(0.004, 1.0, sample_rate=1_000)

    out = line.wrap(_impulse(16)).take(16).tolist()

    assert out[4] == 1.0
    assert [value for index, value in enumerate(out) if index != 4] == [0.0] * 15


def test_wrap_applies_feedback_scale_and_ends_with_feed() -> None:
    line = DelayLine(0.002, 0.5, sample_rate=1_000)
    wrapped = line.wrap(_impulse(4))

    assert wrapped.take(10).tolist() == [0.0, 0.0, 0.5, 0.0]
    assert wrapped.exhausted


def test_channel_feedback_repeats_every_loop_period() -> None:
    channel = Channel(sample_rate=1_000)
    channel.add_feedback(0.004, 0.5)
    channel.add(SampleStream([1.0]))

    out = channel.play().take(13).tolist()

    assert out[0] == 1.0
    assert out[4] == pytest.approx(0.5)
    assert out[8] == pytest.approx(0.25)
    assert out[12] == pytest.approx(0.125)
    assert all(out[i] == 0.0 for i in range(13) if i % 4)


def test_clear_silences_the_loop() -> None:
    line = DelayLine(0.001, 0.9, sample_rate=1_000)
    line.write(1.0)

    line.clear()

    assert line.read() == 0.0
