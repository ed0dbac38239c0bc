import pytest

from tickmix.filters import Dragging, EmaLowPass, Invert, Regulator, RollingAverage, high_pass
from tickmix.streams import Constant, SampleStream


def test_ema_low_pass_approaches_step_without_overshoot() -> None:
    filtered = EmaLowPass(Constant(1.0), influence_hz=100, sample_rate=1_000)

    values = filtered.take(50).tolist()

    assert values[:3] == pytest.approx([0.1, 0.19, 0.271])
    assert all(a < b for a, b in zip(values, values[1:]))
    assert max(values) < 1.0


def test_ema_low_pass_influence_is_capped() -> None:
    filtered = EmaLowPass(SampleStream([0.3, -0.7, 0.2]), influence_hz=5_000, sample_rate=1_000)

    assert filtered.normalized_influence == 1.0
    assert filtered.take(3).tolist() == pytest.approx([0.3, -0.7, 0.2])


def test_rolling_average_window() -> None:
    filtered = RollingAverage(Constant(1.0), span_seconds=0.004, sample_rate=1_000)

    assert filtered.size == 4
    assert filtered.take(6).tolist() == pytest.approx([0.25, 0.5, 0.75, 1.0, 1.0, 1.0])


def test_rolling_average_window_is_at_least_one_sample() -> None:
    filtered = RollingAverage(SampleStream([0.5, -0.5]), span_seconds=0.0, sample_rate=1_000)

    assert filtered.size == 1
    assert filtered.take(2).tolist() == pytest.approx([0.5, -0.5])


def test_dragging_limits_slope() -> None:
    source = SampleStream([1.0] * 12 + [0.0] * 3)
    filtered = Dragging(source, change_per_second=100, sample_rate=1_000)

    values = filtered.take(15).tolist()

    assert values[:10] == pytest.approx([0.1 * n for n in range(1, 11)])
    assert values[10:12] == pytest.approx([1.0, 1.0])
    assert values[12:] == pytest.approx([0.9, 0.8, 0.7])


def test_invert_negates() -> None:
    assert Invert(SampleStream([0.5, -0.25])).take(2).tolist() == [-0.5, 0.25]


def test_high_pass_removes_dc() -> None:
    filtered = high_pass(Constant(1.0), influence_hz=100, sample_rate=1_000)

    values = filtered.take(200).tolist()

    assert values[0] == pytest.approx(0.9)
    assert abs(values[-1]) < 1e-3


def test_high_pass_ends_with_its_source() -> None:
    filtered = high_pass(SampleStream([1.0, 1.0]), influence_hz=100, sample_rate=1_000)

    assert filtered.take(10).size == 2
    assert filtered.exhausted


def test_filters_propagate_end() -> None:
    source = SampleStream([1.0, 2.0])
    filtered = EmaLowPass(source, influence_hz=10, sample_rate=100)

    filtered.pull()
    assert not filtered.exhausted
    filtered.pull()
    assert filtered.exhausted
    assert filtered.pull() is None


class TestRegulator:
    def test_constant_overload_never_exceeds_one(self) -> None:
        regulator = Regulator(Constant(2.0), sample_rate=100)

        values = regulator.take(500).tolist()

        assert max(values) <= 1.0
        assert values[0] == 1.0
        assert regulator.scale <= 0.51

    def test_recovers_monotonically_once_input_drops(self) -> None:
        source = SampleStream([2.0] * 50 + [0.5] * 300)
        regulator = Regulator(source, sample_rate=100)
        regulator.take(50)

        scales: list[float] = []
        values: list[float] = []
        for _ in range(300):
            value = regulator.pull()
            assert value is not None
            values.append(value)
            scales.append(regulator.scale)

        assert all(a <= b for a, b in zip(values, values[1:]))
        assert all(a <= b for a, b in zip(scales, scales[1:]))
        assert max(scales) == 1.0
        assert max(values) <= 0.5
        assert values[-1] == 0.5

    def test_zero_and_negative_samples_do_not_rescale(self) -> None:
        regulator = Regulator(SampleStream([0.0, -3.0, 0.25]), sample_rate=100)

        assert regulator.take(3).tolist() == [0.0, -3.0, 0.25]
        assert regulator.scale == 1.0
