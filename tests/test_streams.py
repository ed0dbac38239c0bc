import numpy as np
import pytest

from tickmix.errors import StreamExhaustedError
from tickmix.streams import Concat, Constant, SampleStream, Silence


def test_sample_stream_ends_then_rejects_pulls() -> None:
    stream = SampleStream([0.25, -0.5])

    assert stream.pull() == 0.25
    assert stream.pull() == -0.5
    assert stream.exhausted
    assert stream.pull() is None
    with pytest.raises(StreamExhaustedError):
        stream.pull()


def test_iteration_stops_without_tripping_the_contract() -> None:
    stream = SampleStream([1.0, 2.0, 3.0])

    assert list(stream) == [1.0, 2.0, 3.0]
    assert list(stream) == []


def test_take_stops_early_at_end() -> None:
    chunk = SampleStream([0.1, 0.2, 0.3]).take(10)

    assert chunk.dtype == np.float32
    assert np.allclose(chunk, [0.1, 0.2, 0.3])


def test_silence_is_endless() -> None:
    stream = Silence()

    chunk = stream.take(1_000)

    assert chunk.size == 1_000
    assert not chunk.any()
    assert not stream.exhausted


def test_then_chains_streams_in_order() -> None:
    stream = SampleStream([1.0, 2.0]).then(SampleStream([]), SampleStream([3.0]))

    assert isinstance(stream, Concat)
    assert stream.take(5).tolist() == [1.0, 2.0, 3.0]
    assert stream.exhausted


def test_constant_repeats_value() -> None:
    assert Constant(0.5).take(3).tolist() == [0.5, 0.5, 0.5]
