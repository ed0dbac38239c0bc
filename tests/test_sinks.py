import struct
import sys

import numpy as np
import pytest
import soundfile as sf

from tickmix.config import EngineConfig
from tickmix.errors import SinkClosedError, SinkUnavailableError
from tickmix.sinks import MemorySink, ProcessSink, WavSink, encode_pcm, open_sink


def test_encode_pcm_is_little_endian_float32() -> None:
    assert encode_pcm([0.5, -1.0]) == struct.pack("<2f", 0.5, -1.0)


def test_encode_pcm_clips() -> None:
    assert encode_pcm(np.array([3.0, -7.5])) == struct.pack("<2f", 1.0, -1.0)


def test_memory_sink_collects_batches() -> None:
    sink = MemorySink()
    sink.write(np.array([0.1, 0.2], dtype=np.float32))
    sink.write(np.array([0.3], dtype=np.float32))

    assert np.allclose(sink.samples, [0.1, 0.2, 0.3])

    sink.close()
    with pytest.raises(SinkClosedError):
        sink.write(np.zeros(1, dtype=np.float32))


def test_wav_sink_round_trip(tmp_path) -> None:
    path = tmp_path / "ticks.wav"
    sink = WavSink(path, sample_rate=8_000)
    sink.write(np.array([0.0, 0.5, -0.25], dtype=np.float32))
    sink.write(np.array([2.0], dtype=np.float32))
    sink.close()

    data, sample_rate = sf.read(path, dtype="float32")
    assert sample_rate == 8_000
    assert data.tolist() == [0.0, 0.5, -0.25, 1.0]

    with pytest.raises(SinkClosedError):
        sink.write(np.zeros(1, dtype=np.float32))


def test_process_sink_pipes_pcm(tmp_path) -> None:
    target = tmp_path / "pcm.raw"
    script = "import sys; open(sys.argv[1], 'wb').write(sys.stdin.buffer.read())"
    sink = ProcessSink([sys.executable, "-c", script, str(target)])

    sink.write(np.array([0.25, -0.5], dtype=np.float32))
    sink.close()

    assert target.read_bytes() == struct.pack("<2f", 0.25, -0.5)


def test_process_sink_reports_exited_player() -> None:
    sink = ProcessSink([sys.executable, "-c", "pass"])
    sink._process.wait()

    with pytest.raises(SinkClosedError):
        sink.write(np.zeros(4, dtype=np.float32))
    sink.close()


def test_process_sink_missing_binary() -> None:
    with pytest.raises(SinkClosedError):
        ProcessSink(["tickmix-no-such-player"])


def test_open_sink_uses_configured_command() -> None:
    config = EngineConfig(play_command=(sys.executable, "-c", "import sys; sys.stdin.read()"))

    sink = open_sink(config)
    try:
        assert isinstance(sink, ProcessSink)
        assert sink.command == config.play_command
    finally:
        sink.close()


def test_sounddevice_sink_requires_package(monkeypatch) -> None:
    monkeypatch.setitem(sys.modules, "sounddevice", None)

    with pytest.raises(SinkUnavailableError):
        open_sink(EngineConfig(sink="sounddevice"))
