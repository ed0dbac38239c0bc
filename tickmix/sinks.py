from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import IO, Any, Protocol

import numpy as np
import soundfile as sf  # type: ignore[import]

from .config import EngineConfig
from .errors import InvalidConfigError, SinkClosedError, SinkUnavailableError
from .streams import FloatArray

_LOGGER = logging.getLogger("tickmix.sinks")


def encode_pcm(samples: FloatArray | Sequence[float]) -> bytes:
    """Raw mono PCM: little-endian float32, clipped to [-1, 1]."""
    mono = np.clip(np.asarray(samples, dtype=np.float32).reshape(-1), -1.0, 1.0)
    return mono.astype("<f4").tobytes()


class Sink(Protocol):
    def write(self, samples: FloatArray) -> None: ...

    def close(self) -> None: ...


class MemorySink:
    """Keeps every batch in memory."""

    def __init__(self) -> None:
        self.batches: list[FloatArray] = []
        self.closed = False

    def write(self, samples: FloatArray) -> None:
        if self.closed:
            raise SinkClosedError("memory sink is closed")
        self.batches.append(np.asarray(samples, dtype=np.float32).copy())

    def close(self) -> None:
        self.closed = True

    @property
    def samples(self) -> FloatArray:
        if not self.batches:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(self.batches)


class ProcessSink:
    """Pipes raw PCM into an external player such as SoX ``play``."""

    def __init__(self, command: Sequence[str]) -> None:
        self.command = tuple(command)
        try:
            self._process: subprocess.Popen[bytes] = subprocess.Popen(
                self.command,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
            )
        except OSError as exc:
            raise SinkClosedError(f"could not start {self.command[0]!r}: {exc}") from exc
        _LOGGER.info("Started audio sink: %s", " ".join(self.command))

    @classmethod
    def from_config(cls, config: EngineConfig) -> "ProcessSink":
        return cls(config.resolved_play_command())

    def write(self, samples: FloatArray) -> None:
        returncode = self._process.poll()
        if returncode is not None:
            raise SinkClosedError(f"audio sink exited with status {returncode}")
        stdin: IO[bytes] | None = self._process.stdin
        if stdin is None:
            raise SinkClosedError("audio sink has no stdin")
        try:
            stdin.write(encode_pcm(samples))
            stdin.flush()
        except (BrokenPipeError, ValueError) as exc:
            raise SinkClosedError(f"audio sink stopped accepting samples: {exc}") from exc

    def close(self) -> None:
        stdin = self._process.stdin
        if stdin is not None and not stdin.closed:
            try:
                stdin.close()
            except BrokenPipeError as exc:
                _LOGGER.info("Audio sink pipe already closed: %s", exc)
        try:
            self._process.wait(timeout=5.0)
        except subprocess.TimeoutExpired:
            _LOGGER.warning("Audio sink did not exit; terminating it.")
            self._process.terminate()
            self._process.wait()


class SoundDeviceSink:
    """In-process output through ``sounddevice``."""

    def __init__(self, sample_rate: int) -> None:
        try:
            import sounddevice as sd_module  # type: ignore[import]
        except ImportError as exc:
            _LOGGER.info("sounddevice not available: %s", exc, exc_info=True)
            raise SinkUnavailableError(
                "The sounddevice sink requires the 'sounddevice' package "
                "(pip install 'tickmix[sounddevice]')."
            ) from exc
        sd: Any = sd_module
        self._stream: Any = sd.OutputStream(samplerate=sample_rate, channels=1, dtype="float32")
        self._stream.start()

    def write(self, samples: FloatArray) -> None:
        clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
        try:
            self._stream.write(clipped.reshape(-1, 1))
        except Exception as exc:
            raise SinkClosedError(f"sounddevice output failed: {exc}") from exc

    def close(self) -> None:
        self._stream.stop()
        self._stream.close()


class WavSink:
    """Streams batches into a 32-bit float WAV file."""

    def __init__(self, path: str | Path, *, sample_rate: int) -> None:
        self.path = Path(path)
        self._handle: Any = sf.SoundFile(
            self.path,
            mode="w",
            samplerate=sample_rate,
            channels=1,
            subtype="FLOAT",
        )

    def write(self, samples: FloatArray) -> None:
        if self._handle.closed:
            raise SinkClosedError(f"{self.path} is already closed")
        self._handle.write(np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0))

    def close(self) -> None:
        if not self._handle.closed:
            self._handle.close()


def open_sink(config: EngineConfig) -> Sink:
    match config.sink:
        case "sounddevice":
            return SoundDeviceSink(config.sample_rate)
        case "sox":
            return ProcessSink.from_config(config)
        case _:
            raise InvalidConfigError(f"Unknown sink: {config.sink!r}")
