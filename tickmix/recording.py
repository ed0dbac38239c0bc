from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Sequence
from typing import Callable

import numpy as np

from .config import EngineConfig
from .errors import CaptureError
from .streams import FloatArray, Sample, Stream

_LOGGER = logging.getLogger("tickmix.recording")

_PCM16_SCALE = 32_768.0
_READ_SIZE = 4_096


def decode_pcm16(data: bytes) -> FloatArray:
    """Signed 16-bit little-endian PCM to floats in [-1, 1)."""
    usable = len(data) - (len(data) % 2)
    ints = np.frombuffer(data[:usable], dtype="<i2")
    return (ints.astype(np.float32) / _PCM16_SCALE).astype(np.float32)


class RecordingStream(Stream):
    """Endless stream of captured samples.

    ``read_chunk`` must not block; returning ``b""`` means nothing has arrived
    yet and the stream fills the gap with silence.
    """

    def __init__(
        self,
        read_chunk: Callable[[], bytes],
        *,
        close: Callable[[], None] | None = None,
    ) -> None:
        super().__init__()
        self._read_chunk = read_chunk
        self._close = close
        self._buffer: FloatArray = np.zeros(0, dtype=np.float32)
        self._position = 0
        self._carry = b""

    @classmethod
    def from_process(cls, config: EngineConfig) -> "RecordingStream":
        return cls.from_command(config.resolved_record_command())

    @classmethod
    def from_command(cls, command: Sequence[str]) -> "RecordingStream":
        try:
            process = subprocess.Popen(
                tuple(command),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
            )
        except OSError as exc:
            raise CaptureError(f"could not start {command[0]!r}: {exc}") from exc
        assert process.stdout is not None
        fd = process.stdout.fileno()
        os.set_blocking(fd, False)
        _LOGGER.info("Started capture: %s", " ".join(command))

        def _read() -> bytes:
            try:
                return os.read(fd, _READ_SIZE)
            except BlockingIOError:
                return b""

        def _close() -> None:
            process.terminate()
            process.wait()

        return cls(_read, close=_close)

    def close(self) -> None:
        if self._close is not None:
            self._close()
            self._close = None

    def _refill(self) -> None:
        data = self._carry + self._read_chunk()
        if len(data) % 2:
            self._carry = data[-1:]
            data = data[:-1]
        else:
            self._carry = b""
        self._buffer = decode_pcm16(data)
        self._position = 0

    def _produce(self) -> Sample | None:
        if self._position >= self._buffer.size:
            self._refill()
            if self._buffer.size == 0:
                return 0.0
        value = float(self._buffer[self._position])
        self._position += 1
        return value
