from __future__ import annotations

import codecs
import logging
import os
from dataclasses import dataclass

from .waveforms import PRESETS

_LOGGER = logging.getLogger("tickmix.events")

PAYLOAD_START = "↦"
PAYLOAD_END = "↤"


@dataclass(frozen=True, slots=True)
class SoundEvent:
    symbol: str


@dataclass(frozen=True, slots=True)
class Passthrough:
    text: str


@dataclass(frozen=True, slots=True)
class SideChannel:
    """Text found between the payload markers; never interpreted here."""

    payload: str


Event = SoundEvent | Passthrough | SideChannel


class EventParser:
    """Splits incoming text into sound triggers, echo text and side-channel payloads.

    Input may arrive in arbitrary fragments; an open payload keeps collecting
    text until its end marker shows up in a later ``feed()``.
    """

    def __init__(self, symbols: frozenset[str] | None = None) -> None:
        self.symbols = symbols if symbols is not None else frozenset(PRESETS)
        self._payload: list[str] | None = None

    @property
    def in_payload(self) -> bool:
        return self._payload is not None

    def feed(self, text: str) -> list[Event]:
        events: list[Event] = []
        plain: list[str] = []

        def flush_plain() -> None:
            if plain:
                events.append(Passthrough("".join(plain)))
                plain.clear()

        for char in text:
            if self._payload is not None:
                if char == PAYLOAD_END:
                    events.append(SideChannel("".join(self._payload)))
                    self._payload = None
                else:
                    self._payload.append(char)
                continue
            if char == PAYLOAD_START:
                flush_plain()
                self._payload = []
                continue
            if char in self.symbols:
                flush_plain()
                events.append(SoundEvent(char))
                continue
            plain.append(char)
        flush_plain()
        return events


class NonBlockingReader:
    """Reads whatever text is available on ``fd`` without waiting for more."""

    def __init__(self, fd: int, *, chunk_size: int = 4_096, encoding: str = "utf-8") -> None:
        self.fd = fd
        self.chunk_size = chunk_size
        self.eof = False
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._was_blocking: bool | None = os.get_blocking(fd)
        os.set_blocking(fd, False)

    def close(self) -> None:
        """Give the descriptor back in the blocking mode it was handed over in."""
        if self._was_blocking is None:
            return
        try:
            os.set_blocking(self.fd, self._was_blocking)
        except OSError as exc:
            _LOGGER.debug("Could not restore blocking mode on fd %d: %s", self.fd, exc)
        self._was_blocking = None

    def read(self) -> str:
        if self.eof:
            return ""
        try:
            data = os.read(self.fd, self.chunk_size)
        except BlockingIOError:
            return ""
        if not data:
            self.eof = True
            _LOGGER.debug("Event input reached EOF")
            self.close()
            return self._decoder.decode(b"", final=True)
        return self._decoder.decode(data)
