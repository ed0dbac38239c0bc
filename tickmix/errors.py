from __future__ import annotations


class TickmixError(Exception):
    """Base error for the tickmix library."""


class InvalidConfigError(TickmixError):
    """Raised when an engine or effect config cannot be validated."""


class StreamExhaustedError(TickmixError):
    """Raised when a stream is pulled again after it reported its end."""


class SinkClosedError(TickmixError):
    """Raised when the audio sink stops accepting samples."""


class SinkUnavailableError(TickmixError):
    """Raised when a requested sink backend is not installed."""


class CaptureError(TickmixError):
    """Raised when the recording process cannot be started."""
