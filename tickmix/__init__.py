from __future__ import annotations

from .channel import Channel
from .config import DEFAULT_SAMPLE_RATE, EngineConfig, FeedbackConfig
from .delay import DelayLine
from .engine import Engine
from .envelope import ControlledGenerator, FiniteGenerator, fade_in, fade_out
from .errors import (
    CaptureError,
    InvalidConfigError,
    SinkClosedError,
    SinkUnavailableError,
    StreamExhaustedError,
    TickmixError,
)
from .events import EventParser, NonBlockingReader
from .filters import Dragging, EmaLowPass, Invert, Regulator, RollingAverage, high_pass
from .mixer import Splicer
from .pacer import OutputPacer, PacingState
from .recording import RecordingStream
from .render import render_timeline, render_to_wav
from .sinks import MemorySink, ProcessSink, SoundDeviceSink, WavSink, encode_pcm, open_sink
from .streams import Concat, Constant, SampleStream, Silence, Stream
from .waveforms import build_sound

__all__ = [
    "DEFAULT_SAMPLE_RATE",
    "CaptureError",
    "Channel",
    "Concat",
    "Constant",
    "ControlledGenerator",
    "DelayLine",
    "Dragging",
    "EmaLowPass",
    "Engine",
    "EngineConfig",
    "EventParser",
    "FeedbackConfig",
    "FiniteGenerator",
    "InvalidConfigError",
    "Invert",
    "MemorySink",
    "NonBlockingReader",
    "OutputPacer",
    "PacingState",
    "ProcessSink",
    "RecordingStream",
    "Regulator",
    "RollingAverage",
    "SampleStream",
    "Silence",
    "SinkClosedError",
    "SinkUnavailableError",
    "SoundDeviceSink",
    "Splicer",
    "Stream",
    "StreamExhaustedError",
    "TickmixError",
    "WavSink",
    "build_sound",
    "encode_pcm",
    "fade_in",
    "fade_out",
    "high_pass",
    "open_sink",
    "render_timeline",
    "render_to_wav",
]

__version__ = "0.1.0"
