"""Dynamic mixer that sounds can join and leave between pulls."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from types import MappingProxyType

from .streams import Sample, Stream

_LOGGER = logging.getLogger("tickmix.mixer")

StreamId = str


class Splicer(Stream):
    """Sums every active stream once per pull and drops the finished ones.

    A member that ends mid-pull contributes 0.0 to that sample so all members
    stay on the same sample index; it is removed once the sum is done and is
    never pulled again. An empty splicer yields silence and never ends.
    """

    def __init__(self) -> None:
        super().__init__()
        self._active: dict[StreamId, Stream] = {}

    @property
    def active(self) -> Mapping[StreamId, Stream]:
        return MappingProxyType(self._active)

    def __len__(self) -> int:
        return len(self._active)

    def __contains__(self, stream_id: object) -> bool:
        return stream_id in self._active

    def add(self, stream: Stream) -> StreamId:
        stream_id = str(uuid.uuid4())
        if stream.exhausted:
            _LOGGER.debug("Ignoring already finished %s", type(stream).__name__)
            return stream_id
        self._active[stream_id] = stream
        return stream_id

    def remove(self, stream_id: StreamId) -> Stream | None:
        return self._active.pop(stream_id, None)

    def _produce(self) -> Sample | None:
        if not self._active:
            return 0.0
        total = 0.0
        finished: list[StreamId] = []
        for stream_id, stream in self._active.items():
            value = stream.pull()
            if value is None:
                finished.append(stream_id)
                continue
            total += value
            if stream.exhausted:
                finished.append(stream_id)
        for stream_id in finished:
            del self._active[stream_id]
        return total
