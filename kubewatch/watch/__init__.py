"""Watch-protocol layer for kubewatch.

Submodules
----------
reader     -- ByteStreamReader / AsyncByteStreamReader: raw body chunks.
framer     -- LineFramer: newline framing with a bounded partial buffer.
decoder    -- EventDecoder: one frame -> Event[T].
connection -- WatchConnection / AsyncWatchConnection: the scoped HTTP request.
sequence   -- watch / awatch: the lazy event sequence callers iterate.
"""

from kubewatch.watch.connection import AsyncWatchConnection, WatchConnection
from kubewatch.watch.decoder import EventDecoder
from kubewatch.watch.framer import LineFramer, aiter_frames, iter_frames
from kubewatch.watch.reader import AsyncByteStreamReader, ByteStreamReader
from kubewatch.watch.sequence import AsyncEventSequence, EventSequence, awatch, watch

__all__ = [
    "AsyncByteStreamReader",
    "AsyncEventSequence",
    "AsyncWatchConnection",
    "ByteStreamReader",
    "EventDecoder",
    "EventSequence",
    "LineFramer",
    "WatchConnection",
    "aiter_frames",
    "awatch",
    "iter_frames",
    "watch",
]
