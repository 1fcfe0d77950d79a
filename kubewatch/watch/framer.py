"""Newline framing for watch response bodies.

LineFramer is a sans-IO incremental parser: callers ``feed`` it raw chunks of
any size and pull complete frames back out. It keeps at most one partial
frame in memory, so memory use is bounded by the longest single record.

``iter_frames`` and ``aiter_frames`` drive a framer over a sync or async
chunk source and apply the end-of-stream rule: a dangling unterminated final
line is still emitted as a frame.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator

from kubewatch.errors import FrameTooLargeError

_NEWLINE = b"\n"
_CR = b"\r"

# Compact the consumed prefix once it passes this size; compacting on every
# frame would make a burst of small frames quadratic.
_COMPACT_THRESHOLD = 64 * 1024


def _strip_cr(frame: bytes) -> bytes:
    return frame[:-1] if frame.endswith(_CR) else frame


class LineFramer:
    """Reassembles newline-terminated frames from arbitrarily split chunks.

    State is a ``bytearray`` plus two cursors: ``_start`` marks the first
    unconsumed byte and ``_scan`` how far past it the buffer has already been
    searched for a delimiter. Each byte is therefore scanned once.

    Args:
        max_frame_size: Raise ``FrameTooLargeError`` when a frame, not counting
                        its ``\\r\\n`` terminator, grows beyond this many
                        bytes. ``0`` means unbounded.
    """

    def __init__(self, max_frame_size: int = 0) -> None:
        if max_frame_size < 0:
            raise ValueError("max_frame_size must be >= 0")
        self._buffer = bytearray()
        self._start = 0
        self._scan = 0
        self._max_frame_size = max_frame_size
        self._discarding = False

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet emitted as a frame."""
        return len(self._buffer) - self._start

    def feed(self, chunk: bytes) -> None:
        """Append a raw chunk to the buffer. Empty chunks are ignored."""
        if chunk:
            self._buffer += chunk

    def next_frame(self) -> bytes | None:
        """Extract the next complete frame, or ``None`` if none is buffered.

        The returned frame excludes its newline (and a preceding ``\\r``).

        Raises:
            FrameTooLargeError: the next frame exceeds ``max_frame_size``.
                The oversized record is skipped up to its newline, so the
                framer stays usable and later frames are unaffected.
        """
        while True:
            idx = self._buffer.find(_NEWLINE, self._scan)
            if self._discarding:
                if idx < 0:
                    self._reset()
                    return None
                self._start = self._scan = idx + 1
                self._discarding = False
                self._compact()
                continue

            if idx < 0:
                self._scan = len(self._buffer)
                self._check_partial()
                return None

            frame = _strip_cr(bytes(self._buffer[self._start : idx]))
            self._start = self._scan = idx + 1
            self._compact()
            if self._max_frame_size and len(frame) > self._max_frame_size:
                raise FrameTooLargeError(len(frame), self._max_frame_size, frame)
            return frame

    def frames(self) -> Iterator[bytes]:
        """Yield every complete frame currently buffered."""
        while (frame := self.next_frame()) is not None:
            yield frame

    def flush(self) -> bytes | None:
        """Return the unterminated tail at end of stream and reset the buffer.

        Returns ``None`` when nothing is pending.
        """
        if self._discarding:
            self._discarding = False
            self._reset()
            return None
        if not self.pending:
            self._reset()
            return None
        tail = _strip_cr(bytes(self._buffer[self._start :]))
        self._reset()
        if self._max_frame_size and len(tail) > self._max_frame_size:
            raise FrameTooLargeError(len(tail), self._max_frame_size, tail)
        return tail

    def _check_partial(self) -> None:
        # A trailing \r may belong to a CRLF terminator and does not count.
        limit = self._max_frame_size + (1 if self._buffer.endswith(_CR) else 0)
        if self._max_frame_size and self.pending > limit:
            size = self.pending
            partial = bytes(self._buffer[self._start :])
            self._reset()
            self._discarding = True
            raise FrameTooLargeError(size, self._max_frame_size, partial)

    def _compact(self) -> None:
        if self._start == len(self._buffer):
            self._reset()
        elif self._start >= _COMPACT_THRESHOLD:
            del self._buffer[: self._start]
            self._scan -= self._start
            self._start = 0

    def _reset(self) -> None:
        self._buffer.clear()
        self._start = self._scan = 0


def iter_frames(
    chunks: Iterable[bytes], framer: LineFramer | None = None
) -> Iterator[bytes | FrameTooLargeError]:
    """Lazily frame a synchronous chunk source.

    A chunk is read only when no complete frame is buffered. Oversized
    records are yielded as ``FrameTooLargeError`` instances instead of being
    raised, so one bad record does not end the stream.
    """
    if framer is None:
        framer = LineFramer()
    source = iter(chunks)
    while True:
        try:
            frame = framer.next_frame()
        except FrameTooLargeError as exc:
            yield exc
            continue
        if frame is not None:
            yield frame
            continue

        chunk = next(source, None)
        if chunk is None:
            break
        framer.feed(chunk)

    try:
        tail = framer.flush()
    except FrameTooLargeError as exc:
        yield exc
        return
    if tail is not None:
        yield tail


async def aiter_frames(
    chunks: AsyncIterable[bytes], framer: LineFramer | None = None
) -> AsyncIterator[bytes | FrameTooLargeError]:
    """Async counterpart of ``iter_frames``."""
    if framer is None:
        framer = LineFramer()
    source = aiter(chunks)
    while True:
        try:
            frame = framer.next_frame()
        except FrameTooLargeError as exc:
            yield exc
            continue
        if frame is not None:
            yield frame
            continue

        chunk = await anext(source, None)
        if chunk is None:
            break
        framer.feed(chunk)

    try:
        tail = framer.flush()
    except FrameTooLargeError as exc:
        yield exc
        return
    if tail is not None:
        yield tail
