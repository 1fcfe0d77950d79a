"""The public watch operation: a lazy sequence of decoded events.

``watch`` opens the connection eagerly, so address and connection failures
raise at the call site. Everything after that is pulled on demand: one chunk
read per ``next()`` at most, one frame decoded per event.

Decode failures follow the sequence's error policy:

* ``"yield"`` (default) -- the ``DeserializationError`` is returned as an
  element and iteration continues with the next frame. A single malformed
  record does not abort monitoring of a long-lived resource.
* ``"raise"``           -- the error is raised and the sequence ends.

Transport failures mid-stream always raise ``WatchConnectionError``. No error
is retried here; reconnecting is the caller's decision.
"""

from __future__ import annotations

import weakref
from collections.abc import AsyncIterator, Iterator
from types import TracebackType
from typing import Any, Generic, TypeVar

import httpx
import structlog

from kubewatch.cluster import Cluster
from kubewatch.config import load_config
from kubewatch.errors import DeserializationError, FrameTooLargeError, WatchConnectionError
from kubewatch.models.config import ErrorPolicy, KubeWatchConfig
from kubewatch.models.events import Event
from kubewatch.watch.connection import AsyncWatchConnection, WatchConnection
from kubewatch.watch.decoder import EventDecoder
from kubewatch.watch.framer import LineFramer, aiter_frames, iter_frames

T = TypeVar("T")

_log = structlog.get_logger(component="watch.sequence")

_ERROR_POLICIES = ("yield", "raise")


def _check_policy(on_error: str) -> None:
    if on_error not in _ERROR_POLICIES:
        raise ValueError(f"Invalid error policy: {on_error}. Must be one of {_ERROR_POLICIES}")


class _SequenceBase(Generic[T]):
    """State and decode-error handling shared by the sync and async sequences."""

    def __init__(self, url: str, decoder: EventDecoder[T], on_error: ErrorPolicy, max_frame_size: int) -> None:
        _check_policy(on_error)
        self.url = url
        self.events_decoded = 0
        self.decode_errors = 0
        self._decoder = decoder
        self._on_error = on_error
        self._framer = LineFramer(max_frame_size)

    def _decode(self, frame: bytes | FrameTooLargeError) -> Event[T] | DeserializationError | None:
        """Decode one frame; ``None`` means the frame carried no event."""
        if isinstance(frame, FrameTooLargeError):
            return self._decode_failed(frame)
        if not frame.strip():
            return None
        try:
            event = self._decoder.decode(frame)
        except DeserializationError as exc:
            return self._decode_failed(exc)
        self.events_decoded += 1
        return event

    def _decode_failed(self, exc: DeserializationError) -> DeserializationError:
        self.decode_errors += 1
        _log.warning(
            "watch_frame_decode_failed",
            url=self.url,
            error=exc.args[0],
            frame_bytes=len(exc.frame),
            policy=self._on_error,
        )
        if self._on_error == "raise":
            raise exc
        return exc

    def _stream_ended(self) -> None:
        _log.debug(
            "watch_stream_ended",
            url=self.url,
            events=self.events_decoded,
            decode_errors=self.decode_errors,
        )

    def _stream_failed(self, exc: WatchConnectionError) -> None:
        _log.warning("watch_stream_error", url=self.url, error=str(exc))


class EventSequence(_SequenceBase[T]):
    """Forward-only, non-restartable iterator over one watch.

    Elements are ``Event[T]`` or, under the ``"yield"`` policy, inline
    ``DeserializationError`` values. The underlying connection is closed when
    the stream ends, on any error, on ``close()``, on leaving a ``with``
    block, and when the sequence is garbage collected, iterated or not.
    """

    def __init__(
        self,
        connection: WatchConnection,
        decoder: EventDecoder[T],
        on_error: ErrorPolicy = "yield",
        max_frame_size: int = 0,
    ) -> None:
        super().__init__(connection.url, decoder, on_error, max_frame_size)
        self._connection = connection
        self._events = self._generate()
        weakref.finalize(self, connection.close)

    def _generate(self) -> Iterator[Event[T] | DeserializationError]:
        try:
            for frame in iter_frames(self._connection.reader, self._framer):
                item = self._decode(frame)
                if item is not None:
                    yield item
            self._stream_ended()
        except WatchConnectionError as exc:
            self._stream_failed(exc)
            raise
        finally:
            self._connection.close()

    def __iter__(self) -> EventSequence[T]:
        return self

    def __next__(self) -> Event[T] | DeserializationError:
        return next(self._events)

    def close(self) -> None:
        """Stop the watch and release the connection. Idempotent."""
        self._events.close()
        self._connection.close()

    def __enter__(self) -> EventSequence[T]:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class AsyncEventSequence(_SequenceBase[T]):
    """Async counterpart of ``EventSequence`` for ``async for``.

    A sequence dropped without ``aclose()`` has its connection closed by a
    task scheduled on the running loop.
    """

    def __init__(
        self,
        connection: AsyncWatchConnection,
        decoder: EventDecoder[T],
        on_error: ErrorPolicy = "yield",
        max_frame_size: int = 0,
    ) -> None:
        super().__init__(connection.url, decoder, on_error, max_frame_size)
        self._connection = connection
        self._events = self._generate()
        weakref.finalize(self, connection.close_soon).atexit = False

    async def _generate(self) -> AsyncIterator[Event[T] | DeserializationError]:
        try:
            async for frame in aiter_frames(self._connection.reader, self._framer):
                item = self._decode(frame)
                if item is not None:
                    yield item
            self._stream_ended()
        except WatchConnectionError as exc:
            self._stream_failed(exc)
            raise
        finally:
            await self._connection.aclose()

    def __aiter__(self) -> AsyncEventSequence[T]:
        return self

    async def __anext__(self) -> Event[T] | DeserializationError:
        return await anext(self._events)

    async def aclose(self) -> None:
        """Stop the watch and release the connection. Idempotent."""
        await self._events.aclose()
        await self._connection.aclose()

    async def __aenter__(self) -> AsyncEventSequence[T]:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


def watch(
    cluster: Cluster,
    resource_path: str,
    object_type: Any = Any,
    *,
    on_error: ErrorPolicy | None = None,
    client: httpx.Client | None = None,
    config: KubeWatchConfig | None = None,
) -> EventSequence[Any]:
    """Watch *resource_path* on *cluster* and return the event sequence.

    Args:
        cluster:       Target API server.
        resource_path: Collection path relative to the base address, e.g.
                       ``api/v1/pods``.
        object_type:   Target type for each event's ``object``. ``Any``
                       yields raw JSON values.
        on_error:      ``"yield"`` or ``"raise"``; defaults to the configured
                       policy.
        client:        Optional caller-owned ``httpx.Client``.
        config:        Explicit configuration; defaults to ``load_config()``.

    Raises:
        AddressError:         invalid resource path; no request is made.
        WatchConnectionError: the request failed or returned non-2xx.
    """
    config = config or load_config()
    policy = on_error or config.on_error
    _check_policy(policy)
    decoder: EventDecoder[Any] = EventDecoder(object_type)
    connection = WatchConnection.open(cluster, resource_path, client=client, config=config.stream)
    return EventSequence(connection, decoder, policy, config.stream.max_frame_size)


async def awatch(
    cluster: Cluster,
    resource_path: str,
    object_type: Any = Any,
    *,
    on_error: ErrorPolicy | None = None,
    client: httpx.AsyncClient | None = None,
    config: KubeWatchConfig | None = None,
) -> AsyncEventSequence[Any]:
    """Async counterpart of ``watch``.

    Usage::

        events = await awatch(cluster, "api/v1/pods")
        async with events:
            async for event in events:
                ...
    """
    config = config or load_config()
    policy = on_error or config.on_error
    _check_policy(policy)
    decoder: EventDecoder[Any] = EventDecoder(object_type)
    connection = await AsyncWatchConnection.open(cluster, resource_path, client=client, config=config.stream)
    return AsyncEventSequence(connection, decoder, policy, config.stream.max_frame_size)
