"""Pull-based readers over a streaming ``httpx.Response`` body."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import httpx

from kubewatch.errors import WatchConnectionError


class ByteStreamReader:
    """Yields raw body chunks from an open streaming response.

    Each ``next()`` is one blocking read on the socket. Transport failures
    mid-stream surface as ``WatchConnectionError``.

    Args:
        response:   Response obtained with ``Client.send(..., stream=True)``.
        chunk_size: Re-chunk the body to this size. ``None`` yields whatever
                    the transport delivers.
    """

    def __init__(self, response: httpx.Response, chunk_size: int | None = None) -> None:
        self._response = response
        self._chunk_size = chunk_size
        self.bytes_read = 0

    def __iter__(self) -> Iterator[bytes]:
        try:
            for chunk in self._response.iter_bytes(self._chunk_size):
                self.bytes_read += len(chunk)
                yield chunk
        except httpx.TransportError as exc:
            raise WatchConnectionError(
                f"Watch stream interrupted: {exc}", url=str(self._response.url)
            ) from exc


class AsyncByteStreamReader:
    """Async counterpart of ``ByteStreamReader``."""

    def __init__(self, response: httpx.Response, chunk_size: int | None = None) -> None:
        self._response = response
        self._chunk_size = chunk_size
        self.bytes_read = 0

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes(self._chunk_size):
                self.bytes_read += len(chunk)
                yield chunk
        except httpx.TransportError as exc:
            raise WatchConnectionError(
                f"Watch stream interrupted: {exc}", url=str(self._response.url)
            ) from exc
