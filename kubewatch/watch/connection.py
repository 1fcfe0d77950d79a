"""One in-flight watch request and the network resources it owns.

WatchConnection       -- blocking, built on ``httpx.Client``.
AsyncWatchConnection  -- asyncio, built on ``httpx.AsyncClient``.

Both are scoped resources: the streaming response (and the client, when the
connection created it) are released by ``close``/``aclose`` or on leaving the
``with`` block, whichever exit path is taken. A client passed in by the caller
is never closed here; it is the caller's transport (TLS, auth, proxies).
"""

from __future__ import annotations

import asyncio
from types import TracebackType

import httpx
import structlog

from kubewatch.cluster import Cluster
from kubewatch.errors import WatchConnectionError
from kubewatch.models.config import StreamConfig
from kubewatch.watch.reader import AsyncByteStreamReader, ByteStreamReader

_log = structlog.get_logger(component="watch.connection")

# Strong references to fire-and-forget close tasks until they finish.
_closing_tasks: set[asyncio.Task[None]] = set()


def _resolve_timeout(cluster: Cluster, config: StreamConfig) -> httpx.Timeout:
    if cluster.timeout is None and config.read_timeout > 0:
        return httpx.Timeout(config.read_timeout)
    return cluster.client_timeout()


def _status_error(response: httpx.Response) -> WatchConnectionError:
    return WatchConnectionError(
        f"Watch request failed with HTTP {response.status_code} {response.reason_phrase}",
        url=str(response.url),
        status_code=response.status_code,
        reason=response.reason_phrase,
    )


def _transport_error(url: httpx.URL, exc: httpx.HTTPError) -> WatchConnectionError:
    return WatchConnectionError(f"Failed to open watch on {url}: {exc}", url=str(url))


class WatchConnection:
    """An open ``GET <base>/<path>?watch=true`` whose body is being streamed.

    Use ``WatchConnection.open`` rather than the constructor.
    """

    def __init__(
        self,
        response: httpx.Response,
        client: httpx.Client,
        owns_client: bool,
        chunk_size: int | None = None,
    ) -> None:
        self.response = response
        self.reader = ByteStreamReader(response, chunk_size)
        self._client = client
        self._owns_client = owns_client
        self._closed = False

    @property
    def url(self) -> str:
        return str(self.response.url)

    @property
    def closed(self) -> bool:
        return self._closed

    @classmethod
    def open(
        cls,
        cluster: Cluster,
        resource_path: str,
        client: httpx.Client | None = None,
        config: StreamConfig | None = None,
    ) -> WatchConnection:
        """Issue the watch request and return the open connection.

        Raises:
            AddressError:         *resource_path* cannot form a valid URL
                                  (raised before any network activity).
            WatchConnectionError: transport failure or non-2xx response.
        """
        config = config or StreamConfig()
        url = cluster.url_for(resource_path)
        owns_client = client is None
        if client is None:
            client = httpx.Client(timeout=_resolve_timeout(cluster, config))

        request = client.build_request("GET", url, headers=cluster.headers)
        try:
            response = client.send(request, stream=True)
        except httpx.HTTPError as exc:
            if owns_client:
                client.close()
            _log.warning("watch_open_failed", url=str(url), error=str(exc))
            raise _transport_error(url, exc) from exc

        if not response.is_success:
            response.close()
            if owns_client:
                client.close()
            _log.warning(
                "watch_open_failed",
                url=str(url),
                status_code=response.status_code,
                reason=response.reason_phrase,
            )
            raise _status_error(response)

        _log.debug("watch_opened", url=str(url), status_code=response.status_code)
        return cls(response, client, owns_client, config.chunk_size or None)

    def close(self) -> None:
        """Release the response and, if owned, the client. Idempotent."""
        if self._closed:
            return
        self._closed = True
        try:
            self.response.close()
        finally:
            if self._owns_client:
                self._client.close()
        _log.debug("watch_closed", url=self.url, bytes_read=self.reader.bytes_read)

    def __enter__(self) -> WatchConnection:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class AsyncWatchConnection:
    """Async counterpart of ``WatchConnection``."""

    def __init__(
        self,
        response: httpx.Response,
        client: httpx.AsyncClient,
        owns_client: bool,
        chunk_size: int | None = None,
    ) -> None:
        self.response = response
        self.reader = AsyncByteStreamReader(response, chunk_size)
        self._client = client
        self._owns_client = owns_client
        self._closed = False

    @property
    def url(self) -> str:
        return str(self.response.url)

    @property
    def closed(self) -> bool:
        return self._closed

    @classmethod
    async def open(
        cls,
        cluster: Cluster,
        resource_path: str,
        client: httpx.AsyncClient | None = None,
        config: StreamConfig | None = None,
    ) -> AsyncWatchConnection:
        """Issue the watch request and return the open connection.

        Raises the same errors as ``WatchConnection.open``.
        """
        config = config or StreamConfig()
        url = cluster.url_for(resource_path)
        owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=_resolve_timeout(cluster, config))

        request = client.build_request("GET", url, headers=cluster.headers)
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            if owns_client:
                await client.aclose()
            _log.warning("watch_open_failed", url=str(url), error=str(exc))
            raise _transport_error(url, exc) from exc

        if not response.is_success:
            await response.aclose()
            if owns_client:
                await client.aclose()
            _log.warning(
                "watch_open_failed",
                url=str(url),
                status_code=response.status_code,
                reason=response.reason_phrase,
            )
            raise _status_error(response)

        _log.debug("watch_opened", url=str(url), status_code=response.status_code)
        return cls(response, client, owns_client, config.chunk_size or None)

    async def aclose(self) -> None:
        """Release the response and, if owned, the client. Idempotent."""
        if self._closed:
            return
        self._closed = True
        try:
            await self.response.aclose()
        finally:
            if self._owns_client:
                await self._client.aclose()
        _log.debug("watch_closed", url=self.url, bytes_read=self.reader.bytes_read)

    def close_soon(self) -> None:
        """Schedule ``aclose`` from synchronous code, e.g. a GC finalizer.

        Without a running event loop nothing can be awaited; the leak is
        logged and the transport is left for the loop's own shutdown.
        """
        if self._closed:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _log.warning("watch_close_skipped_no_loop", url=self.url)
            return
        task = loop.create_task(self.aclose())
        _closing_tasks.add(task)
        task.add_done_callback(_closing_tasks.discard)

    async def __aenter__(self) -> AsyncWatchConnection:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
