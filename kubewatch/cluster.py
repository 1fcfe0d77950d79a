"""Cluster handle: a validated base address for a Kubernetes-style API server.

Usage::

    from kubewatch import Cluster

    cluster = Cluster("http://127.0.0.1:8080")
    with cluster.events("api/v1/pods") as events:
        for event in events:
            ...

The handle owns no network resources. Each watch opens (and closes) its own
connection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from kubewatch.errors import AddressError

if TYPE_CHECKING:
    from kubewatch.watch.sequence import AsyncEventSequence, EventSequence

_ALLOWED_SCHEMES = ("http", "https")
_WATCH_PARAM = {"watch": "true"}


def _parse_base_url(address: str) -> httpx.URL:
    try:
        url = httpx.URL(address)
    except (httpx.InvalidURL, TypeError) as exc:
        raise AddressError(address, str(exc)) from exc

    if url.scheme not in _ALLOWED_SCHEMES:
        raise AddressError(address, f"scheme must be one of {_ALLOWED_SCHEMES}")
    if not url.host:
        raise AddressError(address, "missing host")
    if url.query or url.fragment:
        raise AddressError(address, "base address must not carry a query or fragment")
    return url


@dataclass(frozen=True)
class Cluster:
    """Immutable handle on an API server base address.

    Args:
        address: Base address including scheme and port, optionally with a
                 path prefix (e.g. ``http://127.0.0.1:8080`` or
                 ``https://proxy.local/k8s``).
        headers: Extra request headers sent with every watch (for example an
                 ``Authorization`` header prepared by the caller).
        timeout: Transport timeout in seconds. ``None`` disables it, so a
                 stalled server blocks the consumer until it sends data.

    Raises:
        AddressError: ``address`` is not an absolute http(s) URL.
    """

    address: str
    headers: dict[str, str] = field(default_factory=dict, hash=False)
    timeout: float | None = None
    base_url: httpx.URL = field(init=False, repr=False, compare=False, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", _parse_base_url(self.address))

    @classmethod
    def from_url(cls, address: str, **kwargs: Any) -> Cluster:
        return cls(address, **kwargs)

    def url_for(self, resource_path: str) -> httpx.URL:
        """Build the watch URL for *resource_path*.

        The path is appended to the base address (any base path prefix is
        kept) and ``watch=true`` is merged into the query string.

        Raises:
            AddressError: the path is empty or is itself an absolute URL.
        """
        path, _, query = resource_path.partition("?")
        segments = path.strip().strip("/")
        if not segments:
            raise AddressError(resource_path, "resource path must not be empty")
        if "://" in segments or any(ch.isspace() for ch in segments):
            raise AddressError(resource_path, "resource path must be a relative path")

        prefix = self.base_url.path.rstrip("/")
        try:
            params = httpx.QueryParams(query).merge(_WATCH_PARAM)
            return self.base_url.copy_with(path=f"{prefix}/{segments}", params=params)
        except httpx.InvalidURL as exc:
            raise AddressError(resource_path, str(exc)) from exc

    def client_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.timeout)

    def events(self, resource_path: str, object_type: Any = Any, **kwargs: Any) -> EventSequence[Any]:
        """Open a watch on *resource_path*; see ``kubewatch.watch.watch``."""
        from kubewatch.watch.sequence import watch

        return watch(self, resource_path, object_type, **kwargs)

    async def aevents(
        self, resource_path: str, object_type: Any = Any, **kwargs: Any
    ) -> AsyncEventSequence[Any]:
        """Open an async watch on *resource_path*; see ``kubewatch.watch.awatch``."""
        from kubewatch.watch.sequence import awatch

        return await awatch(self, resource_path, object_type, **kwargs)
