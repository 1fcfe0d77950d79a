"""Shared fixtures for kubewatch tests.

HTTP is faked with ``httpx.MockTransport``: each helper builds a client whose
watch response streams a fixed list of chunks, so tests control exactly where
chunk boundaries fall without touching a real API server.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable, Iterator
from typing import Any

import httpx
import pytest

from kubewatch.cluster import Cluster
from kubewatch.models.config import KubeWatchConfig

BASE_URL = "http://127.0.0.1:8080"

# ---------------------------------------------------------------------------
# Frame helpers
# ---------------------------------------------------------------------------


def make_frame(event_type: str = "ADDED", obj: Any = None, newline: bool = True) -> bytes:
    """Serialise one watch record the way an API server writes it."""
    body = json.dumps({"type": event_type, "object": obj if obj is not None else {}}, separators=(",", ":"))
    return body.encode() + (b"\n" if newline else b"")


def make_pod(name: str = "my-app-7b4f8c6d-x2kj", namespace: str = "default", phase: str = "Running") -> dict:
    """Minimal Pod object as returned by the API server."""
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": name, "namespace": namespace, "resourceVersion": "1042"},
        "status": {"phase": phase},
    }


def split_every(data: bytes, size: int) -> list[bytes]:
    """Split *data* into chunks of *size* bytes (the last one may be shorter)."""
    return [data[i : i + size] for i in range(0, len(data), size)]


# ---------------------------------------------------------------------------
# Mock transport helpers
# ---------------------------------------------------------------------------


class RecordingStream:
    """Chunk iterator that records how many chunks were pulled."""

    def __init__(self, chunks: list[bytes], error: Exception | None = None) -> None:
        self.chunks = chunks
        self.error = error
        self.pulled = 0

    def __iter__(self) -> Iterator[bytes]:
        for chunk in self.chunks:
            self.pulled += 1
            yield chunk
        if self.error is not None:
            raise self.error

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            self.pulled += 1
            yield chunk
        if self.error is not None:
            raise self.error


Handler = Callable[[httpx.Request], httpx.Response]


def streaming_handler(
    stream: RecordingStream,
    status_code: int = 200,
    requests: list[httpx.Request] | None = None,
    is_async: bool = False,
) -> Handler:
    """Build a MockTransport handler that serves *stream* as the body."""

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        content = stream.__aiter__() if is_async else iter(stream)
        return httpx.Response(status_code, content=content)

    return handler


def make_client(
    chunks: list[bytes],
    status_code: int = 200,
    requests: list[httpx.Request] | None = None,
    error: Exception | None = None,
) -> tuple[httpx.Client, RecordingStream]:
    stream = RecordingStream(chunks, error)
    transport = httpx.MockTransport(streaming_handler(stream, status_code, requests))
    return httpx.Client(transport=transport), stream


def make_async_client(
    chunks: list[bytes],
    status_code: int = 200,
    requests: list[httpx.Request] | None = None,
    error: Exception | None = None,
) -> tuple[httpx.AsyncClient, RecordingStream]:
    stream = RecordingStream(chunks, error)
    transport = httpx.MockTransport(streaming_handler(stream, status_code, requests, is_async=True))
    return httpx.AsyncClient(transport=transport), stream


def unreachable_handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("[Errno 111] Connection refused", request=request)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cluster() -> Cluster:
    return Cluster(BASE_URL)


@pytest.fixture
def config() -> KubeWatchConfig:
    """Default configuration, independent of KUBEWATCH_* in the environment."""
    return KubeWatchConfig()
