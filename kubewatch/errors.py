"""Exception hierarchy for kubewatch.

KubeWatchError        -- base class for every error raised by this package.
AddressError          -- malformed base address or resource path; raised
                         before any network activity.
WatchConnectionError  -- transport failure or non-2xx status while opening
                         or reading a watch.
DeserializationError  -- a single frame could not be decoded into an event.
FrameTooLargeError    -- a pending frame outgrew the configured limit.

Nothing in this package retries: every error surfaces at the point it occurs
and the caller decides whether to reconnect or give up.
"""

from __future__ import annotations

_FRAME_PREVIEW_BYTES = 200


class KubeWatchError(Exception):
    """Base class for all kubewatch errors."""


class AddressError(KubeWatchError, ValueError):
    """Raised when a base address or resource path cannot form a valid URL."""

    def __init__(self, address: str, detail: str) -> None:
        super().__init__(f"Invalid address {address!r}: {detail}")
        self.address = address
        self.detail = detail


class WatchConnectionError(KubeWatchError):
    """Raised when the watch request cannot be established or the stream breaks.

    ``status_code`` and ``reason`` are populated for non-2xx responses and are
    ``None`` for transport-level failures (DNS, refused connection, timeouts).
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.reason = reason


class DeserializationError(KubeWatchError):
    """Raised (or yielded inline) when a frame cannot be decoded.

    Carries the raw ``frame`` for diagnostics and the underlying ``cause``.
    Framing of subsequent records is unaffected.
    """

    def __init__(self, message: str, frame: bytes, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.frame = frame
        self.cause = cause

    def __str__(self) -> str:
        preview = self.frame[:_FRAME_PREVIEW_BYTES]
        suffix = "..." if len(self.frame) > _FRAME_PREVIEW_BYTES else ""
        return f"{self.args[0]} (frame={preview!r}{suffix})"


class FrameTooLargeError(DeserializationError):
    """Raised when a partial frame exceeds the configured maximum size."""

    def __init__(self, size: int, limit: int, frame: bytes) -> None:
        super().__init__(f"Frame of {size} bytes exceeds limit of {limit} bytes", frame)
        self.size = size
        self.limit = limit
