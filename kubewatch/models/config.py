"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

ErrorPolicy = Literal["yield", "raise"]


@dataclass
class StreamConfig:
    """Byte-stream and framing configuration.

    Zero means "not set" for every field: transport-sized chunks, unbounded
    frames, no read timeout.
    """

    chunk_size: int = 0
    max_frame_size: int = 0
    read_timeout: float = 0.0


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeWatchConfig:
    """Top-level kubewatch configuration."""

    stream: StreamConfig = field(default_factory=StreamConfig)
    on_error: ErrorPolicy = "yield"
    log: LogConfig = field(default_factory=LogConfig)
