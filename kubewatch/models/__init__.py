"""Core data structures for kubewatch."""

from kubewatch.models.config import ErrorPolicy, KubeWatchConfig, LogConfig, StreamConfig
from kubewatch.models.events import Event, EventType, RawEvent

__all__ = [
    "ErrorPolicy",
    "Event",
    "EventType",
    "KubeWatchConfig",
    "LogConfig",
    "RawEvent",
    "StreamConfig",
]
