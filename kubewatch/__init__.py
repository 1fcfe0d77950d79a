"""kubewatch: streaming client for Kubernetes-style watch endpoints.

Usage::

    from kubewatch import Cluster

    cluster = Cluster("http://localhost:8080")
    with cluster.events("api/v1/pods") as events:
        for event in events:
            print(event.event_type, event.object["metadata"]["name"])
"""

from kubewatch.cluster import Cluster
from kubewatch.errors import (
    AddressError,
    DeserializationError,
    FrameTooLargeError,
    KubeWatchError,
    WatchConnectionError,
)
from kubewatch.models.events import Event, EventType, RawEvent
from kubewatch.watch import (
    AsyncEventSequence,
    EventDecoder,
    EventSequence,
    LineFramer,
    awatch,
    watch,
)

__version__ = "0.1.0"

__all__ = [
    "AddressError",
    "AsyncEventSequence",
    "Cluster",
    "DeserializationError",
    "Event",
    "EventDecoder",
    "EventSequence",
    "EventType",
    "FrameTooLargeError",
    "KubeWatchError",
    "LineFramer",
    "RawEvent",
    "WatchConnectionError",
    "__version__",
    "awatch",
    "watch",
]
