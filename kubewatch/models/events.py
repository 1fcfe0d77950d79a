"""Watch event data structures and enumerations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class EventType(StrEnum):
    """Classification of a change reported by a watch endpoint.

    Values match the ``type`` field on the wire exactly.
    """

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    ERROR = "ERROR"
    BOOKMARK = "BOOKMARK"


@dataclass(frozen=True)
class Event(Generic[T]):
    """One decoded watch event.

    ``object`` holds the resource in whatever shape the caller asked for: the
    raw JSON value for untyped watches, or an instance of the target type.
    For ``ERROR`` events it is usually a ``Status`` object from the server.
    """

    event_type: EventType
    object: T

    @property
    def is_error(self) -> bool:
        return self.event_type is EventType.ERROR


# Convenience alias for untyped consumption.
RawEvent = Event[Any]
