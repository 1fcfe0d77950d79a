"""Decoding of single watch frames into typed events.

The target type only changes how the ``object`` field is coerced:

* ``Any`` / ``object`` -- the raw JSON value, untouched.
* anything else        -- validated through a ``pydantic.TypeAdapter``, which
                          covers pydantic models, dataclasses, TypedDicts and
                          plain containers such as ``dict[str, Any]``.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, Generic, TypeVar, cast

from pydantic import TypeAdapter, ValidationError

from kubewatch.errors import DeserializationError
from kubewatch.models.events import Event, EventType

T = TypeVar("T")

_DYNAMIC_TYPES: tuple[Any, ...] = (Any, object)


@lru_cache(maxsize=128)
def _adapter_for(object_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(object_type)


class EventDecoder(Generic[T]):
    """Turns one frame into an ``Event[T]``.

    Decoding is pure: the decoder holds no mutable state, so it is safe to
    share, to retry a frame, or to skip ahead after a failure.

    Args:
        object_type: Target type for the ``object`` field. Defaults to
                     ``Any`` (dynamic JSON value).
    """

    def __init__(self, object_type: Any = Any) -> None:
        self.object_type = object_type
        self._dynamic = object_type in _DYNAMIC_TYPES
        self._adapter: TypeAdapter[Any] | None = None
        if not self._dynamic:
            try:
                self._adapter = _adapter_for(object_type)
            except TypeError:
                # Unhashable type expressions cannot be cached.
                self._adapter = TypeAdapter(object_type)

    def decode(self, frame: bytes) -> Event[T]:
        """Decode *frame*.

        Raises:
            DeserializationError: invalid JSON, not an object, missing or
                unknown ``type``, missing ``object``, or an ``object`` that
                cannot be coerced into the target type.
        """
        try:
            document = json.loads(frame)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DeserializationError(f"Frame is not valid JSON: {exc}", frame, exc) from exc

        if not isinstance(document, dict):
            raise DeserializationError(
                f"Expected a JSON object, got {type(document).__name__}", frame
            )

        raw_type = document.get("type")
        if not isinstance(raw_type, str):
            raise DeserializationError("Missing or non-string 'type' field", frame)
        try:
            event_type = EventType(raw_type)
        except ValueError as exc:
            raise DeserializationError(f"Unknown event type {raw_type!r}", frame, exc) from exc

        if "object" not in document:
            raise DeserializationError("Missing 'object' field", frame)

        return Event(event_type=event_type, object=self._coerce(document["object"], frame))

    def _coerce(self, value: Any, frame: bytes) -> T:
        if self._adapter is None:
            return cast(T, value)
        try:
            return cast(T, self._adapter.validate_python(value))
        except ValidationError as exc:
            raise DeserializationError(
                f"Object does not match {_type_name(self.object_type)}: "
                f"{exc.error_count()} validation error(s)",
                frame,
                exc,
            ) from exc


def _type_name(object_type: Any) -> str:
    return getattr(object_type, "__name__", None) or repr(object_type)
