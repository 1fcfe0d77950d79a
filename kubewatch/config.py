"""Configuration loading from KUBEWATCH_* environment variables.

Every variable is optional. A value that cannot be parsed raises
``ValueError`` naming the variable, so a typo fails at startup instead of
silently falling back to a default.
"""

from __future__ import annotations

import os

from kubewatch.models.config import ErrorPolicy, KubeWatchConfig, LogConfig, StreamConfig

_PREFIX = "KUBEWATCH_"
_MAX_CHUNK_SIZE = 16 * 1024 * 1024
_ERROR_POLICIES: tuple[ErrorPolicy, ...] = ("yield", "raise")
_LOG_LEVELS = ("debug", "info", "warning", "error")


def _raw(key: str) -> str | None:
    value = os.environ.get(_PREFIX + key)
    return value.strip() if value is not None else None


def _invalid(key: str, value: str, expected: str) -> ValueError:
    return ValueError(f"Invalid {_PREFIX}{key}={value!r}: expected {expected}")


def _byte_count(key: str, default: int, ceiling: int | None = None) -> int:
    """Non-negative byte count; negatives clamp to 0, large values to *ceiling*."""
    value = _raw(key)
    if not value:
        return default
    try:
        count = max(int(value), 0)
    except ValueError:
        raise _invalid(key, value, "an integer number of bytes") from None
    return min(count, ceiling) if ceiling is not None else count


def _seconds(key: str) -> float:
    """Timeout in seconds; ``0`` (or unset) means no timeout."""
    value = _raw(key)
    if not value:
        return 0.0
    try:
        seconds = float(value)
    except ValueError:
        raise _invalid(key, value, "a number of seconds") from None
    if seconds < 0:
        raise _invalid(key, value, "a number of seconds >= 0")
    return seconds


def _choice(key: str, default: str, choices: tuple[str, ...]) -> str:
    value = _raw(key)
    if not value:
        return default
    if value.lower() not in choices:
        raise _invalid(key, value, f"one of {', '.join(choices)}")
    return value.lower()


def load_config() -> KubeWatchConfig:
    """Load configuration from KUBEWATCH_* environment variables."""
    on_error: ErrorPolicy = "raise" if _choice("ON_ERROR", "yield", _ERROR_POLICIES) == "raise" else "yield"
    return KubeWatchConfig(
        stream=StreamConfig(
            chunk_size=_byte_count("CHUNK_SIZE", 0, ceiling=_MAX_CHUNK_SIZE),
            max_frame_size=_byte_count("MAX_FRAME_SIZE", 0),
            read_timeout=_seconds("READ_TIMEOUT"),
        ),
        on_error=on_error,
        log=LogConfig(level=_choice("LOG_LEVEL", "info", _LOG_LEVELS)),
    )
