"""Observability helpers for kubewatch (structured logging)."""

from kubewatch.observability.logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
