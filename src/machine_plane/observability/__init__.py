"""Observability helpers: structured logging and Prometheus metrics."""

from .logging import configure_logging, correlation_id_ctx, get_logger
from .metrics import metrics_text

__all__ = [
    "configure_logging",
    "correlation_id_ctx",
    "get_logger",
    "metrics_text",
]
