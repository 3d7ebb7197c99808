"""
Observability module - Logging, Metrics, and Tracing.
"""

from backoffice.observability.logging import bind_caller, get_logger, log_context, setup_logging
from backoffice.observability.metrics import metrics
from backoffice.observability.tracing import setup_tracing

__all__ = [
    "bind_caller",
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "setup_tracing",
]
