"""Observability - Metrics, logging, and reporting."""

from .logger import LogContext, add_context, clear_all_context, clear_context, configure_logging
from .metrics import LoggerBackend, MetricsCollector, get_global_collector
from .reporter import ReportGenerator

__all__ = [
    "MetricsCollector",
    "LoggerBackend",
    "get_global_collector",
    "ReportGenerator",
    "configure_logging",
    "add_context",
    "clear_context",
    "clear_all_context",
    "LogContext",
]
