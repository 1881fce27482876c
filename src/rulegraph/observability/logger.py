"""Structured logging for rule evaluation.

Log levels, from quiet to noisy:
- WARNING (30): Rule errors and problems only
- INFO (20): Run and target summaries (default)
- DEBUG (10): Per-rule outcomes, graph construction and skip propagation

VERBOSE (15) and TRACE (5) are registered as named thresholds so that
--log-level accepts them alongside the standard names.
"""

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import Any

import structlog

# Fields merged into every event, e.g. the target object being evaluated
_log_context: ContextVar[dict[str, Any]] = ContextVar("rulegraph_log_context", default={})

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

LOG_LEVELS = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class LogContext:
    """
    Context manager that binds fields to all events logged inside it.

    Usage:
        with LogContext(target_name="storage-01"):
            logger.info("Evaluating rules")
    """

    def __init__(self, **kwargs: Any) -> None:
        self.fields = kwargs
        self.token = None

    def __enter__(self) -> "LogContext":
        merged = {**_log_context.get(), **self.fields}
        self.token = _log_context.set(merged)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.token is not None:
            _log_context.reset(self.token)
            self.token = None


def add_context(**kwargs: Any) -> None:
    """
    Bind fields to all subsequent events in the current context.

    Args:
        **kwargs: Fields to bind
    """
    _log_context.set({**_log_context.get(), **kwargs})


def clear_context(key: str) -> None:
    """
    Unbind a single field.

    Args:
        key: Field name to remove
    """
    current = _log_context.get()
    if key in current:
        _log_context.set({k: v for k, v in current.items() if k != key})


def clear_all_context() -> None:
    _log_context.set({})


def get_context() -> dict[str, Any]:
    """Return a copy of the currently bound fields."""
    return dict(_log_context.get())


def _context_processor(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Merge bound context fields into the event. Explicit event fields win."""
    context = _log_context.get()
    for key, value in context.items():
        event_dict.setdefault(key, value)
    return event_dict


def get_log_level(level: str) -> int:
    """
    Map a level name to its numeric value.

    Args:
        level: Level name, case-insensitive

    Returns:
        Numeric level (INFO for unknown names)
    """
    return LOG_LEVELS.get(level.upper(), logging.INFO)


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: str | Path | None = None,
    log_filter: str | None = None,
) -> None:
    """
    Configure stdlib logging and structlog.

    Args:
        level: Level name (TRACE, DEBUG, VERBOSE, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Render events as JSON lines instead of colored console output
        log_file: Also write events to this file
        log_filter: Comma-separated logger name fragments to keep at the
            configured level (e.g. "graph,runner"); other loggers are raised to WARNING
    """
    log_level = get_log_level(level)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        file_path = Path(log_file)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(file_path))

    logging.basicConfig(format="%(message)s", level=log_level, handlers=handlers, force=True)
    logging.getLogger().setLevel(log_level)

    if log_filter:
        components = [c.strip() for c in log_filter.split(",") if c.strip()]
        for name in list(logging.root.manager.loggerDict):
            if "rulegraph" in name and not any(comp in name for comp in components):
                logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        _context_processor,
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
