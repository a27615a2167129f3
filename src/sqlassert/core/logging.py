"""Structured logging for rule evaluation.

Usage:
    from sqlassert.core.logging import get_logger, configure_logging

    # Configure at startup
    configure_logging(log_level="INFO", log_format="console")

    # Get logger in any module
    logger = get_logger(__name__)

    # Log with structured context
    logger.info("rule_failed", rule="customer rows should be at least 10")

    # Use context managers for automatic context propagation
    with log_context(suite="nightly", datasource="dw"):
        logger.info("suite_started", rules=42)
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import MutableMapping
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, cast

import structlog
from structlog.typing import FilteringBoundLogger

from sqlassert.core.config import get_settings

# Context variables for correlation
_run_context: ContextVar[dict[str, Any] | None] = ContextVar("run_context", default=None)


@dataclass
class RunMetrics:
    """Counters collected while a suite is being evaluated."""

    run_id: str
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None

    rules_evaluated: int = 0
    rules_passed: int = 0
    rules_failed: int = 0
    rules_errored: int = 0
    queries_executed: int = 0

    # Per-datasource query time (milliseconds)
    timings: dict[str, int] = field(default_factory=dict)

    # Rules may be evaluated on worker threads
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def duration_seconds(self) -> float:
        """Get duration in seconds."""
        if self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return (datetime.now(UTC) - self.start_time).total_seconds()

    def record_timing(self, datasource_name: str, millis: int) -> None:
        self.timings[datasource_name] = self.timings.get(datasource_name, 0) + millis

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "run_id": self.run_id,
            "duration_seconds": self.duration_seconds,
            "rules_evaluated": self.rules_evaluated,
            "rules_passed": self.rules_passed,
            "rules_failed": self.rules_failed,
            "rules_errored": self.rules_errored,
            "queries_executed": self.queries_executed,
            "timings": self.timings,
        }


_current_metrics: ContextVar[RunMetrics | None] = ContextVar("current_metrics", default=None)


def start_run_metrics(run_id: str) -> RunMetrics:
    """Start collecting metrics for a suite run."""
    metrics = RunMetrics(run_id=run_id)
    _current_metrics.set(metrics)
    return metrics


def get_run_metrics() -> RunMetrics | None:
    """Get current run metrics."""
    return _current_metrics.get()


def end_run_metrics() -> RunMetrics | None:
    """End run metrics collection."""
    metrics = _current_metrics.get()
    if metrics:
        metrics.end_time = datetime.now(UTC)
        _current_metrics.set(None)
    return metrics


def _add_run_context(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Processor to add run context to log events."""
    context = _run_context.get()
    if context:
        event_dict.update(context)
    return event_dict


def _add_metrics_context(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Processor to add the current run id."""
    metrics = _current_metrics.get()
    if metrics:
        event_dict["_run_id"] = metrics.run_id
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    show_timestamps: bool = True,
    color: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Output format ("console" for development, "json" for production)
        show_timestamps: Whether to show timestamps in console mode
        color: Whether to use colors in console mode
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_run_context,
        _add_metrics_context,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if show_timestamps:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    if log_format == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(
                colors=color,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level.upper())),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Also configure stdlib logging for libraries (SQLAlchemy)
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """Get a structured logger.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Bound structlog logger
    """
    return cast(FilteringBoundLogger, structlog.get_logger(name))


class LogContext:
    """Context manager for adding context to logs within a scope."""

    def __init__(self, **context: Any):
        self.context = context
        self.token: Any = None

    def __enter__(self) -> LogContext:
        current = _run_context.get() or {}
        new_context = {**current, **self.context}
        self.token = _run_context.set(new_context)
        return self

    def __exit__(self, *args: Any) -> None:
        if self.token:
            _run_context.reset(self.token)


def log_context(**context: Any) -> LogContext:
    """Create a context manager for scoped logging context.

    Usage:
        with log_context(suite="nightly"):
            logger.info("processing")  # Will include suite
    """
    return LogContext(**context)


def increment_query(datasource_name: str, millis: int = 0) -> None:
    """Count one executed rule query in the current run metrics."""
    metrics = _current_metrics.get()
    if metrics:
        with metrics._lock:
            metrics.queries_executed += 1
            metrics.record_timing(datasource_name, millis)


def record_rule_outcome(passed: bool | None) -> None:
    """Record a rule outcome; ``None`` means the evaluation raised."""
    metrics = _current_metrics.get()
    if not metrics:
        return
    with metrics._lock:
        metrics.rules_evaluated += 1
        if passed is None:
            metrics.rules_errored += 1
        elif passed:
            metrics.rules_passed += 1
        else:
            metrics.rules_failed += 1


# Initialize from settings (SQLASSERT_LOG_LEVEL, SQLASSERT_LOG_FORMAT)
configure_logging(log_level=get_settings().log_level, log_format=get_settings().log_format)
