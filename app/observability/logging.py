# ==== STRUCTURED LOGGING WITH LOGURU ==== #

"""
Structured logging with loguru for Lunch Ledger.

This module provides JSON logging with rotation, business event records for
budget movements and job outcomes, and trace correlation through
OpenTelemetry. Standard library logging (SQLAlchemy, Prefect internals) is
routed through loguru so every record ends up in the same sinks.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict

from loguru import logger
from opentelemetry import trace
from opentelemetry.instrumentation.logging import LoggingInstrumentor


# ==== INITIALIZATION ==== #


class InterceptHandler(logging.Handler):
    """Forward standard logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def init_logging(level: str = "INFO", log_dir: str | None = None) -> None:
    """
    Initialize structured logging with loguru.

    Sets up a JSON console sink, a rotating file sink and an error-only file
    sink, then intercepts standard logging.

    Args:
        level (str): Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir (str | None): Directory for file sinks, defaults to ``LOG_DIR``
    """
    from app.settings import settings

    logger.remove()

    logger.add(
        sys.stdout,
        format="{message}",
        serialize=True,
        level=level.upper(),
        enqueue=True,
        colorize=False,
        backtrace=True,
        diagnose=False,
    )

    # --► FILE SINKS WITH ROTATION
    logs_dir = Path(log_dir or settings.LOG_DIR)
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger.add(
        logs_dir / "lunch_ledger_{time:YYYY-MM-DD}.log",
        rotation="100 MB",
        retention="30 days",
        compression="gz",
        serialize=True,
        level="DEBUG",
        enqueue=True,
        backtrace=True,
        diagnose=False,
    )

    # Ledger errors are kept longer for reconciliation
    logger.add(
        logs_dir / "lunch_ledger_errors_{time:YYYY-MM-DD}.log",
        rotation="50 MB",
        retention="90 days",
        compression="gz",
        serialize=True,
        level="ERROR",
        enqueue=True,
        backtrace=True,
        diagnose=False,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # --► THIRD-PARTY NOISE
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("prefect.server").setLevel(logging.WARNING)

    try:
        LoggingInstrumentor().instrument(set_logging_format=False)
    except Exception as e:
        logger.warning(f"Failed to setup OpenTelemetry logging: {e}")

    logger.info("Structured logging initialized", level=level)


# ==== CONTEXTUAL LOGGER ==== #


class ContextualLogger:
    """
    Loguru wrapper that injects logger name and trace context.

    Keyword arguments passed to any log method become structured fields
    (``project_id``, ``order_id``, ``amount`` and so on).
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = logger.bind(logger_name=name)

    def _add_context(self, extra: Dict[str, Any] | None = None) -> Dict[str, Any]:
        context: Dict[str, Any] = {"logger_name": self.name}

        if extra:
            context.update(extra)

        span = trace.get_current_span()
        if span and span.is_recording():
            span_context = span.get_span_context()
            if span_context.is_valid:
                context["trace_id"] = format(span_context.trace_id, "032x")
                context["span_id"] = format(span_context.span_id, "016x")

        return context

    def debug(self, msg: str, **kwargs: Any) -> None:
        self.logger.bind(**self._add_context(kwargs)).debug(msg)

    def info(self, msg: str, **kwargs: Any) -> None:
        self.logger.bind(**self._add_context(kwargs)).info(msg)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self.logger.bind(**self._add_context(kwargs)).warning(msg)

    def error(self, msg: str, **kwargs: Any) -> None:
        self.logger.bind(**self._add_context(kwargs)).error(msg)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log with full traceback of the exception being handled."""
        self.logger.bind(**self._add_context(kwargs)).exception(msg)


def get_logger(name: str) -> ContextualLogger:
    """
    Get a contextual logger instance.

    Args:
        name (str): Logger name (typically __name__)

    Returns:
        ContextualLogger: Logger with trace correlation
    """
    return ContextualLogger(name)


# ==== STRUCTURED EVENT HELPERS ==== #


def log_performance(operation: str, duration: float, **context: Any) -> None:
    """Log job durations; slow runs are raised to WARNING."""
    perf_logger = logger.bind(
        operation=operation,
        duration_seconds=round(duration, 3),
        performance_log=True,
        **context
    )

    if duration > 60.0:
        perf_logger.warning(f"Slow operation detected: {operation}")
    else:
        perf_logger.info(f"Operation completed: {operation}")


def log_business_event(event_type: str, project_id: int | None, **context: Any) -> None:
    """
    Log a business event such as a budget debit, refund or settlement.

    Args:
        event_type (str): Type of business event
        project_id (int | None): Project the event belongs to
        **context: Additional business context
    """
    logger.bind(
        event_type=event_type,
        project_id=project_id,
        business_event=True,
        **context
    ).info(f"Business event: {event_type}")
