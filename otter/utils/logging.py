"""
Logging configuration for Otter.

Structured logging with correlation IDs, report-run context and timing
metrics, rendered through Rich on the console or as JSON lines.
"""

import contextvars
import logging
import logging.handlers
import sys
import time
import uuid
from typing import Any

import structlog
from rich.logging import RichHandler

# Context variables shared by every logger in a report run
correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)
run_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "run_context", default={}
)
run_start_time: contextvars.ContextVar[float] = contextvars.ContextVar(
    "run_start_time", default=0.0
)


class CorrelationIDProcessor:
    """Attach the active correlation ID to each event."""

    def __call__(
        self, logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        value = correlation_id.get("")
        if value:
            event_dict.setdefault("correlation_id", value)
        return event_dict


class RunContextProcessor:
    """Attach enterprise/operation context to each event."""

    def __call__(
        self, logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        for key, value in run_context.get({}).items():
            event_dict.setdefault(key, value)
        return event_dict


class ElapsedProcessor:
    """Attach milliseconds elapsed since the current operation started."""

    def __call__(
        self, logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        started = run_start_time.get(0.0)
        if started > 0 and "duration_ms" not in event_dict:
            event_dict["elapsed_ms"] = round((time.time() - started) * 1000, 2)
        return event_dict


class StructuredLogger:
    """Thin wrapper over a structlog logger with report-specific helpers."""

    def __init__(self, logger_name: str):
        self.logger = structlog.get_logger(logger_name)
        self._logger_name = logger_name

    def with_correlation_id(self, value: str | None = None) -> "StructuredLogger":
        correlation_id.set(value or generate_correlation_id())
        return self

    def info(self, message: str, **kwargs: Any) -> None:
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.logger.warning(message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self.logger.debug(message, **kwargs)

    def error(
        self, message: str, error: Exception | None = None, **kwargs: Any
    ) -> None:
        """Log an error, expanding an exception into type/module fields."""
        if error is not None:
            kwargs.update(
                {
                    "error": str(error),
                    "error_type": type(error).__name__,
                    "error_module": type(error).__module__,
                }
            )
        self.logger.error(message, **kwargs)

    def critical(
        self, message: str, error: Exception | None = None, **kwargs: Any
    ) -> None:
        if error is not None:
            kwargs.update({"error": str(error), "error_type": type(error).__name__})
        self.logger.critical(message, **kwargs)

    def performance(self, message: str, duration_ms: float, **kwargs: Any) -> None:
        """Log a timing measurement."""
        kwargs["duration_ms"] = round(duration_ms, 2)
        kwargs["performance_metric"] = True
        self.logger.info(message, **kwargs)

    def audit(self, action: str, **kwargs: Any) -> None:
        """Log an audit event (cache cleared, forced refresh, ...)."""
        kwargs.update({"audit": True, "action": action, "timestamp": time.time()})
        self.logger.info(f"AUDIT: {action}", **kwargs)


def setup_logging(
    verbose: bool = False,
    quiet: bool = False,
    json_logs: bool = False,
    log_level: str = "INFO",
    log_file: str | None = None,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 3,
) -> None:
    """Configure structlog and the standard logging handlers."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    base_processors = [
        CorrelationIDProcessor(),
        RunContextProcessor(),
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        ElapsedProcessor(),
    ]

    handlers: list[logging.Handler] = []

    if json_logs:
        processors = [
            *base_processors,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *base_processors,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=True),
        ]
        handlers.append(
            RichHandler(
                show_time=False,
                show_path=False,
                markup=True,
                rich_tracebacks=True,
                tracebacks_show_locals=verbose,
            )
        )

    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level, format="%(message)s", handlers=handlers or None, force=True
    )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )

    configure_third_party_loggers()


def configure_third_party_loggers() -> None:
    """Quiet the HTTP stack. httpx request lines include the API key."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("rich").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    return correlation_id.get("")


def clear_context() -> None:
    """Reset all logging context variables."""
    correlation_id.set("")
    run_context.set({})
    run_start_time.set(0.0)


class OperationLogger:
    """Context manager that logs start/finish of an operation with timing."""

    def __init__(
        self,
        logger: StructuredLogger,
        operation: str,
        correlation_id_value: str | None = None,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        self.correlation_id_value = correlation_id_value or generate_correlation_id()
        self.context = context
        self._tokens: list[tuple[contextvars.ContextVar, contextvars.Token]] = []

    def __enter__(self) -> StructuredLogger:
        merged = {**run_context.get({}), "operation": self.operation, **self.context}
        self._tokens = [
            (correlation_id, correlation_id.set(self.correlation_id_value)),
            (run_context, run_context.set(merged)),
            (run_start_time, run_start_time.set(time.time())),
        ]
        self.logger.info(f"Starting operation: {self.operation}")
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = (time.time() - run_start_time.get(time.time())) * 1000

        if exc_type:
            self.logger.error(
                f"Operation failed: {self.operation}",
                error=exc_val,
                duration_ms=round(duration_ms, 2),
            )
        else:
            self.logger.performance(
                f"Operation completed: {self.operation}", duration_ms=duration_ms
            )

        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens = []


def operation_logger(
    operation_name: str, correlation_id_value: str | None = None, **context: Any
) -> OperationLogger:
    """Create an :class:`OperationLogger` bound to this module's logger."""
    return OperationLogger(
        get_logger(__name__), operation_name, correlation_id_value, **context
    )
