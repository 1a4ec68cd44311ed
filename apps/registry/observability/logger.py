"""Structured logging for registry observability.

Provides context-aware logging with automatic request/package tagging.
"""

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Any

# Context variables for automatic tagging
_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_package: ContextVar[str | None] = ContextVar("package", default=None)


def set_context(
    request_id: str | None = None,
    package: str | None = None,
) -> None:
    """Set logging context variables."""
    if request_id is not None:
        _request_id.set(request_id)
    if package is not None:
        _package.set(package)


def clear_context() -> None:
    """Clear all logging context variables."""
    _request_id.set(None)
    _package.set(None)


@contextmanager
def package_context(package: str) -> Iterator[None]:
    """Tag records logged inside the block with ``package``."""
    token = _package.set(package)
    try:
        yield
    finally:
        _package.reset(token)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add context from contextvars
        if request_id := _request_id.get():
            log_data["request_id"] = request_id
        if package := _package.get():
            log_data["package"] = package

        # Add extra fields
        if hasattr(record, "extra_data"):
            log_data["data"] = record.extra_data

        # Add exception info
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: str = "INFO", log_format: str = "text") -> None:
    """Configure the root logger.

    Args:
        level: Level name (DEBUG, INFO, ...); unknown names fall back to INFO
        log_format: "json" for StructuredFormatter lines, anything else for plain text
    """
    handler = logging.StreamHandler(sys.stdout)
    if log_format.lower() == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


class StructuredLogger:
    """Logger with structured payloads and context awareness.

    Records propagate to the root logger, whose handler is set up by
    configure_logging().
    """

    def __init__(self, name: str):
        """Initialize structured logger.

        Args:
            name: Logger name
        """
        self._logger = logging.getLogger(name)

    def _log(
        self,
        level: int,
        msg: str,
        *args: Any,
        extra_data: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        """Log with optional extra data."""
        extra = kwargs.pop("extra", {})
        if extra_data:
            extra["extra_data"] = extra_data
        self._logger.log(level, msg, *args, extra=extra, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log error message."""
        self._log(logging.ERROR, msg, *args, **kwargs)

    def upload_started(self, package: str, filename: str, **extra: Any) -> None:
        """Log artifact upload started."""
        self.info(
            f"Upload of {filename} to {package} started",
            extra_data={"package": package, "filename": filename, **extra},
        )

    def upload_completed(
        self,
        package: str,
        filename: str,
        version: str,
        duration_ms: int | None = None,
        **extra: Any,
    ) -> None:
        """Log artifact upload bound to a version."""
        data = {"package": package, "filename": filename, "version": version, **extra}
        if duration_ms is not None:
            data["duration_ms"] = duration_ms
        self.info(f"Upload of {filename} to {package}@{version} completed", extra_data=data)

    def upload_failed(
        self,
        package: str,
        filename: str,
        error: str,
        category: str,
        **extra: Any,
    ) -> None:
        """Log artifact upload failure."""
        self.error(
            f"Upload of {filename} to {package} failed: {error}",
            extra_data={
                "package": package,
                "filename": filename,
                "error": error,
                "category": category,
                **extra,
            },
        )

    def descriptor_published(self, package: str, path: str, **extra: Any) -> None:
        """Log descriptor publish."""
        self.info(
            f"Descriptor for {package} published",
            extra_data={"package": package, "path": path, **extra},
        )

    def request_completed(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: int,
        **extra: Any,
    ) -> None:
        """Log an HTTP request/response pair."""
        self.info(
            f"{method} {path} {status_code} {duration_ms}ms",
            extra_data={
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": duration_ms,
                **extra,
            },
        )


# Global logger cache
_loggers: dict[str, StructuredLogger] = {}


def get_logger(name: str) -> StructuredLogger:
    """Get or create a structured logger.

    Args:
        name: Logger name

    Returns:
        StructuredLogger instance
    """
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name)
    return _loggers[name]
