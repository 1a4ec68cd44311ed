"""Observability module for the registry.

This module provides:
- Structured logging with request/package context
- configure_logging: root logger setup from LOG_LEVEL / LOG_FORMAT
"""

from .logger import (
    StructuredLogger,
    clear_context,
    configure_logging,
    get_logger,
    package_context,
    set_context,
)

__all__ = [
    "StructuredLogger",
    "get_logger",
    "configure_logging",
    "set_context",
    "package_context",
    "clear_context",
]
