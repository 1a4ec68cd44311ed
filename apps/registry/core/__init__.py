"""Core contract module for the package registry.

This module provides:
- ErrorCategory: classification of storage errors
- ErrorResponse: JSON error body shared by the HTTP routers
"""

from .errors import ErrorCategory, ErrorResponse

__all__ = [
    "ErrorCategory",
    "ErrorResponse",
]
