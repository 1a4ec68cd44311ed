"""Storage-related exceptions."""

from apps.registry.core.errors import ErrorCategory


class RegistryStorageError(Exception):
    """Base exception for registry storage operations."""

    category: ErrorCategory = ErrorCategory.STORAGE_FAILURE


class StorageFailureError(RegistryStorageError):
    """A filesystem operation failed (permissions, disk full, I/O error).

    The originating OSError is chained as ``__cause__``.
    """

    category = ErrorCategory.STORAGE_FAILURE

    def __init__(self, message: str, package: str | None = None) -> None:
        super().__init__(message)
        self.package = package


class MalformedInputError(RegistryStorageError):
    """Input rejected before any filesystem mutation."""

    category = ErrorCategory.MALFORMED_INPUT

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field
