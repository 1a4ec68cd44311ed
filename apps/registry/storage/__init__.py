"""Storage module for package metadata and artifacts.

This module provides:
- PackageLayout: sanitized on-disk layout shared by both stores
- MetadataStore: atomic per-package descriptor documents
- ArtifactStore: tarball blobs under each package
- UploadCoordinator: binds uploaded tarballs to descriptor versions

Path traversal prevention: every package name and filename passes through the
sanitizers before it reaches the filesystem.
"""

from .artifact_store import ArtifactStore
from .exceptions import MalformedInputError, RegistryStorageError, StorageFailureError
from .layout import PackageLayout
from .locks import KeyedLock
from .metadata_store import MetadataStore, empty_descriptor
from .sanitizer import is_canonical_package_name, sanitize_filename, sanitize_package_name
from .schemas import ArtifactRef, DescriptorLookup, LookupStatus, UploadResult
from .upload import (
    UploadCoordinator,
    VersionResolver,
    build_tarball_url,
    resolve_latest_or_fallback,
)

__all__ = [
    "ArtifactRef",
    "ArtifactStore",
    "DescriptorLookup",
    "KeyedLock",
    "LookupStatus",
    "MetadataStore",
    "PackageLayout",
    "UploadCoordinator",
    "UploadResult",
    "VersionResolver",
    "build_tarball_url",
    "empty_descriptor",
    "is_canonical_package_name",
    "resolve_latest_or_fallback",
    "sanitize_filename",
    "sanitize_package_name",
    # Exceptions
    "RegistryStorageError",
    "StorageFailureError",
    "MalformedInputError",
]
