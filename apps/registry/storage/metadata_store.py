"""Descriptor storage: one JSON document per package.

MetadataStore handles descriptor persistence with:
- Atomic replacement (temp file + rename) on every write
- Tagged read results separating missing from corrupt documents
- Listing that never fails the caller

Filesystem errors on ensure/write propagate as StorageFailureError; read and
list_all degrade to not_found / empty instead.
"""

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from apps.registry.constants import FIELD_NAME, FIELD_VERSIONS

from .atomic import atomic_write
from .exceptions import MalformedInputError, StorageFailureError
from .layout import PackageLayout
from .schemas import DescriptorLookup, LookupStatus

logger = logging.getLogger(__name__)


def empty_descriptor(pkg: str) -> dict[str, Any]:
    """Descriptor reported for a package with no readable metadata."""
    return {FIELD_NAME: pkg, FIELD_VERSIONS: {}}


def serialize_descriptor(descriptor: Any) -> bytes:
    """Encode a descriptor the way it is stored on disk (2-space indented JSON).

    Raises:
        MalformedInputError: If the descriptor is not a mapping or not JSON-serializable
    """
    if not isinstance(descriptor, Mapping):
        raise MalformedInputError(
            f"Descriptor must be a mapping, got {type(descriptor).__name__}",
            field="descriptor",
        )
    try:
        return json.dumps(dict(descriptor), indent=2, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise MalformedInputError(f"Descriptor is not JSON-serializable: {e}", field="descriptor") from e


class MetadataStore:
    """Filesystem-backed descriptor store.

    Path convention: <root>/packages/<pkg>/meta.json
    """

    def __init__(self, layout: PackageLayout):
        self.layout = layout

    @classmethod
    def from_root(cls, root: str | Path, strict_names: bool = False) -> "MetadataStore":
        return cls(PackageLayout(root, strict_names=strict_names))

    def ensure(self, pkg: str) -> Path:
        """Create the package namespace (and its artifacts directory).

        Returns:
            The package directory
        """
        return self.layout.ensure(pkg)

    def read(self, pkg: str) -> DescriptorLookup:
        """Read a package descriptor.

        Returns:
            DescriptorLookup with status found, not_found or corrupt. Never
            raises: names the layout rejects are reported as not_found.
        """
        try:
            path = self.layout.descriptor_path(pkg)
        except MalformedInputError:
            return DescriptorLookup(package=pkg, status=LookupStatus.NOT_FOUND)

        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return DescriptorLookup(package=pkg, status=LookupStatus.NOT_FOUND)
        except (OSError, UnicodeDecodeError) as e:
            return self._corrupt(pkg, path, f"unreadable: {e}")

        try:
            descriptor = json.loads(raw)
        except json.JSONDecodeError as e:
            return self._corrupt(pkg, path, f"invalid JSON: {e}")

        if not isinstance(descriptor, dict):
            return self._corrupt(pkg, path, f"expected JSON object, got {type(descriptor).__name__}")

        return DescriptorLookup(package=pkg, status=LookupStatus.FOUND, descriptor=descriptor)

    def get(self, pkg: str) -> dict[str, Any] | None:
        """Read a descriptor, folding missing and corrupt documents to None."""
        return self.read(pkg).descriptor_or_none()

    def write(self, pkg: str, descriptor: Mapping[str, Any]) -> Path:
        """Atomically persist a descriptor.

        Concurrent readers observe either the previous document or the new
        one, never a partial write.

        Returns:
            Path of the descriptor file

        Raises:
            MalformedInputError: If the descriptor is rejected (nothing is written)
            StorageFailureError: If the filesystem write fails
        """
        content = serialize_descriptor(descriptor)
        path = self.layout.descriptor_path(pkg)
        self.ensure(pkg)

        try:
            atomic_write(path, content)
        except OSError as e:
            raise StorageFailureError(f"Failed to write descriptor {path}: {e}", package=pkg) from e

        logger.debug(f"Wrote descriptor for {pkg} ({len(content)} bytes)")
        return path

    def list_all(self) -> dict[str, dict[str, Any]]:
        """Read every stored descriptor.

        Packages without a readable descriptor are reported with an empty one.
        A missing or unreadable storage root yields an empty mapping.
        """
        try:
            names = self.layout.list_package_names()
        except OSError as e:
            logger.debug(f"Package listing unavailable: {e}")
            return {}

        packages: dict[str, dict[str, Any]] = {}
        for name in names:
            try:
                self.layout.package_key(name)
            except MalformedInputError:
                # Directory name the current name policy would not produce (strict mode)
                logger.warning(f"Skipping package directory with non-canonical name: {name!r}")
                continue
            lookup = self.read(name)
            packages[name] = lookup.descriptor if lookup.found else empty_descriptor(name)
        return packages

    def _corrupt(self, pkg: str, path: Path, error: str) -> DescriptorLookup:
        logger.warning(f"Corrupt descriptor for {pkg} at {path}: {error}")
        return DescriptorLookup(package=pkg, status=LookupStatus.CORRUPT, error=error)
