"""On-disk layout of the package store.

Path convention:
    <root>/packages/<package key>/meta.json
    <root>/packages/<package key>/tarballs/<artifact filename>

A scoped package key (``@scope/name``) maps to the nested directory
``packages/@scope/name``. Every resolved path is checked to lie strictly
inside ``<root>/packages``.
"""

import logging
from pathlib import Path

from apps.registry.constants import ARTIFACTS_DIR, DESCRIPTOR_FILENAME, PACKAGES_DIR

from .exceptions import MalformedInputError, StorageFailureError
from .sanitizer import is_canonical_package_name, sanitize_filename, sanitize_package_name

logger = logging.getLogger(__name__)


class PackageLayout:
    """Resolves package names and filenames to paths under a storage root."""

    def __init__(self, root: str | Path, strict_names: bool = False):
        """Initialize layout.

        Args:
            root: Storage root directory
            strict_names: Reject names that sanitizing would change instead of
                coercing them, so two raw names can never share a directory
        """
        self.root = Path(root)
        self.packages_dir = self.root / PACKAGES_DIR
        self.strict_names = strict_names

    def package_key(self, pkg: str) -> str:
        """Sanitized, normalized key for a package.

        Raises:
            MalformedInputError: If the name is neither ``name`` nor ``@scope/name``
                after sanitizing
        """
        if self.strict_names and not is_canonical_package_name(pkg):
            raise MalformedInputError(
                f"Invalid package name: {pkg[:50]!r} contains disallowed characters",
                field="package",
            )

        segments = [s for s in sanitize_package_name(pkg).split("/") if s and s != "."]
        # Only @scope/name nests; anything else would land inside another package's namespace
        expected = 2 if segments and segments[0].startswith("@") else 1
        if len(segments) != expected:
            raise MalformedInputError(f"Invalid package name: {pkg[:50]!r}", field="package")
        return "/".join(segments)

    def package_dir(self, pkg: str) -> Path:
        path = self.packages_dir.joinpath(*self.package_key(pkg).split("/"))
        self._verify_inside(path, pkg)
        return path

    def descriptor_path(self, pkg: str) -> Path:
        return self.package_dir(pkg) / DESCRIPTOR_FILENAME

    def artifacts_dir(self, pkg: str) -> Path:
        return self.package_dir(pkg) / ARTIFACTS_DIR

    def artifact_path(self, pkg: str, filename: str) -> Path:
        """Path of an artifact, flattening the filename to one component.

        Raises:
            MalformedInputError: If the filename is empty after sanitizing
        """
        safe_name = sanitize_filename(filename)
        if safe_name in ("", "."):
            raise MalformedInputError(f"Invalid filename: {filename[:50]!r}", field="filename")
        return self.artifacts_dir(pkg) / safe_name

    def ensure(self, pkg: str) -> Path:
        """Create the package directory and its artifacts directory.

        Idempotent and safe to call concurrently.

        Raises:
            StorageFailureError: If a directory cannot be created
        """
        pkg_dir = self.package_dir(pkg)
        try:
            pkg_dir.mkdir(parents=True, exist_ok=True)
            (pkg_dir / ARTIFACTS_DIR).mkdir(exist_ok=True)
        except OSError as e:
            raise StorageFailureError(
                f"Failed to create package directory {pkg_dir}: {e}", package=pkg
            ) from e
        return pkg_dir

    def list_package_names(self) -> list[str]:
        """List stored package keys, descending into ``@scope`` directories.

        Raises:
            OSError: If the packages directory cannot be enumerated
        """
        names: list[str] = []
        for entry in sorted(self.packages_dir.iterdir()):
            if not entry.is_dir():
                continue
            if not entry.name.startswith("@"):
                names.append(entry.name)
                continue

            for child in sorted(entry.iterdir()):
                if child.is_dir():
                    names.append(f"{entry.name}/{child.name}")
        return names

    def _verify_inside(self, path: Path, pkg: str) -> None:
        packages_dir = self.packages_dir.resolve()
        resolved = path.resolve()
        if resolved == packages_dir or packages_dir not in resolved.parents:
            logger.warning(f"Path traversal attempt detected in package name: {pkg[:50]!r}")
            raise MalformedInputError(f"Invalid package name: {pkg[:50]!r}", field="package")
