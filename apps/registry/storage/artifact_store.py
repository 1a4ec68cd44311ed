"""Artifact storage implementation on the local filesystem.

ArtifactStore handles all tarball persistence with:
- Package namespaces shared with MetadataStore (PackageLayout)
- Filename sanitization (no nested paths, no parent-directory sequences)
- Atomic replacement so a concurrent reader never sees a torn file
- Chunked streaming in both directions

Re-uploading the same filename overwrites the previous bytes (last write wins).
"""

import logging
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path
from typing import BinaryIO

from apps.registry.constants import STREAM_CHUNK_SIZE

from .atomic import atomic_write
from .exceptions import MalformedInputError, StorageFailureError
from .layout import PackageLayout
from .schemas import ArtifactRef

logger = logging.getLogger(__name__)


class ArtifactStore:
    """Filesystem-backed artifact storage.

    Path convention: <root>/packages/<pkg>/tarballs/<filename>
    """

    def __init__(self, layout: PackageLayout, chunk_size: int = STREAM_CHUNK_SIZE):
        """Initialize store.

        Args:
            layout: Shared package layout (same root as the MetadataStore)
            chunk_size: Read size when streaming bytes in or out
        """
        self.layout = layout
        self.chunk_size = chunk_size

    def put(self, pkg: str, filename: str, data: bytes | BinaryIO) -> ArtifactRef:
        """Store artifact bytes and return a reference.

        Args:
            pkg: Package name
            filename: Artifact filename as supplied by the client
            data: Raw bytes, or a binary file-like object read in chunks

        Returns:
            ArtifactRef with sanitized filename, path, digest and size

        Raises:
            MalformedInputError: If the package name or filename is rejected
            StorageFailureError: If the bytes cannot be written
        """
        path = self.layout.artifact_path(pkg, filename)
        self.layout.ensure(pkg)

        try:
            size_bytes, digest = atomic_write(path, data, chunk_size=self.chunk_size)
        except OSError as e:
            raise StorageFailureError(f"Failed to store artifact {path}: {e}", package=pkg) from e

        logger.info(f"Stored artifact {path.name} for {pkg} ({size_bytes} bytes)")
        return ArtifactRef(
            package=pkg,
            filename=path.name,
            path=str(path),
            digest=digest,
            size_bytes=size_bytes,
            created_at=datetime.now(),
        )

    def get(self, pkg: str, filename: str) -> Path | None:
        """Locate a stored artifact.

        Returns:
            Path to the artifact, or None if it does not exist or the name
            is rejected by the layout
        """
        try:
            path = self.layout.artifact_path(pkg, filename)
        except MalformedInputError:
            return None
        if not path.is_file():
            return None
        return path

    def iter_bytes(self, path: Path) -> Iterator[bytes]:
        """Yield an artifact's bytes in chunks without buffering the whole file."""
        with path.open("rb") as handle:
            while chunk := handle.read(self.chunk_size):
                yield chunk
