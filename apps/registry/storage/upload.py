"""Upload coordination: bind an uploaded tarball to a descriptor version.

UploadCoordinator owns no persistent state. For one upload it:
1. stores the artifact (ArtifactStore.put)
2. loads the descriptor, or starts a fresh one
3. resolves the target version (explicit, else the injected resolver)
4. points versions[version].dist.tarball at the artifact
5. writes the descriptor back atomically

Steps 2-5 for one package run under a per-package lock, so concurrent uploads
and publishes for the same package never lose each other's updates. There is
no rollback: if step 5 fails the artifact stays stored.
"""

import asyncio
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, BinaryIO
from urllib.parse import quote

from apps.registry.constants import (
    FALLBACK_VERSION,
    FIELD_DIST,
    FIELD_DIST_TAGS,
    FIELD_TARBALL,
    FIELD_VERSIONS,
    LATEST_TAG,
    URL_COMPONENT_SAFE,
)
from apps.registry.observability.logger import get_logger, package_context

from .artifact_store import ArtifactStore
from .exceptions import RegistryStorageError, StorageFailureError
from .locks import KeyedLock
from .metadata_store import MetadataStore, empty_descriptor
from .schemas import UploadResult

logger = get_logger(__name__)

VersionResolver = Callable[[Mapping[str, Any]], str]


def resolve_latest_or_fallback(descriptor: Mapping[str, Any]) -> str:
    """Version pointed to by dist-tags.latest, or "0.0.0" when there is none."""
    dist_tags = descriptor.get(FIELD_DIST_TAGS)
    if isinstance(dist_tags, Mapping):
        latest = dist_tags.get(LATEST_TAG)
        if latest:
            return str(latest)
    return FALLBACK_VERSION


def build_tarball_url(base_url: str, pkg: str, filename: str) -> str:
    """Canonical locator: <scheme>://<host>/<pkg>/-/<filename>, both URL-escaped.

    Escaping matches JavaScript's encodeURIComponent, so "@scope/pkg" becomes
    "%40scope%2Fpkg".
    """
    return "{}/{}/-/{}".format(
        base_url.rstrip("/"),
        quote(pkg, safe=URL_COMPONENT_SAFE),
        quote(filename, safe=URL_COMPONENT_SAFE),
    )


def bind_tarball(descriptor: dict[str, Any], version: str, tarball: str) -> dict[str, Any]:
    """Set versions[version].dist.tarball, creating missing levels in place."""
    versions = descriptor.get(FIELD_VERSIONS)
    if not isinstance(versions, dict):
        versions = descriptor[FIELD_VERSIONS] = {}

    record = versions.get(version)
    if not isinstance(record, dict):
        record = versions[version] = {}

    dist = record.get(FIELD_DIST)
    if not isinstance(dist, dict):
        dist = record[FIELD_DIST] = {}

    dist[FIELD_TARBALL] = tarball
    return descriptor


class UploadCoordinator:
    """Orchestrates artifact uploads and descriptor publishes."""

    def __init__(
        self,
        metadata: MetadataStore,
        artifacts: ArtifactStore,
        resolve_version: VersionResolver = resolve_latest_or_fallback,
        locks: KeyedLock | None = None,
    ):
        """Initialize coordinator.

        Args:
            metadata: Descriptor store
            artifacts: Artifact store sharing the same storage root
            resolve_version: Picks the version an upload binds to when the
                request does not name one
            locks: Per-package lock map (a fresh one by default)
        """
        self.metadata = metadata
        self.artifacts = artifacts
        self.resolve_version = resolve_version
        self.locks = locks or KeyedLock()

    async def upload(
        self,
        pkg: str,
        filename: str,
        data: bytes | BinaryIO,
        base_url: str,
        version: str | None = None,
    ) -> UploadResult:
        """Store an artifact and reference it from the package descriptor.

        Args:
            pkg: Package name as received
            filename: Artifact filename as received
            data: Artifact bytes or a binary stream
            base_url: "<scheme>://<host>" used to build the tarball locator
            version: Explicit target version; the resolver is used when None

        Returns:
            UploadResult with the bound version and tarball locator

        Raises:
            MalformedInputError: If the package name or filename is rejected
            StorageFailureError: If any storage step fails (no rollback)
        """
        key = self.metadata.layout.package_key(pkg)
        with package_context(pkg):
            return await self._store_and_bind(key, pkg, filename, data, base_url, version)

    async def _store_and_bind(
        self,
        key: str,
        pkg: str,
        filename: str,
        data: bytes | BinaryIO,
        base_url: str,
        version: str | None,
    ) -> UploadResult:
        started = time.monotonic()
        logger.upload_started(pkg, filename)

        try:
            async with self.locks.hold(key):
                artifact = await asyncio.to_thread(self.artifacts.put, pkg, filename, data)

                lookup = await asyncio.to_thread(self.metadata.read, pkg)
                if lookup.corrupt:
                    logger.warning(
                        f"Replacing corrupt descriptor for {pkg}",
                        extra_data={"package": pkg, "error": lookup.error},
                    )
                descriptor = lookup.descriptor if lookup.found else empty_descriptor(pkg)

                target = version or self.resolve_version(descriptor)
                tarball = build_tarball_url(base_url, pkg, filename)
                bind_tarball(descriptor, target, tarball)

                await asyncio.to_thread(self.metadata.write, pkg, descriptor)
        except RegistryStorageError as e:
            logger.upload_failed(pkg, filename, str(e), e.category.value)
            raise
        except OSError as e:
            failure = StorageFailureError(f"Upload of {filename} to {pkg} failed: {e}", package=pkg)
            logger.upload_failed(pkg, filename, str(failure), failure.category.value)
            raise failure from e

        logger.upload_completed(
            pkg,
            filename,
            target,
            duration_ms=int((time.monotonic() - started) * 1000),
            size_bytes=artifact.size_bytes,
        )
        return UploadResult(filename=filename, version=target, tarball=tarball, artifact=artifact)

    async def publish(self, pkg: str, descriptor: Mapping[str, Any]) -> Path:
        """Store a descriptor verbatim.

        Returns:
            Path of the written descriptor

        Raises:
            MalformedInputError: If the descriptor or name is rejected
            StorageFailureError: If the write fails
        """
        key = self.metadata.layout.package_key(pkg)
        with package_context(pkg):
            async with self.locks.hold(key):
                path = await asyncio.to_thread(self.metadata.write, pkg, descriptor)

            logger.descriptor_published(pkg, str(path))
        return path
