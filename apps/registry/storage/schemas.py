"""Storage schemas for artifact references and descriptor lookups.

Descriptors themselves stay plain dicts: the store persists them verbatim and
does not validate their internal schema.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class LookupStatus(str, Enum):
    """Outcome of reading a package descriptor."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    CORRUPT = "corrupt"


class DescriptorLookup(BaseModel):
    """Tagged result of MetadataStore.read.

    Keeps "never published" and "stored but unreadable" apart so callers can
    log corruption; the HTTP layer folds both into a 404.
    """

    package: str = Field(..., description="Package name as requested")
    status: LookupStatus = Field(..., description="found, not_found or corrupt")
    descriptor: dict[str, Any] | None = Field(
        default=None,
        description="Parsed descriptor, set only when status is found",
    )
    error: str | None = Field(
        default=None,
        description="Parser error, set only when status is corrupt",
    )

    @property
    def found(self) -> bool:
        return self.status == LookupStatus.FOUND

    @property
    def corrupt(self) -> bool:
        return self.status == LookupStatus.CORRUPT

    def descriptor_or_none(self) -> dict[str, Any] | None:
        """Fold not_found and corrupt into None."""
        return self.descriptor if self.found else None


class ArtifactRef(BaseModel):
    """Reference to an artifact stored under a package.

    Path format: <root>/packages/<pkg>/tarballs/<filename>
    """

    package: str = Field(..., description="Package name as requested")
    filename: str = Field(..., description="Sanitized filename the bytes are stored under")
    path: str = Field(..., description="Absolute or root-relative storage path")
    digest: str = Field(..., description="SHA256 hash of the stored bytes")
    size_bytes: int = Field(..., ge=0, description="Size of the artifact in bytes")
    created_at: datetime = Field(..., description="When the artifact was written")


class UploadResult(BaseModel):
    """Result of binding an uploaded artifact to a descriptor version."""

    ok: bool = True
    filename: str = Field(..., description="Filename as supplied by the client")
    version: str = Field(..., description="Descriptor version the artifact was bound to")
    tarball: str = Field(..., description="Locator written to versions[version].dist.tarball")
    artifact: ArtifactRef
