"""Tarballs router.

Handles tarball upload and download. Uploads are accepted either as a
multipart ``file`` field or as the raw request body; raw bodies are spooled to
a temporary file so large tarballs are never held in memory. Downloads are
streamed in chunks.
"""

import asyncio
import logging
import re
import tempfile
from pathlib import PurePosixPath
from typing import Any, BinaryIO
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from starlette.datastructures import UploadFile

from apps.registry.auth import require_token
from apps.registry.core.errors import ErrorResponse
from apps.registry.routers.common import error_response
from apps.registry.storage import (
    ArtifactStore,
    MalformedInputError,
    StorageFailureError,
    UploadCoordinator,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tarballs"])

# Raw bodies up to this size stay in memory before spilling to disk
SPOOL_MAX_MEMORY = 1024 * 1024

# Control characters, quotes and backslashes cannot appear in a quoted header value
HEADER_UNSAFE_CHARS = re.compile(r'[\x00-\x1f\x7f"\\]')


class PayloadTooLargeError(Exception):
    """Upload body exceeded the configured limit."""


# =============================================================================
# Dependencies
# =============================================================================


def _get_artifact_store(request: Request) -> ArtifactStore:
    return request.app.state.artifact_store


def _get_coordinator(request: Request) -> UploadCoordinator:
    return request.app.state.coordinator


def _content_disposition(filename: str) -> str:
    """Attachment header for a download, RFC 5987-encoded when not plain ASCII."""
    name = HEADER_UNSAFE_CHARS.sub("_", PurePosixPath(filename).name)
    encoded = quote(name)
    if encoded != name:
        return f"attachment; filename*=utf-8''{encoded}"
    return f'attachment; filename="{name}"'


def _base_url(request: Request) -> str:
    """<scheme>://<host> the client used, unless PUBLIC_URL overrides it."""
    public_url: str | None = request.app.state.settings.public_url
    if public_url:
        return public_url
    host = request.headers.get("host") or request.url.netloc
    return f"{request.url.scheme}://{host}"


async def _spool_body(request: Request, max_bytes: int) -> BinaryIO | None:
    """Copy the raw request body into a spooled temporary file.

    Returns:
        File positioned at 0, or None for an empty body

    Raises:
        PayloadTooLargeError: If the body exceeds max_bytes
    """
    spool = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_MEMORY)
    size = 0
    try:
        async for chunk in request.stream():
            size += len(chunk)
            if size > max_bytes:
                raise PayloadTooLargeError(f"tarball exceeds {max_bytes} bytes")
            spool.write(chunk)
    except BaseException:
        spool.close()
        raise

    if size == 0:
        spool.close()
        return None
    spool.seek(0)
    return spool


async def _read_upload(request: Request, max_bytes: int) -> BinaryIO | None:
    """Tarball from a multipart ``file`` field, else from the raw body."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            return None
        size = upload.size if upload.size is not None else 0
        if size > max_bytes:
            raise PayloadTooLargeError(f"tarball exceeds {max_bytes} bytes")
        if size == 0:
            return None
        return upload.file

    return await _spool_body(request, max_bytes)


# =============================================================================
# Pydantic Models
# =============================================================================


class UploadResponse(BaseModel):
    """Response for a tarball upload."""

    ok: bool = True
    filename: str


# =============================================================================
# Endpoints
# =============================================================================


@router.put(
    "/{pkg:path}/-/{filename}",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_token)],
)
async def upload_tarball(
    pkg: str,
    filename: str,
    request: Request,
    version: str | None = Query(default=None, description="Bind to this version instead of dist-tags.latest"),
    coordinator: UploadCoordinator = Depends(_get_coordinator),
) -> Any:
    """Store a tarball and reference it from the package descriptor."""
    max_bytes: int = request.app.state.settings.max_tarball_bytes
    try:
        data = await _read_upload(request, max_bytes)
    except PayloadTooLargeError as e:
        return error_response(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            ErrorResponse(error="payload_too_large", reason=str(e)),
        )

    if data is None:
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            ErrorResponse(error="no_tarball", reason="no tarball body received"),
        )

    try:
        await coordinator.upload(pkg, filename, data, _base_url(request), version=version)
    except MalformedInputError as e:
        return error_response(status.HTTP_400_BAD_REQUEST, ErrorResponse(error="invalid_name", reason=str(e)))
    except StorageFailureError as e:
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorResponse.server_error(e))
    finally:
        data.close()

    return UploadResponse(filename=filename)


@router.get("/{pkg:path}/-/{filename}")
async def download_tarball(
    pkg: str,
    filename: str,
    store: ArtifactStore = Depends(_get_artifact_store),
) -> Any:
    """Stream a stored tarball."""
    path = await asyncio.to_thread(store.get, pkg, filename)
    if path is None:
        return error_response(status.HTTP_404_NOT_FOUND, ErrorResponse.not_found("tarball not found"))

    return StreamingResponse(
        store.iter_bytes(path),
        media_type="application/octet-stream",
        headers={"content-disposition": _content_disposition(filename)},
    )
