"""Packages router.

Handles descriptor listing, retrieval and publish endpoints. Scoped names
arrive either URL-encoded (``@scope%2fpkg``) or as two path segments; the
``path`` converter accepts both.
"""

import asyncio
import json
import logging
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from apps.registry.auth import require_token
from apps.registry.core.errors import ErrorResponse
from apps.registry.routers.common import error_response
from apps.registry.storage import (
    MalformedInputError,
    MetadataStore,
    StorageFailureError,
    UploadCoordinator,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["packages"])


# =============================================================================
# Dependencies
# =============================================================================


def _get_metadata_store(request: Request) -> MetadataStore:
    return request.app.state.metadata_store


def _get_coordinator(request: Request) -> UploadCoordinator:
    return request.app.state.coordinator


# =============================================================================
# Pydantic Models
# =============================================================================


class PublishResponse(BaseModel):
    """Response for a descriptor publish."""

    ok: bool = True
    id: str


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/-/all")
async def list_packages(
    store: MetadataStore = Depends(_get_metadata_store),
) -> dict[str, Any]:
    """List every stored package with its descriptor."""
    return await asyncio.to_thread(store.list_all)


@router.get("/{pkg:path}")
async def get_package(
    pkg: str,
    store: MetadataStore = Depends(_get_metadata_store),
) -> Any:
    """Return a package descriptor.

    Missing and corrupt descriptors both map to 404 here.
    """
    lookup = await asyncio.to_thread(store.read, pkg)
    if not lookup.found:
        if lookup.corrupt:
            logger.error(f"Serving 404 for corrupt descriptor of {pkg}: {lookup.error}")
        return error_response(status.HTTP_404_NOT_FOUND, ErrorResponse.not_found("package not found"))

    return JSONResponse(content=lookup.descriptor, media_type="application/json; charset=utf-8")


@router.put(
    "/{pkg:path}",
    response_model=PublishResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_token)],
)
async def publish_package(
    pkg: str,
    request: Request,
    coordinator: UploadCoordinator = Depends(_get_coordinator),
) -> Any:
    """Publish or replace a package descriptor (stored verbatim)."""
    max_bytes: int = request.app.state.settings.max_metadata_bytes
    too_large = ErrorResponse(error="payload_too_large", reason=f"metadata exceeds {max_bytes} bytes")

    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes:
        return error_response(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, too_large)
    body = await request.body()
    if len(body) > max_bytes:
        return error_response(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, too_large)

    try:
        descriptor = json.loads(body) if body else None
    except (json.JSONDecodeError, UnicodeDecodeError):
        descriptor = None
    if not isinstance(descriptor, dict):
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            ErrorResponse(error="invalid_body", reason="expected JSON metadata"),
        )

    try:
        await coordinator.publish(pkg, descriptor)
    except MalformedInputError as e:
        return error_response(status.HTTP_400_BAD_REQUEST, ErrorResponse(error="invalid_body", reason=str(e)))
    except StorageFailureError as e:
        logger.error(f"Failed to publish {pkg}: {e}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorResponse.server_error(e))

    return PublishResponse(id=str(uuid4()))
