"""FastAPI application entry point.

Mini npm-style registry server with endpoints for:
- Descriptor listing, retrieval and publish
- Tarball upload and streamed download
- Ping and a development login that hands out the write token

Storage lives under STORAGE_DIR (see apps.registry.config). Not hardened for
production use: there is one shared token and no rate limiting.
"""

import logging
import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from apps.registry.config import RegistrySettings, load_settings, resolve_token
from apps.registry.observability.logger import clear_context, configure_logging, get_logger, set_context
from apps.registry.routers import health, packages, tarballs, users
from apps.registry.storage import (
    ArtifactStore,
    MetadataStore,
    PackageLayout,
    UploadCoordinator,
)

logger = logging.getLogger(__name__)
access_logger = get_logger("apps.registry.access")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


def build_coordinator(settings: RegistrySettings) -> UploadCoordinator:
    """Wire the stores for one storage root."""
    layout = PackageLayout(settings.storage_dir, strict_names=settings.strict_names)
    return UploadCoordinator(MetadataStore(layout), ArtifactStore(layout))


def create_app(settings: RegistrySettings | None = None) -> FastAPI:
    """Build the registry application.

    Args:
        settings: Explicit settings (default: load from the environment)
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        configure_logging(settings.log_level, settings.log_format)

        logger.info("=" * 60)
        logger.info("Package Registry - API Server Starting")
        logger.info("=" * 60)

        settings.storage_dir.mkdir(parents=True, exist_ok=True)
        coordinator = build_coordinator(settings)

        app.state.settings = settings
        app.state.coordinator = coordinator
        app.state.metadata_store = coordinator.metadata
        app.state.artifact_store = coordinator.artifacts
        app.state.auth_token = resolve_token(settings)

        logger.info(f"Environment: {settings.environment}")
        logger.info(f"Storage dir: {settings.storage_dir}")
        logger.info(f"Strict package names: {settings.strict_names}")

        yield

        logger.info("API Server shutting down...")

    app = FastAPI(
        title="Package Registry API",
        description="Filesystem-backed npm-style package registry",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=3600,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # type: ignore[no-untyped-def]
        """Tag the request, add security headers and log the outcome."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        set_context(request_id=request_id)
        started = time.monotonic()
        try:
            response = await call_next(request)
        finally:
            clear_context()

        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        response.headers["X-Request-ID"] = request_id

        access_logger.request_completed(
            request.method,
            request.url.path,
            response.status_code,
            int((time.monotonic() - started) * 1000),
            request_id=request_id,
            client=request.client.host if request.client else None,
        )
        return response

    @app.exception_handler(HTTPException)
    async def registry_http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Return dict details (e.g. auth errors) as the top-level body."""
        if isinstance(exc.detail, dict):
            return JSONResponse(status_code=exc.status_code, content=exc.detail, headers=exc.headers)
        return await http_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler with request correlation."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]

        logger.error(
            f"Unhandled exception [request_id={request_id}]: {exc}",
            exc_info=True,
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
            },
        )

        content = {"error": "server_error", "request_id": request_id}
        if settings.is_development:
            content["message"] = str(exc)
            content["type"] = type(exc).__name__
        return JSONResponse(status_code=500, content=content)

    # Fixed /-/ routes and tarball routes before the /{pkg:path} catch-alls
    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(tarballs.router)
    app.include_router(packages.router)

    return app


app = create_app()


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    _settings = load_settings()
    uvicorn.run(
        "apps.registry.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.is_development,
    )
