"""Helpers shared by the routers."""

from fastapi.responses import JSONResponse

from apps.registry.core.errors import ErrorResponse


def error_response(status_code: int, body: ErrorResponse) -> JSONResponse:
    """Render an ErrorResponse with the given HTTP status."""
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))
