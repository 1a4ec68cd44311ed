"""Health check router.

npm clients call GET /-/ping to check a registry is reachable.
"""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter(tags=["health"])


@router.get("/-/ping", response_class=PlainTextResponse)
async def ping() -> PlainTextResponse:
    """Liveness check."""
    return PlainTextResponse("pong", headers={"cache-control": "no-cache"})
