"""User router.

Emulates ``npm adduser``: any credentials are accepted and the server's write
token is returned. Development use only.
"""

import logging
from uuid import uuid4

from fastapi import APIRouter, Request, status
from pydantic import BaseModel

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


class LoginResponse(BaseModel):
    """Response for the adduser/login endpoint."""

    ok: str = "created"
    token: str


@router.api_route(
    "/-/user/org.couchdb.user:{name}",
    methods=["PUT", "POST"],
    response_model=LoginResponse,
    status_code=status.HTTP_201_CREATED,
)
async def login(name: str, request: Request) -> LoginResponse:
    """Return the registry token to the client."""
    logger.info(f"Issued registry token to {name!r}")
    token = request.app.state.auth_token or str(uuid4())
    return LoginResponse(token=token)
