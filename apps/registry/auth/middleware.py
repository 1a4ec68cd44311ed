"""Authentication dependency for write endpoints.

A single shared bearer token guards publish and upload requests:
- no configured token: every request is allowed
- missing "Bearer" credentials: 401
- wrong token: 403
"""

import logging
import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)

# auto_error=False: missing credentials are reported by require_token
security = HTTPBearer(auto_error=False)


class AuthError(Exception):
    """Token check failure."""

    def __init__(self, message: str, reason: str = "unknown", status_code: int = status.HTTP_401_UNAUTHORIZED):
        self.message = message
        self.reason = reason
        self.status_code = status_code
        super().__init__(message)


def verify_token(supplied: str | None, expected: str | None) -> None:
    """Compare a supplied bearer token with the configured one.

    Raises:
        AuthError: If the token is missing or does not match
    """
    if not expected:
        return

    if not supplied:
        raise AuthError("missing Bearer token", reason="missing_credentials")

    if not secrets.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        raise AuthError("invalid token", reason="invalid_token", status_code=status.HTTP_403_FORBIDDEN)


def log_auth_failure(request: Request, reason: str) -> None:
    """Record an authentication failure."""
    logger.warning(
        f"Auth failure: {reason}",
        extra={
            "auth_failure": {
                "reason": reason,
                "path": request.url.path,
                "ip_address": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent"),
            }
        },
    )


async def require_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> None:
    """FastAPI dependency enforcing the registry token on write routes."""
    expected: str | None = request.app.state.auth_token
    supplied = credentials.credentials.strip() if credentials else None

    try:
        verify_token(supplied, expected)
    except AuthError as e:
        log_auth_failure(request, e.reason)
        raise HTTPException(
            status_code=e.status_code,
            detail={"error": "unauthorized" if e.status_code == 401 else "forbidden", "reason": e.message},
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
