"""Authentication module for the registry API.

Shared bearer token check for publish and upload endpoints.
"""

from .middleware import AuthError, require_token, verify_token

__all__ = [
    "AuthError",
    "require_token",
    "verify_token",
]
