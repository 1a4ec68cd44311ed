"""API Routers package.

Registration order matters: the catch-all ``/{pkg:path}`` routes in
``packages`` must come after every fixed ``/-/...`` route and after the
``/{pkg}/-/{filename}`` tarball routes.
"""

from . import health, packages, tarballs, users

__all__ = [
    "health",
    "packages",
    "tarballs",
    "users",
]
