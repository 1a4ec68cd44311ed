"""Sanitizers for untrusted package names and artifact filenames.

Both functions are pure and total: any string maps to a storage key, and the
same input always maps to the same key. Parent-directory sequences are removed
before character filtering so that filtering cannot re-assemble one.

Two distinct raw names can sanitize to the same key (for example ``a b`` and
``a_b``). Callers that need an injective mapping should reject names for which
``is_canonical_package_name`` is false.
"""

import re

PARENT_DIR_SEQUENCE = ".."

# Scoped names (@scope/name) keep "@" and "/"; everything else outside this set becomes "_"
UNSAFE_PACKAGE_CHARS = re.compile(r"[^@/a-zA-Z0-9\-_.]")

PATH_SEPARATORS = re.compile(r"[/\\]")


def sanitize_package_name(name: str) -> str:
    """Map a raw package name to a filesystem-safe key.

    Args:
        name: Package name as received (e.g. ``left-pad`` or ``@scope/pkg``)

    Returns:
        Key restricted to ``@``, ``/``, alphanumerics, ``-``, ``_`` and ``.``
    """
    return UNSAFE_PACKAGE_CHARS.sub("_", name.replace(PARENT_DIR_SEQUENCE, ""))


def sanitize_filename(name: str) -> str:
    """Map a raw artifact filename to a flat, filesystem-safe name.

    Path separators are replaced so nested paths collapse into one component.
    """
    return PATH_SEPARATORS.sub("_", name.replace(PARENT_DIR_SEQUENCE, ""))


def is_canonical_package_name(name: str) -> bool:
    """Check whether sanitizing leaves the name unchanged."""
    return sanitize_package_name(name) == name
