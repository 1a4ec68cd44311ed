"""Atomic file replacement helpers.

Content is written to a uniquely named temporary file in the destination
directory, flushed to disk, then renamed over the final path with
``os.replace``. Readers therefore observe either the previous file or the new
one, never a partial write.
"""

import hashlib
import os
import tempfile
from pathlib import Path
from typing import BinaryIO

from apps.registry.constants import STREAM_CHUNK_SIZE, TEMP_FILE_MARKER


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


# mkstemp creates 0600 files; final files get the mode a plain open() would give them
FILE_MODE = 0o666 & ~_current_umask()


def atomic_write(
    path: Path,
    source: bytes | BinaryIO,
    chunk_size: int = STREAM_CHUNK_SIZE,
) -> tuple[int, str]:
    """Atomically replace ``path`` with ``source``.

    Args:
        path: Final destination; its parent directory must exist
        source: Raw bytes, or a binary file-like object read in chunks
        chunk_size: Read size for file-like sources

    Returns:
        (size_bytes, sha256 hex digest) of the written content

    Raises:
        OSError: If the temporary file cannot be written or renamed
    """
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=f"{path.name}{TEMP_FILE_MARKER}",
    )
    digest = hashlib.sha256()
    size = 0
    try:
        with os.fdopen(fd, "wb") as tmp_handle:
            os.fchmod(tmp_handle.fileno(), FILE_MODE)
            if isinstance(source, (bytes, bytearray, memoryview)):
                chunk = bytes(source)
                tmp_handle.write(chunk)
                digest.update(chunk)
                size = len(chunk)
            else:
                while chunk := source.read(chunk_size):
                    tmp_handle.write(chunk)
                    digest.update(chunk)
                    size += len(chunk)
            tmp_handle.flush()
            os.fsync(tmp_handle.fileno())
        os.replace(tmp_path, str(path))
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return size, digest.hexdigest()
