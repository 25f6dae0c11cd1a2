"""Streaming content digests for duplicate detection."""

import hashlib
import threading
from pathlib import Path

from declutter.errors import HashFailure

# Read size per chunk; a file is never loaded whole
CHUNK_SIZE = 64 * 1024


def content_hash(
    path: str | Path,
    algorithm: str = "md5",
    chunk_size: int = CHUNK_SIZE,
    cancel: threading.Event | None = None,
) -> str:
    """
    Hex digest of a file's content, read in fixed-size chunks.

    Args:
        path: File to hash
        algorithm: Any name accepted by ``hashlib.new``
        chunk_size: Bytes per read
        cancel: Optional event checked between chunks

    Returns:
        Hex digest string

    Raises:
        HashFailure: If the file cannot be opened or read, or hashing was cancelled
    """
    digest = hashlib.new(algorithm)
    try:
        with open(path, "rb") as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                if cancel is not None and cancel.is_set():
                    raise HashFailure(str(path), "cancelled")
                digest.update(chunk)
    except OSError as e:
        raise HashFailure(str(path), e.strerror or str(e)) from e
    return digest.hexdigest()
