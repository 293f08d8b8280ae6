"""Gzip detection, decompression and deterministic compression."""

import gzip
import logging
import zlib
from typing import Tuple

import config
from .errors import CompressionError

logger = logging.getLogger(__name__)


def is_gzip(data: bytes) -> bool:
    """Check for the gzip magic number at offset 0."""
    return len(data) >= 2 and bytes(data[:2]) == config.GZIP_MAGIC


def decompress(data: bytes) -> Tuple[bytes, bool]:
    """Inflate gzip-wrapped input, pass anything else through.

    Args:
        data: Raw file bytes, gzip-wrapped or not

    Returns:
        Tuple of (decompressed bytes, was_gzipped)

    Raises:
        CompressionError: If the magic is present but the stream is corrupt
    """
    if not is_gzip(data):
        return bytes(data), False

    try:
        out = gzip.decompress(bytes(data))
    except (OSError, EOFError, zlib.error) as e:
        raise CompressionError(f"Corrupted gzip stream: {e}") from e

    logger.debug("Decompressed %d bytes to %d bytes", len(data), len(out))
    return out, True


def compress(data: bytes) -> bytes:
    """Gzip-compress data.

    Level and mtime are fixed so identical input gives identical output.
    """
    return gzip.compress(bytes(data), compresslevel=config.GZIP_COMPRESSLEVEL, mtime=0)
