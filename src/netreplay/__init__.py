from __future__ import annotations

from .chunks import CHUNK_HEADER_SIZE, Chunk, ChunkType, find_header_chunk, iter_chunks, read_chunk_header
from .cipher import decrypt_ecb
from .errors import (
    ReplayBoundsError,
    ReplayEncryptionError,
    ReplayError,
    ReplayFormatError,
    ReplayIOError,
    ReplayTruncatedWarning,
)
from .reader import ByteCursor

__all__ = [
    "CHUNK_HEADER_SIZE",
    "ByteCursor",
    "Chunk",
    "ChunkType",
    "ReplayBoundsError",
    "ReplayEncryptionError",
    "ReplayError",
    "ReplayFormatError",
    "ReplayIOError",
    "ReplayTruncatedWarning",
    "decrypt_ecb",
    "find_header_chunk",
    "iter_chunks",
    "read_chunk_header",
]
