from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator
import warnings

from construct import Int32sl, Int32ul, Struct

from .errors import ReplayFormatError, ReplayTruncatedWarning
from .reader import ByteCursor

CHUNK_HEADER = Struct(
    "chunk_type" / Int32ul,
    "size" / Int32sl,
)
CHUNK_HEADER_SIZE = CHUNK_HEADER.sizeof()


class ChunkType(IntEnum):
    HEADER = 0
    REPLAY_DATA = 1
    CHECKPOINT = 2
    EVENT = 3


@dataclass(frozen=True, slots=True)
class Chunk:
    chunk_type: int
    size: int
    payload_start: int

    @property
    def end(self) -> int:
        return self.payload_start + self.size

    @property
    def known_type(self) -> ChunkType | None:
        try:
            return ChunkType(self.chunk_type)
        except ValueError:
            return None


def read_chunk_header(cursor: ByteCursor) -> Chunk:
    start = cursor.offset
    raw = cursor.read_struct(CHUNK_HEADER, "chunk header")
    size = int(raw.size)
    if size < 0:
        raise ReplayFormatError(
            f"chunk declares a negative size ({size})",
            offset=start,
            context=f"chunk_type={int(raw.chunk_type)}",
        )
    return Chunk(chunk_type=int(raw.chunk_type), size=size, payload_start=cursor.offset)


def find_header_chunk(cursor: ByteCursor) -> Chunk:
    """Locate the first header chunk, reading chunk headers back to back.

    Non-header payloads are not skipped: the header is always the first chunk
    after the session metadata.
    """

    while cursor.remaining >= CHUNK_HEADER_SIZE:
        chunk = read_chunk_header(cursor)
        if chunk.chunk_type == ChunkType.HEADER:
            return chunk
    raise ReplayFormatError("header chunk missing", offset=cursor.offset)


def iter_chunks(cursor: ByteCursor) -> Iterator[Chunk]:
    """Yield every remaining chunk, then reposition to its declared end.

    The cursor lands on `payload_start + size` after each chunk no matter how
    many bytes the consumer read. A chunk that runs past the buffer end is
    still handed to the consumer; afterwards it is reported with
    `ReplayTruncatedWarning` and the walk ends.
    """

    while not cursor.at_end:
        chunk = read_chunk_header(cursor)
        yield chunk
        if chunk.end > len(cursor):
            warnings.warn(
                f"chunk at offset {chunk.payload_start} declares {chunk.size} bytes "
                f"but only {len(cursor) - chunk.payload_start} remain; stopping.",
                category=ReplayTruncatedWarning,
                stacklevel=2,
            )
        cursor.seek(chunk.end)
