from __future__ import annotations

from pathlib import Path
from typing import Any

from construct import Construct, Float32l, FormatField, Int16sl, Int16ul, Int32sl, Int32ul, Int64sl, Int64ul
from construct.core import ConstructError

from .cipher import decrypt_ecb
from .errors import ReplayBoundsError, ReplayEncryptionError, ReplayFormatError, ReplayIOError

ID_SIZE = 16


class ByteCursor:
    """Little-endian reader over an in-memory buffer with a movable offset.

    Every read is bounds-checked and advances the offset by exactly the number
    of bytes consumed. `seek` may move past the end; the next read then fails
    with `ReplayBoundsError`.
    """

    __slots__ = ("_buffer", "_offset", "encryption_key")

    def __init__(self, data: bytes, *, offset: int = 0, encryption_key: bytes | None = None) -> None:
        self._buffer = bytes(data)
        self._offset = 0
        self.encryption_key = encryption_key
        self.seek(offset)

    @classmethod
    def from_file(cls, path: str | Path) -> ByteCursor:
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise ReplayIOError(f"cannot read replay file: {exc.strerror or exc}", context=str(path)) from exc
        return cls(data)

    def __len__(self) -> int:
        return len(self._buffer)

    def __repr__(self) -> str:
        return f"ByteCursor(offset={self._offset}, size={len(self._buffer)})"

    @property
    def buffer(self) -> bytes:
        return self._buffer

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return max(len(self._buffer) - self._offset, 0)

    @property
    def at_end(self) -> bool:
        return self._offset >= len(self._buffer)

    def seek(self, offset: int) -> None:
        offset = int(offset)
        if offset < 0:
            raise ReplayBoundsError(f"cannot seek to negative offset {offset}", offset=self._offset)
        self._offset = offset

    def skip(self, byte_count: int) -> None:
        byte_count = int(byte_count)
        if byte_count < 0:
            raise ReplayBoundsError(f"cannot skip a negative byte count ({byte_count})", offset=self._offset)
        self._offset += byte_count

    def _take(self, byte_count: int, what: str) -> bytes:
        start = self._offset
        if byte_count < 0:
            raise ReplayBoundsError(f"negative read length for {what}: {byte_count}", offset=start)
        if self.remaining < byte_count:
            raise ReplayBoundsError(
                f"read past end of buffer while reading {what}",
                offset=start,
                context=f"need {byte_count} bytes, {self.remaining} remain",
            )
        self._offset = start + byte_count
        return self._buffer[start : start + byte_count]

    def _read_field(self, field: FormatField, what: str) -> Any:
        return field.parse(self._take(field.sizeof(), what))

    def read_u16(self) -> int:
        return int(self._read_field(Int16ul, "u16"))

    def read_u32(self) -> int:
        return int(self._read_field(Int32ul, "u32"))

    def read_u64(self) -> int:
        return int(self._read_field(Int64ul, "u64"))

    def read_i16(self) -> int:
        return int(self._read_field(Int16sl, "i16"))

    def read_i32(self) -> int:
        return int(self._read_field(Int32sl, "i32"))

    def read_i64(self) -> int:
        return int(self._read_field(Int64sl, "i64"))

    def read_f32(self) -> float:
        return float(self._read_field(Float32l, "f32"))

    def read_byte(self) -> int:
        return self._take(1, "byte")[0]

    def read_bytes(self, byte_count: int) -> bytes:
        return self._take(int(byte_count), f"{int(byte_count)} raw bytes")

    def read_bool(self) -> bool:
        # Only an exact 1 is true; 2 and -1 are false.
        return self.read_i32() == 1

    def read_id(self) -> str:
        return self._take(ID_SIZE, "id").hex()

    def read_struct(self, layout: Construct, what: str = "struct") -> Any:
        """Parse a fixed-size `construct` layout at the current offset."""
        start = self._offset
        data = self._take(layout.sizeof(), what)
        try:
            return layout.parse(data)
        except ConstructError as exc:
            raise ReplayFormatError(f"failed to parse {what}: {exc}", offset=start) from exc

    def read_string(self) -> str:
        start = self._offset
        length = self.read_i32()
        if length == 0:
            return ""
        if length < 0:
            raw = self._take(-length * 2, "utf-16 string")
            # Last code unit is the terminator.
            encoding, body = "utf-16-le", raw[:-2]
        else:
            raw = self._take(length, "utf-8 string")
            encoding, body = "utf-8", raw[:-1]
        try:
            return body.decode(encoding)
        except UnicodeDecodeError as exc:
            raise ReplayFormatError(
                f"invalid {encoding} string data",
                offset=start,
                context=f"length={length}, {exc.reason}",
            ) from exc

    def read_string_list(self) -> list[str]:
        count = self.read_u32()
        return [self.read_string() for _ in range(count)]

    def read_string_u32_pairs(self) -> list[tuple[str, int]]:
        count = self.read_u32()
        out: list[tuple[str, int]] = []
        for _ in range(count):
            name = self.read_string()
            out.append((name, self.read_u32()))
        return out

    def decrypt(self, data: bytes) -> ByteCursor:
        """Decrypt `data` with the captured key into a fresh cursor at offset 0."""
        key = self.encryption_key
        if key is None:
            raise ReplayEncryptionError("no encryption key captured for this replay", offset=self._offset)
        try:
            plain = decrypt_ecb(data, key)
        except ReplayEncryptionError as exc:
            raise ReplayEncryptionError(exc.message, offset=self._offset, context=f"{len(data)} payload bytes") from exc
        return ByteCursor(plain)
