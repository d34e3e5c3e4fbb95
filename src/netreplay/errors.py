from __future__ import annotations

from typing import Literal, TypeAlias

ReplayErrorKind: TypeAlias = Literal["io", "bounds", "format", "encryption"]


class ReplayError(ValueError):
    """Base class for every failure raised while decoding a replay.

    Carries the error `kind`, the byte `offset` the cursor was at (when known)
    and a short `context` string naming what was being read.
    """

    kind: ReplayErrorKind = "format"

    def __init__(self, message: str, *, offset: int | None = None, context: str = "") -> None:
        super().__init__(message)
        self.message = str(message)
        self.offset = offset
        self.context = str(context)

    def __str__(self) -> str:
        details: list[str] = []
        if self.offset is not None:
            details.append(f"offset={int(self.offset)}")
        if self.context:
            details.append(self.context)
        if not details:
            return self.message
        return f"{self.message} ({', '.join(details)})"


class ReplayIOError(ReplayError):
    kind = "io"


class ReplayBoundsError(ReplayError):
    kind = "bounds"


class ReplayFormatError(ReplayError):
    kind = "format"


class ReplayEncryptionError(ReplayError):
    kind = "encryption"


class ReplayTruncatedWarning(UserWarning):
    """A chunk declares more payload than the buffer holds."""
