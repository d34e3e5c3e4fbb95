from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, TypeAlias

DecryptMode: TypeAlias = Literal["always", "when_flagged"]

DECRYPT_MODES: tuple[DecryptMode, ...] = ("always", "when_flagged")


@dataclass(frozen=True, slots=True)
class DecoderConfig:
    # "always" attempts decryption for every event chunk, even when the session
    # metadata did not flag the replay as encrypted.
    decrypt_events: DecryptMode = "always"
    debug_log_path: Path | None = None

    def __post_init__(self) -> None:
        if self.decrypt_events not in DECRYPT_MODES:
            raise ValueError(f"unknown decrypt_events mode: {self.decrypt_events!r}")
