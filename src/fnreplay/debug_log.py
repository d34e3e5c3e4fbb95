from __future__ import annotations

from contextlib import contextmanager
import datetime as dt
import os
from pathlib import Path
from threading import Lock
from typing import Iterator

from .config import DecoderConfig

_TRACE_LOCK = Lock()
_TRACE_PATH: Path | None = None


def _format_line(event: str, fields: dict[str, object]) -> str:
    timestamp = dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds")
    parts = [timestamp, f"event={str(event).strip()}"]
    parts.extend(f"{key}={fields[key]}".replace("\n", "\\n") for key in sorted(fields))
    return " ".join(parts) + "\n"


def _swap_trace_path(path: Path | None) -> Path | None:
    global _TRACE_PATH
    with _TRACE_LOCK:
        previous = _TRACE_PATH
        _TRACE_PATH = path
    return previous


def decode_debug_log_path() -> Path | None:
    with _TRACE_LOCK:
        return _TRACE_PATH


@contextmanager
def decode_trace(config: DecoderConfig, *, source: str = "") -> Iterator[Path | None]:
    """Route decode trace lines to `config.debug_log_path` for the duration of one decode.

    The previously active trace (usually none) is restored on exit, so a later
    decode without a trace path does not write into this file.
    """

    if config.debug_log_path is None:
        yield None
        return
    path = Path(config.debug_log_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    previous = _swap_trace_path(path)
    try:
        decode_debug_log(
            "init",
            source=str(source),
            decrypt_events=config.decrypt_events,
            pid=int(os.getpid()),
        )
        yield path
    finally:
        _swap_trace_path(previous)


def decode_debug_log(event: str, **fields: object) -> None:
    with _TRACE_LOCK:
        path = _TRACE_PATH
        if path is None:
            return
        with path.open("a", encoding="utf-8") as handle:
            handle.write(_format_line(event, fields))
