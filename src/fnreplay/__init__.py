from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fnreplay")
except PackageNotFoundError:  # pragma: no cover
    # Allow running from source (e.g. `PYTHONPATH=src`) without installed package metadata.
    __version__ = "0.0.0+dev"

from .config import DecoderConfig
from .decoder import DecodeOutcome, ReplayDecoder, decode_replay, decode_replay_file, decode_replay_files, parse_branch
from .export import dump_replay_json, dump_replay_json_file, replay_to_obj
from .layout import EliminationLayout, elimination_layout
from .types import Elimination, GameVersion, Header, MatchStats, Player, Replay, SessionMeta, TeamMatchStats

__all__ = [
    "DecodeOutcome",
    "DecoderConfig",
    "Elimination",
    "EliminationLayout",
    "GameVersion",
    "Header",
    "MatchStats",
    "Player",
    "Replay",
    "ReplayDecoder",
    "SessionMeta",
    "TeamMatchStats",
    "decode_replay",
    "decode_replay_file",
    "decode_replay_files",
    "dump_replay_json",
    "dump_replay_json_file",
    "elimination_layout",
    "parse_branch",
    "replay_to_obj",
]
