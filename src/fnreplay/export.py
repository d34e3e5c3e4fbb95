from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any

import msgspec

from .types import Elimination, Player, Replay

_FORMAT_VERSION = 1


def _player_to_obj(player: Player) -> dict[str, Any]:
    return {"id": player.id, "name": player.name, "is_bot": bool(player.is_bot)}


def _elimination_to_obj(elimination: Elimination) -> dict[str, Any]:
    return {
        "timestamp": int(elimination.timestamp),
        "eliminated": _player_to_obj(elimination.eliminated),
        "eliminator": _player_to_obj(elimination.eliminator),
        "gun_type": elimination.gun_type,
        "is_knocked": bool(elimination.is_knocked),
    }


def replay_to_obj(replay: Replay) -> dict[str, Any]:
    meta = asdict(replay.meta)
    # Never export key material.
    meta.pop("encryption_key", None)
    header = asdict(replay.header)
    header["level_names_and_times"] = [[name, int(time)] for name, time in replay.header.level_names_and_times]
    header["game_specific_data"] = list(replay.header.game_specific_data)
    return {
        "v": _FORMAT_VERSION,
        "meta": meta,
        "header": header,
        "match_stats": None if replay.match_stats is None else asdict(replay.match_stats),
        "team_match_stats": None if replay.team_match_stats is None else asdict(replay.team_match_stats),
        "eliminations": [_elimination_to_obj(elim) for elim in replay.eliminations],
    }


def dump_replay_json(replay: Replay) -> bytes:
    """Serialize a decoded replay as compact JSON with sorted keys."""
    return msgspec.json.encode(replay_to_obj(replay), order="sorted")


def dump_replay_json_file(path: Path, replay: Replay) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(dump_replay_json(replay))
