from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, TypeAlias

PlayerVariant: TypeAlias = Literal["rich", "legacy"]

BOT_DISPLAY_NAME = "Bot"


@dataclass(frozen=True, slots=True)
class SessionMeta:
    magic: int
    file_version: int
    length_in_ms: int
    network_version: int
    changelist: int
    name: str
    is_live: bool
    timestamp: int | None = None
    is_compressed: bool = False
    is_encrypted: bool = False
    encryption_key: bytes | None = field(default=None, repr=False)


@dataclass(frozen=True, slots=True)
class GameVersion:
    branch: str
    patch: int
    changelist: int
    major: int
    minor: int


@dataclass(frozen=True, slots=True)
class Header:
    magic: int
    network_version: int
    network_checksum: int
    engine_network_version: int
    game_network_protocol: int
    id: str | None
    version: GameVersion
    level_names_and_times: tuple[tuple[str, int], ...] = ()
    flags: int = 0
    game_specific_data: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Player:
    id: str = ""
    name: str = ""
    is_bot: bool = False

    @property
    def label(self) -> str:
        """Id for humans, display name for bots."""
        return self.name if self.is_bot else self.id


@dataclass(frozen=True, slots=True)
class Elimination:
    eliminated: Player
    eliminator: Player
    gun_type_id: int
    is_knocked: bool
    timestamp: int

    @property
    def gun_type(self) -> str:
        return f"{self.gun_type_id:02X}"


@dataclass(frozen=True, slots=True)
class MatchStats:
    accuracy: float
    assists: int
    eliminations: int
    weapon_damage: int
    other_damage: int
    revives: int
    damage_taken: int
    damage_to_structures: int
    materials_gathered: int
    materials_used: int
    total_traveled: int


@dataclass(frozen=True, slots=True)
class TeamMatchStats:
    placement: int
    total_players: int


@dataclass(frozen=True, slots=True)
class Replay:
    meta: SessionMeta
    header: Header
    match_stats: MatchStats | None = None
    team_match_stats: TeamMatchStats | None = None
    eliminations: tuple[Elimination, ...] = ()
