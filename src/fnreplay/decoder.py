from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re
from typing import Iterable

from construct import Float32l, Int16ul, Int32ul, Padding, Struct

from netreplay import ByteCursor, Chunk, ChunkType, ReplayError, ReplayFormatError, find_header_chunk, iter_chunks

from .config import DecoderConfig
from .debug_log import decode_debug_log, decode_trace
from .layout import elimination_layout
from .types import (
    BOT_DISPLAY_NAME,
    Elimination,
    GameVersion,
    Header,
    MatchStats,
    Player,
    Replay,
    SessionMeta,
    TeamMatchStats,
)

# .NET ticks at the Unix epoch, and the divisor the replay tooling has always
# applied to them.
TIMESTAMP_EPOCH_TICKS = 621355968000000000
TIMESTAMP_TICK_DIVISOR = 100000

FILE_VERSION_TIMESTAMP = 3
FILE_VERSION_COMPRESSION = 2
FILE_VERSION_ENCRYPTION = 6
NETWORK_VERSION_HEADER_ID = 12

PLAYER_TAG_BOT = 3
PLAYER_TAG_NAMED_BOT = 16

EVENT_GROUP_ELIMINATION = "playerElim"
EVENT_META_MATCH_STATS = "AthenaMatchStats"
EVENT_META_TEAM_STATS = "AthenaMatchTeamStats"
EVENT_META_ENCRYPTION_KEY = "PlayerStateEncryptionKey"

BRANCH_RE = re.compile(r"\+\+Fortnite\+Release-(?P<major>\d+)\.(?P<minor>\d*)")

_META_HEAD = Struct(
    "magic" / Int32ul,
    "file_version" / Int32ul,
    "length_in_ms" / Int32ul,
    "network_version" / Int32ul,
    "changelist" / Int32ul,
)

_HEADER_HEAD = Struct(
    "magic" / Int32ul,
    "network_version" / Int32ul,
    "network_checksum" / Int32ul,
    "engine_network_version" / Int32ul,
    "game_network_protocol" / Int32ul,
)

_HEADER_BUILD = Struct(
    Padding(4),
    "patch" / Int16ul,
    "changelist" / Int32ul,
)

_EVENT_TIMING = Struct(
    "start_time" / Int32ul,
    Padding(4),
    "length" / Int32ul,
)

_TEAM_MATCH_STATS = Struct(
    Padding(4),
    "placement" / Int32ul,
    "total_players" / Int32ul,
)

_MATCH_STATS = Struct(
    Padding(4),
    "accuracy" / Float32l,
    "assists" / Int32ul,
    "eliminations" / Int32ul,
    "weapon_damage" / Int32ul,
    "other_damage" / Int32ul,
    "revives" / Int32ul,
    "damage_taken" / Int32ul,
    "damage_to_structures" / Int32ul,
    "materials_gathered" / Int32ul,
    "materials_used" / Int32ul,
    "total_traveled" / Int32ul,
)


def parse_branch(branch: str, *, patch: int = 0, changelist: int = 0) -> GameVersion:
    """Build a `GameVersion` from a `++Fortnite+Release-<major>.<minor>` label."""
    match = BRANCH_RE.search(branch)
    if match is None or not match.group("minor"):
        raise ReplayFormatError(f"unrecognized branch label: {branch!r}")
    return GameVersion(
        branch=branch,
        patch=int(patch),
        changelist=int(changelist),
        major=int(match.group("major")),
        minor=int(match.group("minor")),
    )


def capture_timestamp(raw_ticks: int) -> int:
    if raw_ticks < TIMESTAMP_EPOCH_TICKS:
        raise ReplayFormatError(f"capture timestamp {raw_ticks} precedes the tick epoch")
    return ((raw_ticks - TIMESTAMP_EPOCH_TICKS) // TIMESTAMP_TICK_DIVISOR) & 0xFFFF_FFFF


class ReplayDecoder:
    """Decode one replay buffer into session metadata, header and match events.

    Call `decode()` once; it runs the metadata block, the header pass and the
    event pass in order and returns the accumulated `Replay`.
    """

    def __init__(self, cursor: ByteCursor, *, config: DecoderConfig | None = None) -> None:
        self.cursor = cursor
        self.config = config or DecoderConfig()
        self.meta: SessionMeta | None = None
        self.header: Header | None = None
        self.match_stats: MatchStats | None = None
        self.team_match_stats: TeamMatchStats | None = None
        self.eliminations: list[Elimination] = []

    @classmethod
    def from_bytes(cls, data: bytes, *, config: DecoderConfig | None = None) -> ReplayDecoder:
        return cls(ByteCursor(data), config=config)

    @classmethod
    def from_file(cls, path: str | Path, *, config: DecoderConfig | None = None) -> ReplayDecoder:
        return cls(ByteCursor.from_file(path), config=config)

    def decode(self) -> Replay:
        self.decode_meta()
        self.decode_chunks()
        return self.result()

    def result(self) -> Replay:
        if self.meta is None:
            raise ReplayFormatError("session metadata not decoded")
        if self.header is None:
            raise ReplayFormatError("header chunk missing")
        return Replay(
            meta=self.meta,
            header=self.header,
            match_stats=self.match_stats,
            team_match_stats=self.team_match_stats,
            eliminations=tuple(self.eliminations),
        )

    def decode_meta(self) -> SessionMeta:
        cursor = self.cursor
        head = cursor.read_struct(_META_HEAD, "session metadata")
        file_version = int(head.file_version)
        name = cursor.read_string().rstrip()
        is_live = cursor.read_bool()

        timestamp = None
        if file_version >= FILE_VERSION_TIMESTAMP:
            ticks_offset = cursor.offset
            raw_ticks = cursor.read_u64()
            try:
                timestamp = capture_timestamp(raw_ticks)
            except ReplayFormatError as exc:
                raise ReplayFormatError(exc.message, offset=ticks_offset, context="session metadata") from exc

        is_compressed = False
        if file_version >= FILE_VERSION_COMPRESSION:
            is_compressed = cursor.read_bool()

        is_encrypted = False
        encryption_key = None
        if file_version >= FILE_VERSION_ENCRYPTION:
            is_encrypted = cursor.read_bool()
            if is_encrypted:
                key_length = cursor.read_u32()
                encryption_key = cursor.read_bytes(key_length)
                cursor.encryption_key = encryption_key

        self.meta = SessionMeta(
            magic=int(head.magic),
            file_version=file_version,
            length_in_ms=int(head.length_in_ms),
            network_version=int(head.network_version),
            changelist=int(head.changelist),
            name=name,
            is_live=is_live,
            timestamp=timestamp,
            is_compressed=is_compressed,
            is_encrypted=is_encrypted,
            encryption_key=encryption_key,
        )
        decode_debug_log(
            "meta",
            file_version=file_version,
            name=name,
            encrypted=is_encrypted,
            compressed=is_compressed,
            offset=cursor.offset,
        )
        return self.meta

    def decode_chunks(self) -> None:
        cursor = self.cursor
        header_chunk = find_header_chunk(cursor)
        self.header = self.decode_header()
        cursor.seek(header_chunk.end)

        for chunk in iter_chunks(cursor):
            decode_debug_log("chunk", chunk_type=chunk.chunk_type, size=chunk.size, offset=chunk.payload_start)
            if chunk.chunk_type == ChunkType.EVENT:
                self.decode_event(chunk)

    def decode_header(self) -> Header:
        cursor = self.cursor
        head = cursor.read_struct(_HEADER_HEAD, "header")
        network_version = int(head.network_version)

        header_id = None
        if network_version > NETWORK_VERSION_HEADER_ID:
            header_id = cursor.read_id()

        build = cursor.read_struct(_HEADER_BUILD, "header build")
        branch_offset = cursor.offset
        branch = cursor.read_string()
        level_names_and_times = cursor.read_string_u32_pairs()
        flags = cursor.read_u32()
        game_specific_data = cursor.read_string_list()

        try:
            version = parse_branch(branch, patch=int(build.patch), changelist=int(build.changelist))
        except ReplayFormatError as exc:
            raise ReplayFormatError(exc.message, offset=branch_offset, context="header branch") from exc

        self.header = Header(
            magic=int(head.magic),
            network_version=network_version,
            network_checksum=int(head.network_checksum),
            engine_network_version=int(head.engine_network_version),
            game_network_protocol=int(head.game_network_protocol),
            id=header_id,
            version=version,
            level_names_and_times=tuple(level_names_and_times),
            flags=int(flags),
            game_specific_data=tuple(game_specific_data),
        )
        decode_debug_log(
            "header",
            branch=branch,
            major=version.major,
            minor=version.minor,
            engine_network_version=self.header.engine_network_version,
        )
        return self.header

    def _event_cursor(self, payload: bytes) -> ByteCursor:
        meta = self.meta
        if self.config.decrypt_events == "when_flagged" and meta is not None and not meta.is_encrypted:
            return ByteCursor(payload)
        return self.cursor.decrypt(payload)

    def decode_event(self, chunk: Chunk | None = None) -> None:
        cursor = self.cursor
        cursor.read_string()
        group = cursor.read_string()
        metadata = cursor.read_string()
        timing = cursor.read_struct(_EVENT_TIMING, "event timing")
        start_time = int(timing.start_time)
        payload = cursor.read_bytes(int(timing.length))
        data = self._event_cursor(payload)

        decode_debug_log("event", group=group, metadata=metadata, start_time=start_time, length=len(payload))
        try:
            if group == EVENT_GROUP_ELIMINATION:
                self.decode_elimination(data, start_time)
            elif metadata == EVENT_META_MATCH_STATS:
                self.match_stats = self.decode_match_stats(data)
            elif metadata == EVENT_META_TEAM_STATS:
                self.team_match_stats = self.decode_team_match_stats(data)
            elif metadata == EVENT_META_ENCRYPTION_KEY:
                pass
            else:
                decode_debug_log("skip_event", group=group, metadata=metadata)
        except ReplayError as exc:
            where = f"event group={group!r} metadata={metadata!r}"
            if chunk is not None:
                where += f" in chunk at offset {chunk.payload_start}"
            context = f"{exc.context}; {where}" if exc.context else where
            raise type(exc)(exc.message, offset=exc.offset, context=context) from exc

    def decode_elimination(self, data: ByteCursor, timestamp: int) -> Elimination:
        header = self.header
        if header is None:
            raise ReplayFormatError("elimination decoded before the header", offset=data.offset)

        layout = elimination_layout(header.engine_network_version, header.version.major, header.version.minor)
        data.skip(layout.skip_bytes)
        if layout.player_variant == "rich":
            eliminated = self.decode_player(data)
            eliminator = self.decode_player(data)
        else:
            eliminated = Player(id=data.read_string())
            eliminator = Player(id=data.read_string())

        gun_type_id = data.read_byte()
        is_knocked = data.read_bool()

        elimination = Elimination(
            eliminated=eliminated,
            eliminator=eliminator,
            gun_type_id=gun_type_id,
            is_knocked=is_knocked,
            timestamp=int(timestamp),
        )
        self.eliminations.append(elimination)
        decode_debug_log(
            "elimination",
            timestamp=elimination.timestamp,
            eliminator=eliminator.label,
            eliminated=eliminated.label,
            gun_type=elimination.gun_type,
            knocked=is_knocked,
        )
        return elimination

    @staticmethod
    def decode_player(data: ByteCursor) -> Player:
        tag = data.read_byte()
        if tag == PLAYER_TAG_BOT:
            return Player(name=BOT_DISPLAY_NAME, is_bot=True)
        if tag == PLAYER_TAG_NAMED_BOT:
            return Player(name=data.read_string(), is_bot=True)
        data.skip(1)
        return Player(id=data.read_id())

    @staticmethod
    def decode_team_match_stats(data: ByteCursor) -> TeamMatchStats:
        raw = data.read_struct(_TEAM_MATCH_STATS, "team match stats")
        stats = TeamMatchStats(placement=int(raw.placement), total_players=int(raw.total_players))
        decode_debug_log("team_match_stats", placement=stats.placement, total_players=stats.total_players)
        return stats

    @staticmethod
    def decode_match_stats(data: ByteCursor) -> MatchStats:
        raw = data.read_struct(_MATCH_STATS, "match stats")
        stats = MatchStats(
            accuracy=float(raw.accuracy),
            assists=int(raw.assists),
            eliminations=int(raw.eliminations),
            weapon_damage=int(raw.weapon_damage),
            other_damage=int(raw.other_damage),
            revives=int(raw.revives),
            damage_taken=int(raw.damage_taken),
            damage_to_structures=int(raw.damage_to_structures),
            materials_gathered=int(raw.materials_gathered),
            materials_used=int(raw.materials_used),
            total_traveled=int(raw.total_traveled),
        )
        decode_debug_log("match_stats", eliminations=stats.eliminations, accuracy=f"{stats.accuracy:.4f}")
        return stats


def decode_replay(data: bytes, *, config: DecoderConfig | None = None) -> Replay:
    config = config or DecoderConfig()
    with decode_trace(config, source="<bytes>"):
        return ReplayDecoder.from_bytes(data, config=config).decode()


def decode_replay_file(path: str | Path, *, config: DecoderConfig | None = None) -> Replay:
    config = config or DecoderConfig()
    with decode_trace(config, source=str(path)):
        try:
            return ReplayDecoder.from_file(path, config=config).decode()
        except ReplayError as exc:
            decode_debug_log("decode_failed", path=str(path), kind=exc.kind, error=str(exc))
            raise


@dataclass(frozen=True, slots=True)
class DecodeOutcome:
    path: Path
    replay: Replay | None = None
    error: ReplayError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def decode_replay_files(paths: Iterable[str | Path], *, config: DecoderConfig | None = None) -> list[DecodeOutcome]:
    """Decode each file on its own; a failing file does not stop the rest."""
    out: list[DecodeOutcome] = []
    for path in paths:
        path = Path(path)
        try:
            replay = decode_replay_file(path, config=config)
        except ReplayError as exc:
            out.append(DecodeOutcome(path=path, error=exc))
            continue
        out.append(DecodeOutcome(path=path, replay=replay))
    return out
