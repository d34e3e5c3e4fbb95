from __future__ import annotations

import pytest

from fnreplay import DecoderConfig, Player, ReplayDecoder, decode_replay, decode_replay_file, decode_replay_files
from fnreplay.decoder import capture_timestamp, parse_branch
from netreplay import ByteCursor, ReplayBoundsError, ReplayEncryptionError, ReplayFormatError, ReplayTruncatedWarning
from replay_builder import (
    KEY,
    TICK_EPOCH,
    bot_player,
    chunk,
    event_chunk,
    header_payload,
    human_player,
    legacy_elimination,
    match_stats,
    meta_block,
    named_bot_player,
    replay_bytes,
    rich_elimination,
    team_stats,
)

ELIMINATED_ID = bytes.fromhex("0123456789abcdef0123456789abcdef")
ELIMINATOR_ID = bytes.fromhex("fedcba9876543210fedcba9876543210")


def _decode_with_key(blob: bytes, *, config: DecoderConfig | None = None):  # noqa: ANN202
    return ReplayDecoder(ByteCursor(blob, encryption_key=KEY), config=config).decode()


def test_decode_single_elimination_end_to_end() -> None:
    blob = replay_bytes(
        event_chunk(
            group="playerElim",
            metadata="versionedEvent",
            start_time=123_456,
            plain=rich_elimination(
                human_player(ELIMINATED_ID),
                human_player(ELIMINATOR_ID),
                gun_type=0x0B,
                knocked=True,
            ),
        ),
    )
    replay = _decode_with_key(blob)

    assert replay.meta.file_version == 1
    assert replay.meta.timestamp is None
    assert replay.header.engine_network_version == 11
    assert (replay.header.version.major, replay.header.version.minor) == (9, 40)
    assert len(replay.eliminations) == 1
    elim = replay.eliminations[0]
    assert elim.eliminated == Player(id=ELIMINATED_ID.hex())
    assert elim.eliminator == Player(id=ELIMINATOR_ID.hex())
    assert elim.gun_type == "0B"
    assert elim.is_knocked is True
    assert elim.timestamp == 123_456


def test_metadata_optional_fields_by_file_version() -> None:
    ticks = TICK_EPOCH + 1_234 * 100_000 + 99
    blob = replay_bytes(
        meta=meta_block(
            file_version=6,
            name="Replay 42   ",
            is_live=True,
            timestamp_ticks=ticks,
            compressed=True,
            encryption_key=KEY,
        ),
    )
    replay = decode_replay(blob)
    meta = replay.meta
    assert meta.name == "Replay 42"
    assert meta.is_live is True
    assert meta.timestamp == 1_234
    assert meta.is_compressed is True
    assert meta.is_encrypted is True
    assert meta.encryption_key == KEY
    assert replay.eliminations == ()


def test_metadata_key_from_file_decrypts_events() -> None:
    blob = replay_bytes(
        event_chunk(
            group="AthenaMatchTeamStats",
            metadata="AthenaMatchTeamStats",
            start_time=5,
            plain=team_stats(3, 100),
        ),
        meta=meta_block(file_version=6, encryption_key=KEY),
    )
    replay = decode_replay(blob)
    assert replay.team_match_stats is not None
    assert replay.team_match_stats.placement == 3
    assert replay.team_match_stats.total_players == 100


def test_capture_timestamp_constants() -> None:
    assert capture_timestamp(TICK_EPOCH) == 0
    assert capture_timestamp(TICK_EPOCH + 100_000 * 7 + 5) == 7
    # Truncated to 32 bits.
    assert capture_timestamp(TICK_EPOCH + 100_000 * (2**32 + 9)) == 9
    assert capture_timestamp(TICK_EPOCH + 100_000 * (2**32 - 1)) == 2**32 - 1
    with pytest.raises(ReplayFormatError, match="precedes"):
        capture_timestamp(TICK_EPOCH - 1)


def test_header_fields_and_identifier() -> None:
    blob = replay_bytes(
        header=header_payload(
            network_version=14,
            header_id=ELIMINATED_ID,
            engine_network_version=16,
            branch="++Fortnite+Release-12.30",
            patch=7,
            changelist=12_345,
            levels=(("Athena_Terrain", 0), ("Apollo_Terrain", 15)),
            flags=5,
            game_data=("SubGame_Athena", "Playlist_DefaultSolo"),
        ),
    )
    header = decode_replay(blob).header
    assert header.network_version == 14
    assert header.id == ELIMINATED_ID.hex()
    assert header.network_checksum == 0xDEADBEEF
    assert header.version.branch == "++Fortnite+Release-12.30"
    assert header.version.patch == 7
    assert header.version.changelist == 12_345
    assert (header.version.major, header.version.minor) == (12, 30)
    assert header.level_names_and_times == (("Athena_Terrain", 0), ("Apollo_Terrain", 15))
    assert header.flags == 5
    assert header.game_specific_data == ("SubGame_Athena", "Playlist_DefaultSolo")


def test_header_without_identifier_below_network_version_13() -> None:
    header = decode_replay(replay_bytes(header=header_payload(network_version=12))).header
    assert header.id is None


def test_parse_branch() -> None:
    version = parse_branch("++Fortnite+Release-12.30", patch=1, changelist=2)
    assert (version.major, version.minor, version.patch, version.changelist) == (12, 30, 1, 2)
    assert parse_branch("prefix ++Fortnite+Release-4.2-CL-123").minor == 2


@pytest.mark.parametrize("branch", ["++Fortnite+Main", "++Fortnite+Release-12.", ""])
def test_bad_branch_is_fatal(branch: str) -> None:
    with pytest.raises(ReplayFormatError, match="branch"):
        decode_replay(replay_bytes(header=header_payload(branch=branch)))


def test_missing_header_is_fatal() -> None:
    with pytest.raises(ReplayFormatError, match="header chunk missing"):
        decode_replay(meta_block())


def test_legacy_layout_engine_10_release_9() -> None:
    blob = replay_bytes(
        event_chunk(
            group="playerElim",
            metadata="",
            start_time=900,
            plain=legacy_elimination(45, "victim-id", "killer-id", gun_type=0x2A, knocked=False),
        ),
        header=header_payload(engine_network_version=10),
    )
    elim = _decode_with_key(blob).eliminations[0]
    assert elim.eliminated == Player(id="victim-id")
    assert elim.eliminator == Player(id="killer-id")
    assert elim.gun_type == "2A"
    assert elim.is_knocked is False
    assert elim.timestamp == 900


@pytest.mark.parametrize(
    ("branch", "skip"),
    [
        ("++Fortnite+Release-4.1", 12),
        ("++Fortnite+Release-4.2", 40),
        ("++Fortnite+Release-3.5", 45),
    ],
)
def test_legacy_layout_skip_sizes(branch: str, skip: int) -> None:
    blob = replay_bytes(
        event_chunk(
            group="playerElim",
            metadata="",
            start_time=1,
            plain=legacy_elimination(skip, "a", "b", gun_type=1, knocked=True),
        ),
        header=header_payload(engine_network_version=4, branch=branch),
    )
    elim = _decode_with_key(blob).eliminations[0]
    assert (elim.eliminated.id, elim.eliminator.id, elim.is_knocked) == ("a", "b", True)


def test_rich_player_bot_variants() -> None:
    blob = replay_bytes(
        event_chunk(
            group="playerElim",
            metadata="",
            start_time=10,
            plain=rich_elimination(bot_player(), named_bot_player("Bandit"), gun_type=0xFF, knocked=False),
        ),
        event_chunk(
            group="playerElim",
            metadata="",
            start_time=20,
            plain=rich_elimination(named_bot_player("Raven"), human_player(ELIMINATOR_ID), gun_type=3, knocked=True),
        ),
    )
    first, second = _decode_with_key(blob).eliminations
    assert first.eliminated == Player(name="Bot", is_bot=True)
    assert first.eliminator == Player(name="Bandit", is_bot=True)
    assert first.eliminator.label == "Bandit"
    assert first.gun_type == "FF"
    assert second.eliminated.label == "Raven"
    assert second.eliminator == Player(id=ELIMINATOR_ID.hex())
    assert [e.timestamp for e in (first, second)] == [10, 20]


def test_match_stats_last_write_wins() -> None:
    blob = replay_bytes(
        event_chunk(group="AthenaMatchStats", metadata="AthenaMatchStats", start_time=1, plain=match_stats(0.25, 1, 2)),
        event_chunk(
            group="AthenaMatchStats",
            metadata="AthenaMatchStats",
            start_time=2,
            plain=match_stats(0.5, 3, 4, 500, 60, 1, 210, 3400, 900, 850, 123_000),
        ),
        event_chunk(group="AthenaMatchTeamStats", metadata="AthenaMatchTeamStats", start_time=3, plain=team_stats(9, 100)),
        event_chunk(group="AthenaMatchTeamStats", metadata="AthenaMatchTeamStats", start_time=4, plain=team_stats(1, 99)),
    )
    replay = _decode_with_key(blob)
    stats = replay.match_stats
    assert stats is not None
    assert stats.accuracy == 0.5
    assert (stats.assists, stats.eliminations, stats.weapon_damage, stats.other_damage) == (3, 4, 500, 60)
    assert (stats.revives, stats.damage_taken, stats.damage_to_structures) == (1, 210, 3400)
    assert (stats.materials_gathered, stats.materials_used, stats.total_traveled) == (900, 850, 123_000)
    assert replay.team_match_stats is not None
    assert (replay.team_match_stats.placement, replay.team_match_stats.total_players) == (1, 99)


def test_unhandled_events_and_chunks_are_ignored() -> None:
    blob = replay_bytes(
        chunk(1, b"\x00" * 32),
        event_chunk(group="PlayerStateEncryptionKey", metadata="PlayerStateEncryptionKey", start_time=1, plain=b"k" * 32),
        chunk(2, b"checkpoint"),
        event_chunk(group="ZoneUpdate", metadata="SafeZoneUpdate", start_time=2, plain=b"zone"),
        chunk(77, b"mystery"),
        chunk(0, header_payload(branch="not a branch")),
        event_chunk(group="playerElim", metadata="", start_time=3, plain=rich_elimination(bot_player(), bot_player(), gun_type=2, knocked=False)),
    )
    replay = _decode_with_key(blob)
    assert replay.match_stats is None
    assert replay.team_match_stats is None
    assert [e.timestamp for e in replay.eliminations] == [3]


def test_event_chunk_with_trailing_slack_keeps_alignment() -> None:
    payload = b"".join(
        [
            event_chunk(group="playerElim", metadata="", start_time=7, plain=rich_elimination(bot_player(), bot_player(), gun_type=1, knocked=True))[8:],
            b"\xee" * 11,
        ]
    )
    blob = replay_bytes(
        chunk(3, payload),
        event_chunk(group="playerElim", metadata="", start_time=8, plain=rich_elimination(bot_player(), bot_player(), gun_type=2, knocked=False)),
    )
    assert [e.timestamp for e in _decode_with_key(blob).eliminations] == [7, 8]


def test_events_fail_without_captured_key() -> None:
    blob = replay_bytes(
        event_chunk(group="playerElim", metadata="", start_time=1, plain=rich_elimination(bot_player(), bot_player(), gun_type=1, knocked=False)),
    )
    with pytest.raises(ReplayEncryptionError, match="no encryption key"):
        decode_replay(blob)


def test_gated_decryption_reads_plain_payloads() -> None:
    blob = replay_bytes(
        event_chunk(
            group="playerElim",
            metadata="",
            start_time=42,
            plain=rich_elimination(bot_player(), human_player(ELIMINATOR_ID), gun_type=0x10, knocked=False),
            key=None,
        ),
    )
    replay = decode_replay(blob, config=DecoderConfig(decrypt_events="when_flagged"))
    assert replay.eliminations[0].eliminator.id == ELIMINATOR_ID.hex()
    assert replay.eliminations[0].gun_type == "10"


def test_decoder_config_rejects_unknown_mode() -> None:
    with pytest.raises(ValueError, match="decrypt_events"):
        DecoderConfig(decrypt_events="sometimes")  # type: ignore[arg-type]


def test_payload_errors_carry_event_context() -> None:
    blob = replay_bytes(
        event_chunk(group="playerElim", metadata="", start_time=1, plain=b"\x00" * 16),
    )
    with pytest.raises(ReplayBoundsError, match="playerElim") as excinfo:
        _decode_with_key(blob)
    assert excinfo.value.kind == "bounds"
    assert "chunk at offset" in excinfo.value.context


def test_decode_replay_files_isolates_failures(tmp_path) -> None:  # noqa: ANN001
    good = tmp_path / "good.replay"
    good.write_bytes(replay_bytes())
    bad = tmp_path / "bad.replay"
    bad.write_bytes(meta_block())
    missing = tmp_path / "missing.replay"

    outcomes = decode_replay_files([good, bad, missing])
    assert [outcome.ok for outcome in outcomes] == [True, False, False]
    assert outcomes[0].replay is not None
    assert outcomes[1].error is not None and outcomes[1].error.kind == "format"
    assert outcomes[2].error is not None and outcomes[2].error.kind == "io"


def test_decode_replay_file_roundtrip(tmp_path) -> None:  # noqa: ANN001
    path = tmp_path / "match.replay"
    path.write_bytes(replay_bytes(meta=meta_block(file_version=6, encryption_key=KEY)))
    replay = decode_replay_file(path)
    assert replay.header.version.major == 9


def test_event_chunk_declaring_more_than_file_holds_is_still_decoded() -> None:
    payload = event_chunk(
        group="playerElim",
        metadata="",
        start_time=31,
        plain=rich_elimination(bot_player(), human_player(ELIMINATOR_ID), gun_type=6, knocked=True),
    )[8:]
    blob = replay_bytes(chunk(3, payload, size=len(payload) + 50))
    with pytest.warns(ReplayTruncatedWarning, match="remain; stopping"):
        replay = _decode_with_key(blob)
    assert [(e.timestamp, e.eliminator.id, e.gun_type) for e in replay.eliminations] == [(31, ELIMINATOR_ID.hex(), "06")]
