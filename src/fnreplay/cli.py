from __future__ import annotations

from pathlib import Path

import typer

from netreplay import ReplayError

from .config import DecoderConfig
from .decoder import decode_replay_file, decode_replay_files
from .export import dump_replay_json, dump_replay_json_file
from .types import Elimination, Replay

app = typer.Typer(add_completion=False, no_args_is_help=True)

_GATE_HELP = "only decrypt event payloads when the replay metadata flags encryption"
_DEBUG_LOG_HELP = "append a key=value decode trace to this file"


def _config(gate_decryption: bool, debug_log: Path | None) -> DecoderConfig:
    return DecoderConfig(
        decrypt_events="when_flagged" if gate_decryption else "always",
        debug_log_path=debug_log,
    )


def _decode_or_exit(path: Path, config: DecoderConfig) -> Replay:
    try:
        return decode_replay_file(path, config=config)
    except ReplayError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1)


def format_elimination(elimination: Elimination) -> str:
    return f"[{elimination.timestamp}]: {elimination.eliminator.id} eliminated {elimination.eliminated.id}"


def format_summary(replay: Replay) -> list[str]:
    meta = replay.meta
    version = replay.header.version
    lines = [
        f"name: {meta.name}",
        f"length: {meta.length_in_ms} ms",
        f"file_version={meta.file_version} network_version={meta.network_version} changelist={meta.changelist}",
        f"live={meta.is_live} compressed={meta.is_compressed} encrypted={meta.is_encrypted}",
        f"timestamp: {meta.timestamp if meta.timestamp is not None else 'none'}",
        f"build: {version.major}.{version.minor} (branch={version.branch}, patch={version.patch})",
        f"engine_network_version={replay.header.engine_network_version}",
        f"eliminations: {len(replay.eliminations)} ({sum(1 for e in replay.eliminations if e.is_knocked)} knocks)",
    ]
    team = replay.team_match_stats
    if team is not None:
        lines.append(f"placement: {team.placement}/{team.total_players}")
    stats = replay.match_stats
    if stats is not None:
        lines.append(
            f"stats: accuracy={stats.accuracy:.1%} eliminations={stats.eliminations} assists={stats.assists} "
            f"revives={stats.revives}"
        )
        lines.append(
            f"damage: weapon={stats.weapon_damage} other={stats.other_damage} taken={stats.damage_taken} "
            f"structures={stats.damage_to_structures}"
        )
        lines.append(
            f"materials: gathered={stats.materials_gathered} used={stats.materials_used} "
            f"traveled={stats.total_traveled}"
        )
    return lines


@app.command("eliminations")
def cmd_eliminations(
    path: Path = typer.Argument(..., help="replay file"),
    gate_decryption: bool = typer.Option(False, "--gate-decryption", help=_GATE_HELP),
    debug_log: Path | None = typer.Option(None, "--debug-log", help=_DEBUG_LOG_HELP),
) -> None:
    """Print one line per elimination, in replay order."""
    replay = _decode_or_exit(path, _config(gate_decryption, debug_log))
    for elimination in replay.eliminations:
        typer.echo(format_elimination(elimination))


@app.command("summary")
def cmd_summary(
    path: Path = typer.Argument(..., help="replay file"),
    gate_decryption: bool = typer.Option(False, "--gate-decryption", help=_GATE_HELP),
    debug_log: Path | None = typer.Option(None, "--debug-log", help=_DEBUG_LOG_HELP),
) -> None:
    """Print session metadata, build and match statistics."""
    replay = _decode_or_exit(path, _config(gate_decryption, debug_log))
    for line in format_summary(replay):
        typer.echo(line)


@app.command("dump")
def cmd_dump(
    path: Path = typer.Argument(..., help="replay file"),
    out: Path | None = typer.Option(None, "--out", help="write JSON here instead of stdout"),
    gate_decryption: bool = typer.Option(False, "--gate-decryption", help=_GATE_HELP),
    debug_log: Path | None = typer.Option(None, "--debug-log", help=_DEBUG_LOG_HELP),
) -> None:
    """Dump the decoded replay as JSON."""
    replay = _decode_or_exit(path, _config(gate_decryption, debug_log))
    if out is None:
        typer.echo(dump_replay_json(replay).decode("utf-8"))
        return
    dump_replay_json_file(out, replay)
    typer.echo(f"wrote {out}")


@app.command("batch")
def cmd_batch(
    paths: list[Path] = typer.Argument(..., help="replay files"),
    gate_decryption: bool = typer.Option(False, "--gate-decryption", help=_GATE_HELP),
    debug_log: Path | None = typer.Option(None, "--debug-log", help=_DEBUG_LOG_HELP),
) -> None:
    """Decode several replays; failures are reported per file."""
    outcomes = decode_replay_files(paths, config=_config(gate_decryption, debug_log))
    failed = 0
    for outcome in outcomes:
        if outcome.replay is not None:
            typer.echo(f"ok    {outcome.path}  eliminations={len(outcome.replay.eliminations)}")
        else:
            failed += 1
            typer.echo(f"fail  {outcome.path}  [{outcome.error.kind}] {outcome.error}", err=True)
    typer.echo(f"decoded {len(outcomes) - failed}/{len(outcomes)} replays")
    if failed:
        raise typer.Exit(code=1)


def main() -> None:
    app()
