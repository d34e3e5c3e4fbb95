from __future__ import annotations

from dataclasses import dataclass

from .types import PlayerVariant

RICH_PLAYER_MIN_ENGINE_NETWORK_VERSION = 11
RICH_PLAYER_MIN_MAJOR = 9
RICH_PLAYER_SKIP = 85
LEGACY_SKIP_EARLY = 12
LEGACY_SKIP_SEASON_4 = 40
LEGACY_SKIP_DEFAULT = 45


@dataclass(frozen=True, slots=True)
class EliminationLayout:
    skip_bytes: int
    player_variant: PlayerVariant


def elimination_layout(engine_network_version: int, major: int, minor: int) -> EliminationLayout:
    """Pick the elimination payload layout for a build.

    Newer builds (engine network version >= 11 on release 9+) carry tagged
    player records after an 85-byte prefix; older ones carry two plain id
    strings after a prefix whose size depends on the release.
    """

    if engine_network_version >= RICH_PLAYER_MIN_ENGINE_NETWORK_VERSION and major >= RICH_PLAYER_MIN_MAJOR:
        return EliminationLayout(skip_bytes=RICH_PLAYER_SKIP, player_variant="rich")
    if major <= 4 and minor < 2:
        return EliminationLayout(skip_bytes=LEGACY_SKIP_EARLY, player_variant="legacy")
    if major == 4 and minor <= 2:
        return EliminationLayout(skip_bytes=LEGACY_SKIP_SEASON_4, player_variant="legacy")
    return EliminationLayout(skip_bytes=LEGACY_SKIP_DEFAULT, player_variant="legacy")
