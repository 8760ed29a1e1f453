"""Round completion, win conditions and score derivation."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from party.logic.settings import ScoringConfig

if TYPE_CHECKING:
    from collections.abc import Mapping

    from party.logic.state import Player


def all_finished(players: Mapping[str, Player]) -> bool:
    """True when the room has players and every one of them is FINISHED."""
    return bool(players) and all(p.is_finished for p in players.values())


def winners(players: Mapping[str, Player], target_score: int) -> list[Player]:
    """Players at or above the target score, in identity order. Ties are not resolved."""
    return [players[pid] for pid in sorted(players) if players[pid].score >= target_score]


def has_winner(players: Mapping[str, Player], target_score: int) -> bool:
    return any(p.score >= target_score for p in players.values())


def standings(players: Mapping[str, Player]) -> list[Player]:
    """Display order: descending score, identity as a stable tie-break."""
    return sorted(players.values(), key=lambda p: (-p.score, p.id))


def time_bonus(remaining_seconds: float, config: ScoringConfig | None = None) -> int:
    config = config or ScoringConfig()
    return max(0, math.ceil(remaining_seconds)) * config.time_bonus_per_second


def completion_score(
    prior_score: int,
    remaining_seconds: float,
    mode_bonus: int = 0,
    config: ScoringConfig | None = None,
) -> int:
    """Total a finishing client submits: prior + completion bonus + time bonus + mode bonus.

    The store keeps only the resulting total. Nothing re-derives it, so the
    submitted value is trusted as-is.
    """
    config = config or ScoringConfig()
    return prior_score + config.completion_bonus + time_bonus(remaining_seconds, config) + max(0, mode_bonus)
