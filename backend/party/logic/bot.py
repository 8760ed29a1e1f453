"""
Bot progress simulation.

Pure decision-maker: given a room snapshot it returns the patch the host
should write for one bot tick. Scheduling the ticks is the host
controller's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from party.logic.enums import GamePhase, PlayerStatus
from party.logic.settings import BotConfig
from party.logic.state import Player, player_key

if TYPE_CHECKING:
    import random

    from party.logic.state import RoomDocument


@dataclass(frozen=True)
class BotTick:
    """Result of one simulation step.

    ``updates`` is a room-relative patch; ``players`` is the player mapping as
    it will look once the patch is applied.
    """

    updates: dict[str, Any] = field(default_factory=dict)
    players: dict[str, Player] = field(default_factory=dict)
    finished: tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.updates)


def bots_active(room: RoomDocument) -> bool:
    return room.phase == GamePhase.PLAYING and room.settings.enable_bots and room.round_config is not None


def advance_bot(player: Player, step: float, config: BotConfig) -> Player:
    """Move one bot forward by ``step`` progress points, finishing it at 100."""
    progress = player.progress + step
    if progress >= 100:
        return player.model_copy(
            update={
                "progress": 100,
                "status": PlayerStatus.FINISHED,
                "score": player.score + config.completion_bonus,
            },
        )
    return player.model_copy(update={"progress": progress})


def simulate_tick(room: RoomDocument, rng: random.Random, config: BotConfig | None = None) -> BotTick:
    """Advance every unfinished bot by base rate plus jitter in [0, max_jitter)."""
    round_config = room.round_config
    if round_config is None or not bots_active(room):
        return BotTick(players=dict(room.players))

    config = config or BotConfig()
    base = config.base_rate(round_config.mode)

    players = dict(room.players)
    updates: dict[str, Any] = {}
    finished: list[str] = []
    for pid in sorted(players):
        player = players[pid]
        if not player.is_bot or player.is_finished:
            continue
        moved = advance_bot(player, base + rng.random() * config.max_jitter, config)
        players[pid] = moved
        updates[player_key(pid, "progress")] = moved.progress
        if moved.is_finished:
            updates[player_key(pid, "status")] = moved.status.value
            updates[player_key(pid, "score")] = moved.score
            finished.append(pid)

    return BotTick(updates=updates, players=players, finished=tuple(finished))
