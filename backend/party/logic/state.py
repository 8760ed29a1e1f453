"""
Snapshot models of the shared room document.

A RoomDocument is parsed from whatever the store returned for ``rooms/<id>``.
The store drops empty mappings and sequences, so every collection field has a
default. Snapshots are frozen; changes are expressed as patch mappings built
by the pure functions in ``party.logic`` and applied through the store.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from party.logic.enums import GamePhase, Language, PlayerStatus
from party.logic.settings import RoomSettings, RoundConfig  # noqa: TC001

logger = structlog.get_logger()


class Player(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    avatar: str = ""
    score: int = 0
    progress: float = Field(default=0, ge=0, le=100)
    status: PlayerStatus = PlayerStatus.IDLE
    is_bot: bool = False

    @property
    def is_finished(self) -> bool:
        return self.status == PlayerStatus.FINISHED


class RoomDocument(BaseModel):
    """The shared record describing one game session."""

    model_config = ConfigDict(frozen=True)

    id: str
    host_id: str
    settings: RoomSettings
    players: dict[str, Player] = Field(default_factory=dict)
    phase: GamePhase = GamePhase.WAITING_ROOM
    current_round: int = 0
    rounds: list[RoundConfig] = Field(default_factory=list)
    start_time: int | None = None  # epoch milliseconds
    words: list[str] = Field(default_factory=list)
    lang: Language = Language.EN

    @field_validator("players", mode="before")
    @classmethod
    def _drop_partial_players(cls, value: Any) -> Any:
        """Skip entries left behind by a per-player write that landed after the player was removed."""
        if not isinstance(value, dict):
            return value
        players = {}
        for player_id, entry in value.items():
            if isinstance(entry, dict) and not ("id" in entry and "name" in entry):
                logger.warning("dropping partial player entry", player_id=player_id, fields=sorted(entry))
                continue
            players[player_id] = entry
        return players

    @classmethod
    def from_snapshot(cls, raw: dict[str, Any] | None) -> RoomDocument | None:
        """Parse a store snapshot, returning None when the room is absent."""
        if not raw:
            return None
        return cls.model_validate(raw)

    def to_snapshot(self) -> dict[str, Any]:
        """Serialize into the plain JSON-like tree stored under ``rooms/<id>``."""
        return self.model_dump(mode="json", exclude_none=True)

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def human_ids(self) -> list[str]:
        """Identities of players with a client behind them, sorted."""
        return sorted(pid for pid, player in self.players.items() if not player.is_bot)

    @property
    def has_humans(self) -> bool:
        return any(not player.is_bot for player in self.players.values())

    @property
    def is_full(self) -> bool:
        return self.player_count >= self.settings.max_players

    @property
    def sorted_player_ids(self) -> list[str]:
        return sorted(self.players)

    @property
    def host(self) -> Player | None:
        return self.players.get(self.host_id)

    @property
    def round_config(self) -> RoundConfig | None:
        """Configuration of the current round, or None if the index is out of range."""
        if 0 <= self.current_round < len(self.rounds):
            return self.rounds[self.current_round]
        return None

    @property
    def is_last_round(self) -> bool:
        return self.current_round + 1 >= len(self.rounds)

    def name_taken(self, name: str) -> bool:
        """Check for a case-insensitive, whitespace-trimmed name collision."""
        wanted = normalize_name(name)
        return any(normalize_name(p.name) == wanted for p in self.players.values())


def normalize_name(name: str) -> str:
    return name.strip().casefold()


def player_key(player_id: str, field: str | None = None) -> str:
    """Room-relative store path of a player entry or one of its fields."""
    if field is None:
        return f"players/{player_id}"
    return f"players/{player_id}/{field}"
