"""Room settings, round layout and gameplay tunables."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from party.logic.enums import GameMode

MAX_PLAYERS_LIMIT = 8

REPAIR_DESCRIPTION_KEY = "htp_repair_desc"
TYPING_DESCRIPTION_KEY = "htp_type_desc"
REPAIR_DURATION_SECONDS = 20
TYPING_DURATION_SECONDS = 35


class RoomSettings(BaseModel):
    """
    Configuration chosen by the host at room creation.

    Immutable for the lifetime of the session.
    """

    model_config = ConfigDict(frozen=True)

    max_players: int = Field(default=4, ge=1, le=MAX_PLAYERS_LIMIT)
    is_private: bool = False
    enable_bots: bool = True
    total_rounds: int = Field(default=4, ge=1)
    target_score: int = Field(default=1000, ge=1)


class RoundConfig(BaseModel):
    """One timed activity in the room's fixed round sequence."""

    model_config = ConfigDict(frozen=True)

    round_number: int = Field(ge=1)
    mode: GameMode
    description: str
    duration: int = Field(ge=1)  # seconds


def generate_rounds(total: int) -> list[RoundConfig]:
    """Build the round sequence: odd rounds are REPAIR, even rounds are TYPING."""
    rounds: list[RoundConfig] = []
    for number in range(1, total + 1):
        is_odd = number % 2 != 0
        rounds.append(
            RoundConfig(
                round_number=number,
                mode=GameMode.REPAIR if is_odd else GameMode.TYPING,
                description=REPAIR_DESCRIPTION_KEY if is_odd else TYPING_DESCRIPTION_KEY,
                duration=REPAIR_DURATION_SECONDS if is_odd else TYPING_DURATION_SECONDS,
            ),
        )
    return rounds


class ScoringConfig(BaseModel):
    """Points awarded to a human player for finishing a round."""

    model_config = ConfigDict(frozen=True)

    completion_bonus: int = 50
    time_bonus_per_second: int = 2


class BotConfig(BaseModel):
    """Progress simulation parameters for bot players."""

    model_config = ConfigDict(frozen=True)

    repair_rate: float = 5
    typing_rate: float = 3
    max_jitter: float = 5
    completion_bonus: int = 50

    def base_rate(self, mode: GameMode) -> float:
        return self.repair_rate if mode == GameMode.REPAIR else self.typing_rate
