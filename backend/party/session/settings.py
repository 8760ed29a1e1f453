"""Client-side configuration via environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings


class PartySettings(BaseSettings):
    model_config = {"env_prefix": "PARTY_"}

    # --- Phase timing ---
    lead_in_ms: int = Field(default=4000, ge=0)  # start_time offset written on round start
    transition_seconds: float = Field(default=3, ge=0)
    round_result_seconds: float = Field(default=5, ge=0)
    game_over_seconds: float = Field(default=10, ge=0)

    # --- Local ticks ---
    host_tick_seconds: float = Field(default=1.0, gt=0)
    bot_tick_seconds: float = Field(default=1.0, gt=0)
    display_tick_seconds: float = Field(default=0.1, gt=0)
    reaper_interval_seconds: float = Field(default=30, gt=0)

    # --- Rooms ---
    word_count: int = Field(default=300, ge=1)
    max_code_attempts: int = Field(default=20, ge=1)

    log_dir: str | None = None
