"""
Pydantic models for the session layer.
"""

from pydantic import BaseModel


class RoomListing(BaseModel):
    """Public room information for the lobby listing."""

    room_id: str
    host_name: str
    player_count: int
    max_players: int
    total_rounds: int
    target_score: int
