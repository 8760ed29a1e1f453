"""
Round countdown derived from the shared start timestamp.

Nobody writes timer ticks. The host writes ``start_time`` once per round and
every client computes the remaining time locally from it, so all clients
cross zero near the same wall-clock deadline.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from party.logic.enums import GamePhase

if TYPE_CHECKING:
    from party.logic.state import RoomDocument

# Returns epoch milliseconds.
Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)


def remaining_seconds(duration: float, start_time: int, now: int) -> float:
    """Seconds left in a round, clamped to [0, duration].

    ``start_time`` may lie in the future during the lead-in, in which case the
    full duration remains.
    """
    elapsed = (now - start_time) / 1000
    return min(duration, max(0.0, duration - elapsed))


def display_seconds(duration: float, start_time: int, now: int) -> int:
    return math.ceil(remaining_seconds(duration, start_time, now))


def room_remaining_seconds(room: RoomDocument, now: int) -> float | None:
    """Remaining time of the room's current round, or None when no countdown runs."""
    config = room.round_config
    if config is None or room.start_time is None:
        return None
    return remaining_seconds(config.duration, room.start_time, now)


def deadline_reached(room: RoomDocument, now: int) -> bool:
    """True when the room is PLAYING and its round countdown has hit zero."""
    if room.phase != GamePhase.PLAYING:
        return False
    remaining = room_remaining_seconds(room, now)
    return remaining is not None and remaining <= 0
