"""
Phase state machine for a room.

Each ``enter_*`` function checks that the move is an edge of the machine and
returns the room-relative patch that performs it. Entering the phase the room
is already in returns None, which makes duplicate triggers (a timer firing
twice, the deadline and the all-finished check racing) harmless.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from party.logic.enums import GamePhase, PlayerStatus
from party.logic.exceptions import InvalidTransitionError
from party.logic.progress import has_winner
from party.logic.state import player_key

if TYPE_CHECKING:
    from collections.abc import Sequence

    from party.logic.state import RoomDocument

ALLOWED_TRANSITIONS: dict[GamePhase, frozenset[GamePhase]] = {
    GamePhase.WAITING_ROOM: frozenset({GamePhase.TRANSITION}),
    GamePhase.TRANSITION: frozenset({GamePhase.PLAYING}),
    GamePhase.PLAYING: frozenset({GamePhase.ROUND_RESULT}),
    GamePhase.ROUND_RESULT: frozenset({GamePhase.TRANSITION, GamePhase.GAME_OVER}),
    GamePhase.GAME_OVER: frozenset({GamePhase.WAITING_ROOM}),
}


def can_transition(current: GamePhase, target: GamePhase) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def _check(room: RoomDocument, target: GamePhase) -> bool:
    """Return False for a no-op (already in target), True for a legal move, raise otherwise."""
    if room.phase == target:
        return False
    if not can_transition(room.phase, target):
        raise InvalidTransitionError(room.phase, target, room_id=room.id)
    return True


def enter_transition(
    room: RoomDocument,
    round_index: int,
    words: Sequence[str],
    now: int,
    lead_in_ms: int,
) -> dict[str, Any] | None:
    """Start round ``round_index``: set the countdown epoch, share words, reset player progress.

    Scores are carried over. ``words`` is only stored for rounds that need it;
    pass an empty sequence otherwise and the field is cleared.
    """
    if room.phase == GamePhase.TRANSITION:
        if room.current_round == round_index:
            return None
        raise InvalidTransitionError(room.phase, GamePhase.TRANSITION, room_id=room.id)
    if not 0 <= round_index < len(room.rounds):
        raise ValueError(f"round index {round_index} out of range for {len(room.rounds)} rounds")
    _check(room, GamePhase.TRANSITION)

    updates: dict[str, Any] = {
        "phase": GamePhase.TRANSITION.value,
        "current_round": round_index,
        "start_time": now + lead_in_ms,
        "words": list(words) if words else None,
    }
    for pid in room.players:
        updates[player_key(pid, "status")] = PlayerStatus.PLAYING.value
        updates[player_key(pid, "progress")] = 0
    return updates


def enter_playing(room: RoomDocument) -> dict[str, Any] | None:
    if not _check(room, GamePhase.PLAYING):
        return None
    return {"phase": GamePhase.PLAYING.value}


def enter_round_result(room: RoomDocument) -> dict[str, Any] | None:
    """End the round. Scores already hold every point earned in it."""
    if not _check(room, GamePhase.ROUND_RESULT):
        return None
    return {"phase": GamePhase.ROUND_RESULT.value}


def phase_after_result(room: RoomDocument) -> GamePhase:
    """GAME_OVER when someone reached the target score or the last round is done, else TRANSITION."""
    if has_winner(room.players, room.settings.target_score) or room.is_last_round:
        return GamePhase.GAME_OVER
    return GamePhase.TRANSITION


def enter_game_over(room: RoomDocument) -> dict[str, Any] | None:
    if not _check(room, GamePhase.GAME_OVER):
        return None
    return {"phase": GamePhase.GAME_OVER.value}


def enter_waiting_room(room: RoomDocument) -> dict[str, Any] | None:
    """Reset the room for another game: round, timer, words and every player's score."""
    if not _check(room, GamePhase.WAITING_ROOM):
        return None
    updates: dict[str, Any] = {
        "phase": GamePhase.WAITING_ROOM.value,
        "current_round": 0,
        "start_time": None,
        "words": None,
    }
    for pid in room.players:
        updates[player_key(pid, "score")] = 0
        updates[player_key(pid, "progress")] = 0
        updates[player_key(pid, "status")] = PlayerStatus.IDLE.value
    return updates
