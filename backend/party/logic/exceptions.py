"""Typed domain exceptions for room command failures.

Every failure a room command can report is a subclass of RoomError carrying
a SessionErrorCode. Commands validate before writing, so a raised RoomError
never leaves a partial player entry behind.
"""

from party.logic.enums import GamePhase, SessionErrorCode


class RoomError(Exception):
    """Base exception for room command failures."""

    code: SessionErrorCode = SessionErrorCode.STORE_ERROR

    def __init__(self, message: str, *, room_id: str | None = None) -> None:
        self.room_id = room_id
        super().__init__(message)


class RoomNotFoundError(RoomError):
    """Room document is missing or was deleted mid-operation."""

    code = SessionErrorCode.ROOM_NOT_FOUND

    def __init__(self, room_id: str) -> None:
        super().__init__(f"room {room_id} does not exist", room_id=room_id)


class RoomFullError(RoomError):
    """Player count has reached settings.max_players."""

    code = SessionErrorCode.ROOM_FULL

    def __init__(self, room_id: str, max_players: int) -> None:
        self.max_players = max_players
        super().__init__(f"room {room_id} is full ({max_players} players)", room_id=room_id)


class DuplicateNameError(RoomError):
    """Another player in the room already uses this name (case-insensitive)."""

    code = SessionErrorCode.NAME_TAKEN

    def __init__(self, room_id: str, name: str) -> None:
        self.name = name
        super().__init__(f"name {name!r} is already taken in room {room_id}", room_id=room_id)


class WrongPhaseError(RoomError):
    """Join attempted after the game has started."""

    code = SessionErrorCode.WRONG_PHASE

    def __init__(self, room_id: str, phase: GamePhase) -> None:
        self.phase = phase
        super().__init__(f"room {room_id} is in phase {phase.value}, not accepting players", room_id=room_id)


class NotHostError(RoomError):
    """A host-only command was issued by a non-host client."""

    code = SessionErrorCode.NOT_HOST

    def __init__(self, room_id: str, player_id: str) -> None:
        self.player_id = player_id
        super().__init__(f"player {player_id} is not the host of room {room_id}", room_id=room_id)


class InvalidTransitionError(RoomError):
    """Requested phase change is not an edge of the phase state machine."""

    code = SessionErrorCode.INVALID_TRANSITION

    def __init__(self, current: GamePhase, target: GamePhase, *, room_id: str | None = None) -> None:
        self.current = current
        self.target = target
        super().__init__(f"cannot move from {current.value} to {target.value}", room_id=room_id)


class TransientStoreError(RoomError):
    """Underlying store read or write failed."""

    code = SessionErrorCode.STORE_ERROR
