"""
String enum definitions for party game concepts.
"""

from enum import StrEnum


class GamePhase(StrEnum):
    """Room lifecycle stages driven by the host."""

    WAITING_ROOM = "WAITING_ROOM"
    TRANSITION = "TRANSITION"
    PLAYING = "PLAYING"
    ROUND_RESULT = "ROUND_RESULT"
    GAME_OVER = "GAME_OVER"


class GameMode(StrEnum):
    """Activity played during a round."""

    REPAIR = "REPAIR"
    TYPING = "TYPING"


class PlayerStatus(StrEnum):
    """Per-round progress state of a player."""

    IDLE = "IDLE"
    PLAYING = "PLAYING"
    FINISHED = "FINISHED"


class Language(StrEnum):
    """Word-list languages available for typing rounds."""

    EN = "EN"
    TR = "TR"


class SessionErrorCode(StrEnum):
    """Error codes surfaced to the UI layer for failed room commands."""

    ROOM_NOT_FOUND = "room_not_found"
    ROOM_FULL = "room_full"
    NAME_TAKEN = "name_taken"
    WRONG_PHASE = "wrong_phase"
    NOT_HOST = "not_host"
    INVALID_TRANSITION = "invalid_transition"
    STORE_ERROR = "store_error"
