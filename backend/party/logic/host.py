"""
Deterministic host succession.

There is no election message. Every client that observes a room whose
``host_id`` has no player entry computes the same heir from the sorted
identities of the human players, and only the heir writes. Bots never
inherit: no client runs on their behalf. If two clients act on different
snapshots and pick different heirs, the last write wins and the loser
re-evaluates on its next observation, finding it is no longer the heir.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from party.logic.state import RoomDocument


def needs_succession(room: RoomDocument) -> bool:
    """True when the host entry is gone but human players remain."""
    return bool(room.human_ids) and room.host_id not in room.players


def choose_heir(room: RoomDocument) -> str | None:
    """Pick the lexicographically smallest human identity, or None when only bots are left."""
    return min(room.human_ids, default=None)


def succession_patch(room: RoomDocument, my_id: str) -> dict[str, Any] | None:
    """Return the host_id patch this client should write, if it is the heir.

    Returns None when no succession is needed or when another client is the heir.
    """
    if not needs_succession(room):
        return None
    heir = choose_heir(room)
    if heir != my_id:
        return None
    return {"host_id": heir}


def is_host(room: RoomDocument, my_id: str) -> bool:
    return room.host_id == my_id and my_id in room.players
