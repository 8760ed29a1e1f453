"""Slash-separated store paths."""

ROOMS_ROOT = "rooms"


def split_path(path: str) -> tuple[str, ...]:
    return tuple(part for part in path.split("/") if part)


def join_path(*parts: str) -> str:
    return "/".join(p for part in parts for p in split_path(part))


def room_path(room_id: str) -> str:
    return join_path(ROOMS_ROOT, room_id)


def is_related(a: tuple[str, ...], b: tuple[str, ...]) -> bool:
    """True when one path is an ancestor of (or equal to) the other."""
    shorter = min(len(a), len(b))
    return a[:shorter] == b[:shorter]
