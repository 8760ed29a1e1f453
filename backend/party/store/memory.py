"""
In-process shared document store.

``InMemoryStore`` holds the single document tree that every client sees.
Each client talks to it through its own ``InMemoryStoreSession``, which owns
that client's subscriptions and disconnect actions. Dropping a session with
``disconnect()`` plays the part of a lost connection: its registered
disconnect actions are applied and its subscriptions go away.

Change notifications are delivered synchronously after each mutation, and a
subscriber is only called when the value at its path actually changed.
"""

from __future__ import annotations

import copy
import itertools
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

from party.logic.exceptions import TransientStoreError
from party.store.paths import is_related, join_path, split_path
from party.store.protocol import DisconnectAction, StoreAdapter, SubscriptionHandle

if TYPE_CHECKING:
    from collections.abc import Mapping

    from party.store.protocol import ChangeCallback

logger = structlog.get_logger()

Path = tuple[str, ...]


@dataclass
class _Subscription:
    handle: SubscriptionHandle
    parts: Path
    session_id: str
    on_change: ChangeCallback


def _normalize(value: Any) -> Any:
    """Copy a value into plain JSON-like data, dropping None entries and empty containers."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        result = {}
        for key, item in value.items():
            normalized = _normalize(item)
            if normalized is not None:
                result[str(key)] = normalized
        return result or None
    if isinstance(value, list | tuple):
        items = [_normalize(item) for item in value]
        return [item for item in items if item is not None] or None
    return value


class InMemoryStore:
    """Shared document tree with per-path subscriptions."""

    def __init__(self) -> None:
        self._root: dict[str, Any] = {}
        self._subscriptions: dict[int, _Subscription] = {}
        self._sessions: dict[str, InMemoryStoreSession] = {}
        self._ids = itertools.count(1)

    def connect(self, session_id: str | None = None) -> InMemoryStoreSession:
        """Open a new client session against this store."""
        session = InMemoryStoreSession(self, session_id or str(uuid4()))
        self._sessions[session.session_id] = session
        return session

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def snapshot(self, path: str = "") -> Any:
        """Synchronous read for tests and tooling."""
        return copy.deepcopy(self._get(split_path(path)))

    # --- Tree operations ---

    def _get(self, parts: Path) -> Any:
        node: Any = self._root
        for part in parts:
            if isinstance(node, dict):
                node = node.get(part)
            elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
                node = node[int(part)]
            else:
                return None
            if node is None:
                return None
        return node

    def _set(self, parts: Path, value: Any) -> None:
        if not parts:
            self._root = value if isinstance(value, dict) else {}
            return
        if value is None:
            self._delete(parts)
            return
        node = self._root
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    def _delete(self, parts: Path) -> None:
        """Remove a path and prune ancestors left empty."""
        trail: list[tuple[dict[str, Any], str]] = []
        node: Any = self._root
        for part in parts[:-1]:
            if not isinstance(node, dict) or not isinstance(node.get(part), dict):
                return
            trail.append((node, part))
            node = node[part]
        if not isinstance(node, dict):
            return
        node.pop(parts[-1], None)
        for parent, key in reversed(trail):
            if parent[key]:
                break
            del parent[key]

    def _apply(self, session_id: str, writes: list[tuple[Path, Any]]) -> None:
        """Apply leaf writes in order and notify every subscriber whose value changed."""
        touched = [parts for parts, _ in writes]
        affected = [
            sub for sub in self._subscriptions.values() if any(is_related(sub.parts, parts) for parts in touched)
        ]
        before = {sub.handle.subscription_id: copy.deepcopy(self._get(sub.parts)) for sub in affected}

        for parts, value in writes:
            self._set(parts, _normalize(value))

        logger.debug("store updated", session_id=session_id, paths=["/".join(p) for p in touched])
        for sub in affected:
            if sub.handle.subscription_id not in self._subscriptions:
                continue  # unsubscribed by an earlier callback
            after = self._get(sub.parts)
            if after != before[sub.handle.subscription_id]:
                self._notify(sub, after)

    def _notify(self, sub: _Subscription, value: Any) -> None:
        try:
            sub.on_change(copy.deepcopy(value))
        except Exception:
            logger.exception("subscriber callback failed", path=sub.handle.path, session_id=sub.session_id)

    def _subscribe(self, session_id: str, path: str, on_change: ChangeCallback) -> SubscriptionHandle:
        handle = SubscriptionHandle(subscription_id=next(self._ids), path=path)
        sub = _Subscription(handle=handle, parts=split_path(path), session_id=session_id, on_change=on_change)
        self._subscriptions[handle.subscription_id] = sub
        self._notify(sub, self._get(sub.parts))
        return handle

    def _unsubscribe(self, handle: SubscriptionHandle) -> None:
        self._subscriptions.pop(handle.subscription_id, None)

    def _drop_session(self, session_id: str, actions: Mapping[str, DisconnectAction]) -> None:
        for sub_id in [i for i, sub in self._subscriptions.items() if sub.session_id == session_id]:
            del self._subscriptions[sub_id]
        self._sessions.pop(session_id, None)
        if actions:
            logger.info("applying disconnect actions", session_id=session_id, paths=sorted(actions))
            self._apply(session_id, [(split_path(path), action.value) for path, action in actions.items()])


class InMemoryStoreSession(StoreAdapter):
    """One client's connection to an ``InMemoryStore``."""

    def __init__(self, store: InMemoryStore, session_id: str) -> None:
        self._store = store
        self._session_id = session_id
        self._on_disconnect: dict[str, DisconnectAction] = {}
        self._closed = False

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise TransientStoreError(f"store session {self._session_id} is closed")

    async def read(self, path: str) -> Any:
        self._ensure_open()
        return copy.deepcopy(self._store._get(split_path(path)))

    async def write(self, path: str, value: Any) -> None:
        self._ensure_open()
        self._store._apply(self._session_id, [(split_path(path), value)])

    async def patch(self, path_prefix: str, updates: Mapping[str, Any]) -> None:
        self._ensure_open()
        if not updates:
            return
        writes = [(split_path(join_path(path_prefix, subpath)), value) for subpath, value in updates.items()]
        paths = [parts for parts, _ in writes]
        for i, a in enumerate(paths):
            for b in paths[i + 1 :]:
                if is_related(a, b):
                    raise ValueError(f"overlapping patch paths: {'/'.join(a)} and {'/'.join(b)}")
        self._store._apply(self._session_id, writes)

    async def remove(self, path: str) -> None:
        await self.write(path, None)

    async def subscribe(self, path: str, on_change: ChangeCallback) -> SubscriptionHandle:
        self._ensure_open()
        return self._store._subscribe(self._session_id, path, on_change)

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        self._store._unsubscribe(handle)

    async def register_on_disconnect(self, path: str, action: DisconnectAction) -> None:
        self._ensure_open()
        self._on_disconnect[join_path(path)] = action

    async def cancel_on_disconnect(self, path: str) -> None:
        self._on_disconnect.pop(join_path(path), None)

    def disconnect(self) -> None:
        """Simulate the connection dropping: run disconnect actions and drop subscriptions."""
        if self._closed:
            return
        self._closed = True
        actions, self._on_disconnect = self._on_disconnect, {}
        self._store._drop_session(self._session_id, actions)

    async def close(self) -> None:
        """Close gracefully. Registered disconnect actions still run, as they would server-side."""
        self.disconnect()
