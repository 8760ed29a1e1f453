"""Abstract interface to the shared document store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

# Receives a snapshot of the subscribed subtree, or None when it is absent.
ChangeCallback = Callable[[Any], None]


@dataclass(frozen=True)
class SubscriptionHandle:
    subscription_id: int
    path: str


@dataclass(frozen=True)
class DisconnectAction:
    """Mutation the store performs for a session whose connection drops.

    A ``value`` of None removes the path.
    """

    value: Any = None

    @classmethod
    def remove(cls) -> DisconnectAction:
        return cls()

    @classmethod
    def write(cls, value: Any) -> DisconnectAction:
        return cls(value=value)


class StoreAdapter(ABC):
    """
    One client's connection to the shared document store.

    Paths are slash-separated. Writing None to a path deletes it, and empty
    mappings and sequences are never stored. Updates are last-write-wins per
    leaf; a multi-path ``patch`` is applied in one step for the local
    subscribers but carries no atomicity guarantee against other clients.
    Implementations raise ``TransientStoreError`` when a request fails.
    """

    @property
    @abstractmethod
    def session_id(self) -> str:
        """Unique identifier for this store connection."""
        ...

    @abstractmethod
    async def read(self, path: str) -> Any:
        """
        Return a copy of the subtree at ``path``, or None if absent.
        """
        ...

    @abstractmethod
    async def write(self, path: str, value: Any) -> None:
        """
        Overwrite the subtree at ``path``.
        """
        ...

    @abstractmethod
    async def patch(self, path_prefix: str, updates: Mapping[str, Any]) -> None:
        """
        Write several leaves below ``path_prefix`` at once. Keys are relative subpaths.
        """
        ...

    @abstractmethod
    async def remove(self, path: str) -> None: ...

    @abstractmethod
    async def subscribe(self, path: str, on_change: ChangeCallback) -> SubscriptionHandle:
        """
        Call ``on_change`` with the current value now and after every change under ``path``.
        """
        ...

    @abstractmethod
    async def unsubscribe(self, handle: SubscriptionHandle) -> None: ...

    @abstractmethod
    async def register_on_disconnect(self, path: str, action: DisconnectAction) -> None:
        """
        Have the store perform ``action`` at ``path`` if this connection drops.
        """
        ...

    @abstractmethod
    async def cancel_on_disconnect(self, path: str) -> None:
        """
        Drop a previously registered disconnect action (used on graceful leave).
        """
        ...
