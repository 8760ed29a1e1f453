"""Store session doubles for failure injection."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from party.logic.exceptions import TransientStoreError
from party.store.protocol import StoreAdapter

if TYPE_CHECKING:
    from collections.abc import Mapping

    from party.store.protocol import ChangeCallback, DisconnectAction, SubscriptionHandle


class FlakyStoreSession(StoreAdapter):
    """Wrap a real session and fail the next ``fail_patches`` patch calls.

    Records every patch that went through so tests can count writes.
    """

    def __init__(self, inner: StoreAdapter, *, fail_patches: int = 0) -> None:
        self.inner = inner
        self.fail_patches = fail_patches
        self.patches: list[tuple[str, dict[str, Any]]] = []

    @property
    def session_id(self) -> str:
        return self.inner.session_id

    async def read(self, path: str) -> Any:
        return await self.inner.read(path)

    async def write(self, path: str, value: Any) -> None:
        await self.inner.write(path, value)

    async def patch(self, path_prefix: str, updates: Mapping[str, Any]) -> None:
        if self.fail_patches > 0:
            self.fail_patches -= 1
            raise TransientStoreError("injected patch failure")
        self.patches.append((path_prefix, dict(updates)))
        await self.inner.patch(path_prefix, updates)

    async def remove(self, path: str) -> None:
        await self.inner.remove(path)

    async def subscribe(self, path: str, on_change: ChangeCallback) -> SubscriptionHandle:
        return await self.inner.subscribe(path, on_change)

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        await self.inner.unsubscribe(handle)

    async def register_on_disconnect(self, path: str, action: DisconnectAction) -> None:
        await self.inner.register_on_disconnect(path, action)

    async def cancel_on_disconnect(self, path: str) -> None:
        await self.inner.cancel_on_disconnect(path)

    def phase_writes(self) -> list[str]:
        """Phase values written through this session, in order."""
        return [updates["phase"] for _, updates in self.patches if "phase" in updates]
