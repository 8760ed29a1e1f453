"""Manage the named background timers of one room participant."""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger()

# One-shot callback run after a delay.
TimerCallback = Callable[[], Awaitable[None]]

# Repeating callback; returning True stops the loop.
TickCallback = Callable[[], Awaitable[bool | None]]


class TimerManager:
    """Own a set of named asyncio timer tasks.

    Each name maps to at most one live task. Callback failures are logged and
    never escape the task, so a failing host write does not kill the event
    loop. Cancelling is always safe, including for names that never ran.
    """

    def __init__(self, owner: str = "") -> None:
        self._owner = owner
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def is_running(self, name: str) -> bool:
        task = self._tasks.get(name)
        return task is not None and not task.done()

    @property
    def running(self) -> list[str]:
        return sorted(name for name in self._tasks if self.is_running(name))

    def start_once(self, name: str, delay: float, callback: TimerCallback) -> None:
        """Run ``callback`` once after ``delay`` seconds, replacing any live timer of that name."""
        self.cancel(name)
        self._tasks[name] = asyncio.create_task(self._run_once(name, delay, callback))

    def start_repeating(self, name: str, interval: float, callback: TickCallback) -> None:
        """Run ``callback`` every ``interval`` seconds until it returns True. No-op if already running."""
        if self.is_running(name):
            return
        self._tasks[name] = asyncio.create_task(self._run_repeating(name, interval, callback))

    def cancel(self, name: str) -> None:
        """Cancel a timer.

        A timer cancelled from inside its own callback is only forgotten, so the
        callback can finish its current step. Tick callbacks must then return True.
        """
        task = self._tasks.pop(name, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def cancel_all(self, *, keep: frozenset[str] = frozenset()) -> None:
        for name in list(self._tasks):
            if name not in keep:
                self.cancel(name)

    async def shutdown(self) -> None:
        """Cancel every timer and wait for the tasks to unwind."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        current = asyncio.current_task()
        for task in tasks:
            if task is not current and not task.done():
                task.cancel()
        for task in tasks:
            if task is not current:
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    async def _run_once(self, name: str, delay: float, callback: TimerCallback) -> None:
        try:
            await asyncio.sleep(delay)
            await callback()
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("timer callback failed", timer=name, owner=self._owner)

    async def _run_repeating(self, name: str, interval: float, callback: TickCallback) -> None:
        try:
            while True:
                await asyncio.sleep(interval)
                try:
                    if await callback():
                        return
                except Exception:
                    logger.exception("tick callback failed", timer=name, owner=self._owner)
        except asyncio.CancelledError:
            pass
