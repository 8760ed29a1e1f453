"""
Host-only side effects of the phase state machine.

The client that currently holds ``host_id`` feeds every room snapshot into
``HostController.sync``. The controller reconciles its timers with the
snapshot's phase:

- TRANSITION: one-shot timer that moves the room to PLAYING.
- PLAYING: repeating round tick that ends the round at the shared deadline,
  a repeating bot tick when bots are enabled, and an immediate round end when
  every player has finished.
- ROUND_RESULT: one-shot timer that moves on to GAME_OVER or the next round.
- GAME_OVER: one-shot timer that resets the room to WAITING_ROOM.

While host duties last, the controller also runs the service's room reaper.

Timers are keyed by round (index plus start timestamp), so snapshots that
repeat a phase never reschedule, and a timer left over from an earlier
round finds a stale key and does nothing.
"""

from __future__ import annotations

import random
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import structlog

from party.logic.bot import simulate_tick
from party.logic.enums import GamePhase
from party.logic.progress import all_finished
from party.logic.scheduler import deadline_reached, now_ms
from party.logic.settings import BotConfig
from party.session.timer_manager import TimerManager

if TYPE_CHECKING:
    from party.logic.scheduler import Clock
    from party.logic.state import RoomDocument
    from party.session.room_service import RoomService

logger = structlog.get_logger()

# Host command run when a phase timer fires; receives the round index it was scheduled for.
PhaseAction = Callable[[int], Awaitable[None]]

ROUND_TICK = "round_tick"
BOT_TICK = "bot_tick"


def round_key(room: RoomDocument) -> str:
    """Identify one play-through of a round; a new game reuses indices but not start times."""
    return f"{room.current_round}@{room.start_time}"


class HostController:
    """Drive phase advancement, round timing and bots for one room while this client is host."""

    def __init__(
        self,
        service: RoomService,
        room_id: str,
        player_id: str,
        *,
        rng: random.Random | None = None,
        clock: Clock = now_ms,
        bot_config: BotConfig | None = None,
    ) -> None:
        self._service = service
        self._settings = service.settings
        self._room_id = room_id
        self._player_id = player_id
        self._rng = rng or random.Random()  # noqa: S311
        self._clock = clock
        self._bot_config = bot_config or BotConfig()
        self._timers = TimerManager(owner=f"host:{room_id}")
        self._room: RoomDocument | None = None
        self._scheduled: set[str] = set()
        self._ended_rounds: set[str] = set()
        self._active = False
        self._log = logger.bind(room_id=room_id, host_id=player_id)

    @property
    def active(self) -> bool:
        return self._active

    @property
    def timers(self) -> TimerManager:
        return self._timers

    def sync(self, room: RoomDocument) -> None:
        """Reconcile timers with the latest snapshot. Safe to call on every change notification."""
        if not self._active:
            self._log.info("host duties started", phase=room.phase)
            self._active = True
            self._service.start_room_reaper()
        self._room = room
        key = round_key(room)

        if room.phase != GamePhase.PLAYING:
            self._timers.cancel(ROUND_TICK)
            self._timers.cancel(BOT_TICK)

        match room.phase:
            case GamePhase.TRANSITION:
                self._once(f"begin:{key}", self._settings.transition_seconds, self._begin_playing, room.current_round)
            case GamePhase.PLAYING:
                self._sync_playing(room, key)
            case GamePhase.ROUND_RESULT:
                self._once(f"result:{key}", self._settings.round_result_seconds, self._advance, room.current_round)
            case GamePhase.GAME_OVER:
                self._once(f"reset:{key}", self._settings.game_over_seconds, self._reset, room.current_round)
            case GamePhase.WAITING_ROOM:
                self._timers.cancel_all()
                self._scheduled.clear()
                self._ended_rounds.clear()

    async def stop(self) -> None:
        """Relinquish host duties: cancel every timer and forget scheduled work."""
        if self._active:
            self._log.info("host duties stopped")
        self._active = False
        self._room = None
        self._scheduled.clear()
        await self._timers.shutdown()
        await self._service.stop_room_reaper()

    # --- Phase timers ---

    def _once(self, name: str, delay: float, action: PhaseAction, round_index: int) -> None:
        if name in self._scheduled:
            return
        self._scheduled.add(name)

        async def fire() -> None:
            await action(round_index)

        self._timers.start_once(name, delay, fire)

    async def _begin_playing(self, round_index: int) -> None:
        await self._service.begin_playing(self._room_id, round_index)

    async def _advance(self, round_index: int) -> None:
        await self._service.advance_after_result(self._room_id, round_index)

    async def _reset(self, _round_index: int) -> None:
        await self._service.reset_room(self._room_id)

    # --- PLAYING ---

    def _sync_playing(self, room: RoomDocument, key: str) -> None:
        if key in self._ended_rounds:
            return

        self._timers.start_repeating(ROUND_TICK, self._settings.host_tick_seconds, self._round_tick)
        if room.settings.enable_bots and any(p.is_bot for p in room.players.values()):
            self._timers.start_repeating(BOT_TICK, self._settings.bot_tick_seconds, self._bot_tick)
        if all_finished(room.players):
            self._spawn_round_end(key, room.current_round, "all_finished")

    def _spawn_round_end(self, key: str, round_index: int, reason: str) -> None:
        name = f"end:{key}"
        if key in self._ended_rounds or self._timers.is_running(name):
            return

        async def fire() -> None:
            await self._end_round(key, round_index, reason)

        self._timers.start_once(name, 0, fire)

    def _current(self) -> tuple[RoomDocument, str] | None:
        """Latest snapshot and its round key, if the room is still PLAYING."""
        room = self._room
        if not self._active or room is None or room.phase != GamePhase.PLAYING:
            return None
        return room, round_key(room)

    async def _round_tick(self) -> bool:
        current = self._current()
        if current is None:
            return True
        room, key = current
        if all_finished(room.players):
            return await self._end_round(key, room.current_round, "all_finished")
        if not deadline_reached(room, self._clock()):
            return False
        return await self._end_round(key, room.current_round, "deadline")

    async def _bot_tick(self) -> bool:
        current = self._current()
        if current is None:
            return True
        room, key = current
        if key in self._ended_rounds:
            return True

        tick = simulate_tick(room, self._rng, self._bot_config)
        if tick.changed:
            try:
                await self._service.apply_bot_tick(self._room_id, tick.updates)
            except Exception:
                self._log.exception("bot tick write failed", round_index=room.current_round)
                return False
            if tick.finished:
                self._log.debug("bots finished", player_ids=list(tick.finished))
        if all_finished(tick.players):
            await self._end_round(key, room.current_round, "all_finished")
            return True
        return False

    async def _end_round(self, key: str, round_index: int, reason: str) -> bool:
        """Write ROUND_RESULT once per round key.

        The key is claimed before the write, so the deadline tick and the
        all-finished check cannot both fire it. A failed write releases the
        key and the next round tick tries again.
        """
        if key in self._ended_rounds:
            return True
        self._ended_rounds.add(key)
        try:
            await self._service.end_round(self._room_id, round_index)
        except Exception:
            self._ended_rounds.discard(key)
            self._log.exception("round end write failed", round_index=round_index, reason=reason)
            return False
        self._log.info("round end triggered", round_index=round_index, reason=reason)
        return True
