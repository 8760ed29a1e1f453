"""
Client-side projection of a shared room.

Every participant, host included, runs a ``RoomClient``. It subscribes to the
room document, keeps the latest snapshot, derives the countdown locally, runs
the host-succession check, and issues player commands. Authoritative phase
logic only runs inside the ``HostController`` it starts while its own
identity holds ``host_id``.
"""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from party.logic import host as host_arbiter
from party.logic.enums import GamePhase, Language
from party.logic.exceptions import NotHostError, RoomNotFoundError
from party.logic.progress import completion_score
from party.logic.scheduler import display_seconds, now_ms
from party.logic.state import RoomDocument
from party.session.host_controller import HostController
from party.session.room_service import RoomService
from party.session.timer_manager import TimerManager
from party.store.paths import room_path

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from party.logic.scheduler import Clock
    from party.logic.settings import BotConfig, RoomSettings, ScoringConfig
    from party.logic.words import WordSource
    from party.session.settings import PartySettings
    from party.store.protocol import StoreAdapter, SubscriptionHandle

logger = structlog.get_logger()

DISPLAY_TICK = "display_tick"


class RoomClient:
    """One participant's reactive view of a room plus its command surface."""

    def __init__(
        self,
        store: StoreAdapter,
        room_id: str,
        player_id: str,
        *,
        settings: PartySettings | None = None,
        rng: random.Random | None = None,
        words: WordSource | None = None,
        clock: Clock = now_ms,
        scoring: ScoringConfig | None = None,
        bot_config: BotConfig | None = None,
    ) -> None:
        self._rng = rng or random.Random()  # noqa: S311
        self._service = RoomService(store, settings=settings, rng=self._rng, words=words, clock=clock)
        self._store = store
        self._room_id = room_id
        self._player_id = player_id
        self._clock = clock
        self._scoring = scoring
        self._host = HostController(
            self._service,
            room_id,
            player_id,
            rng=self._rng,
            clock=clock,
            bot_config=bot_config,
        )
        self._timers = TimerManager(owner=f"client:{player_id}")
        self._subscription: SubscriptionHandle | None = None
        self._room: RoomDocument | None = None
        self._room_deleted = False
        self._time_left = 0
        self._listeners: list[Callable[[RoomDocument | None], None]] = []
        self._tick_listeners: list[Callable[[int], None]] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._log = logger.bind(room_id=room_id, player_id=player_id)

    # --- Construction ---

    @classmethod
    async def create(
        cls,
        store: StoreAdapter,
        host_name: str,
        host_avatar: str,
        room_settings: RoomSettings,
        lang: Language = Language.EN,
        **kwargs: Any,
    ) -> RoomClient:
        """Create a room, becoming its host, and start following it."""
        service = RoomService(store, settings=kwargs.get("settings"), rng=kwargs.get("rng"))
        room_id, host_id = await service.create_room(host_name, host_avatar, room_settings, lang)
        client = cls(store, room_id, host_id, **kwargs)
        await client.connect()
        return client

    @classmethod
    async def join(cls, store: StoreAdapter, room_id: str, name: str, avatar: str, **kwargs: Any) -> RoomClient:
        """Join an existing room and start following it. Raises the join failure unchanged."""
        service = RoomService(store, settings=kwargs.get("settings"), rng=kwargs.get("rng"))
        player_id = await service.join_room(room_id, name, avatar)
        client = cls(store, room_id, player_id, **kwargs)
        await client.connect()
        return client

    async def connect(self) -> None:
        if self._subscription is not None:
            return
        self._subscription = await self._store.subscribe(room_path(self._room_id), self._on_snapshot)
        self._timers.start_repeating(DISPLAY_TICK, self._service.settings.display_tick_seconds, self._display_tick)

    async def close(self) -> None:
        """Stop following the room without leaving it."""
        if self._subscription is not None:
            await self._store.unsubscribe(self._subscription)
            self._subscription = None
        await self._timers.shutdown()
        await self._host.stop()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    async def leave(self) -> None:
        """Leave the room gracefully and stop following it."""
        await self.close()
        await self._service.leave_room(self._room_id, self._player_id)
        self._log.info("left room")

    # --- State ---

    @property
    def room_id(self) -> str:
        return self._room_id

    @property
    def player_id(self) -> str:
        return self._player_id

    @property
    def service(self) -> RoomService:
        return self._service

    @property
    def host_controller(self) -> HostController:
        return self._host

    @property
    def room(self) -> RoomDocument | None:
        return self._room

    @property
    def room_deleted(self) -> bool:
        return self._room_deleted

    @property
    def is_host(self) -> bool:
        return self._room is not None and host_arbiter.is_host(self._room, self._player_id)

    @property
    def time_left(self) -> int:
        """Whole seconds shown on the round countdown."""
        return self._compute_time_left()

    def add_listener(self, callback: Callable[[RoomDocument | None], None]) -> None:
        """Call ``callback`` with every new snapshot (None once the room is gone)."""
        self._listeners.append(callback)

    def add_tick_listener(self, callback: Callable[[int], None]) -> None:
        """Call ``callback`` whenever the displayed countdown changes."""
        self._tick_listeners.append(callback)

    def _compute_time_left(self) -> int:
        room = self._room
        if room is None:
            return 0
        config = room.round_config
        if config is None:
            return 0
        if room.phase == GamePhase.TRANSITION:
            return config.duration
        if room.phase == GamePhase.PLAYING and room.start_time is not None:
            return display_seconds(config.duration, room.start_time, self._clock())
        return 0

    # --- Subscription ---

    def _on_snapshot(self, raw: dict[str, Any] | None) -> None:
        try:
            room = RoomDocument.from_snapshot(raw)
        except ValidationError:
            self._log.exception("ignoring malformed room snapshot")
            return

        if room is None:
            if self._room is not None:
                self._log.info("room deleted")
            self._room = None
            self._room_deleted = True
            self._spawn(self._host.stop())
            self._notify(None)
            return

        self._room = room
        if host_arbiter.succession_patch(room, self._player_id) is not None:
            self._log.info("claiming host", old_host_id=room.host_id)
            self._spawn(self._service.claim_host(self._room_id, self._player_id))

        if host_arbiter.is_host(room, self._player_id):
            self._host.sync(room)
        elif self._host.active:
            self._spawn(self._host.stop())

        self._time_left = self._compute_time_left()
        self._notify(room)

    def _notify(self, room: RoomDocument | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(room)
            except Exception:
                self._log.exception("room listener failed")

    async def _display_tick(self) -> bool:
        value = self._compute_time_left()
        if value != self._time_left:
            self._time_left = value
            for listener in list(self._tick_listeners):
                try:
                    listener(value)
                except Exception:
                    self._log.exception("tick listener failed")
        return False

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._log.error("background store request failed", exc_info=task.exception())

    # --- Commands ---

    def _require_room(self) -> RoomDocument:
        if self._room is None:
            raise RoomNotFoundError(self._room_id)
        return self._room

    def _require_host(self) -> RoomDocument:
        room = self._require_room()
        if not host_arbiter.is_host(room, self._player_id):
            raise NotHostError(self._room_id, self._player_id)
        return room

    async def start_game(self, lang: Language | None = None) -> None:
        self._require_host()
        await self._service.start_game(self._room_id, lang, requested_by=self._player_id)

    async def add_bot(self) -> str:
        self._require_host()
        return await self._service.add_bot(self._room_id)

    async def kick(self, player_id: str) -> None:
        self._require_host()
        await self._service.kick_player(self._room_id, player_id, requested_by=self._player_id)

    async def report_progress(self, progress: float) -> None:
        await self._service.update_progress(self._room_id, self._player_id, progress)

    async def finish(self, mode_bonus: int = 0) -> int | None:
        """Submit this player's round completion. Returns the submitted score.

        The score is computed here from the locally displayed countdown; see
        ``completion_score``. Returns None if the room is not PLAYING or this
        player already finished.
        """
        room = self._require_room()
        me = room.players.get(self._player_id)
        if room.phase != GamePhase.PLAYING or me is None or me.is_finished:
            return None
        score = completion_score(me.score, self._compute_time_left(), mode_bonus, self._scoring)
        await self._service.player_finished(self._room_id, self._player_id, score)
        return score
