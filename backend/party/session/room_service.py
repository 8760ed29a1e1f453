"""Room commands: creation, joining, leaving, bots, round control and cleanup."""

from __future__ import annotations

import asyncio
import contextlib
import random
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from party.logic import host as host_arbiter
from party.logic.enums import GameMode, GamePhase, Language, PlayerStatus
from party.logic.exceptions import (
    DuplicateNameError,
    NotHostError,
    RoomFullError,
    RoomNotFoundError,
    TransientStoreError,
    WrongPhaseError,
)
from party.logic.identity import (
    BOT_ID_PREFIX,
    HOST_ID_PREFIX,
    PLAYER_ID_PREFIX,
    generate_bot_name,
    generate_player_id,
    generate_room_code,
    random_avatar,
)
from party.logic.phases import (
    enter_game_over,
    enter_playing,
    enter_round_result,
    enter_transition,
    enter_waiting_room,
    phase_after_result,
)
from party.logic.scheduler import now_ms
from party.logic.settings import generate_rounds
from party.logic.state import Player, RoomDocument, player_key
from party.logic.words import RandomWordSource
from party.session.settings import PartySettings
from party.session.types import RoomListing
from party.store.paths import ROOMS_ROOT, join_path, room_path
from party.store.protocol import DisconnectAction

if TYPE_CHECKING:
    from collections.abc import Mapping

    from party.logic.scheduler import Clock
    from party.logic.settings import RoomSettings
    from party.logic.words import WordSource
    from party.store.protocol import StoreAdapter

logger = structlog.get_logger()

_MAX_BOT_NAME_ATTEMPTS = 10


class RoomService:
    """Issue path-scoped updates against the shared room documents.

    Holds no room state of its own: every command reads the latest snapshot,
    validates it, and writes a patch. Player commands (join, leave, progress,
    finish) may come from any client; phase commands are meant for the host
    and are written so that a duplicate or stale call is a no-op.

    The room reaper (``start_room_reaper``) is run by whichever client is
    currently host: ``HostController`` starts it with host duties and stops
    it when they end. A standalone service may also run it.
    """

    def __init__(
        self,
        store: StoreAdapter,
        *,
        settings: PartySettings | None = None,
        rng: random.Random | None = None,
        words: WordSource | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self._store = store
        self._settings = settings or PartySettings()
        self._rng = rng or random.Random()  # noqa: S311
        self._words = words or RandomWordSource(self._rng)
        self._clock = clock
        self._reaper_task: asyncio.Task[None] | None = None

    @property
    def store(self) -> StoreAdapter:
        return self._store

    @property
    def settings(self) -> PartySettings:
        return self._settings

    # --- Reads ---

    async def get_room(self, room_id: str) -> RoomDocument | None:
        return RoomDocument.from_snapshot(await self._store.read(room_path(room_id)))

    async def _load(self, room_id: str) -> RoomDocument:
        room = await self.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        return room

    async def _patch(self, room_id: str, updates: Mapping[str, Any]) -> None:
        await self._store.patch(room_path(room_id), updates)

    async def list_public_rooms(self) -> list[RoomListing]:
        """Rooms a stranger may join: public, waiting, and with a live host entry."""
        raw_rooms = await self._store.read(ROOMS_ROOT) or {}
        listings: list[RoomListing] = []
        for room_id, raw in sorted(raw_rooms.items()):
            try:
                room = RoomDocument.from_snapshot(raw)
            except ValidationError:
                logger.warning("skipping malformed room document", room_id=room_id)
                continue
            if room is None or room.settings.is_private or room.phase != GamePhase.WAITING_ROOM:
                continue
            host = room.host
            if host is None:
                continue
            listings.append(
                RoomListing(
                    room_id=room.id,
                    host_name=host.name,
                    player_count=room.player_count,
                    max_players=room.settings.max_players,
                    total_rounds=room.settings.total_rounds,
                    target_score=room.settings.target_score,
                ),
            )
        return listings

    # --- Membership ---

    async def create_room(
        self,
        host_name: str,
        host_avatar: str,
        settings: RoomSettings,
        lang: Language = Language.EN,
    ) -> tuple[str, str]:
        """Seed a new room with its host as the only player. Returns (room_id, host_id)."""
        _require_name(host_name)
        room_id = await self._allocate_room_code()
        host_id = generate_player_id(HOST_ID_PREFIX, self._rng)
        room = RoomDocument(
            id=room_id,
            host_id=host_id,
            settings=settings,
            players={host_id: Player(id=host_id, name=host_name.strip(), avatar=host_avatar)},
            phase=GamePhase.WAITING_ROOM,
            rounds=generate_rounds(settings.total_rounds),
            lang=lang,
        )
        await self._store.write(room_path(room_id), room.to_snapshot())
        await self._store.register_on_disconnect(
            join_path(room_path(room_id), player_key(host_id)),
            DisconnectAction.remove(),
        )
        logger.info("room created", room_id=room_id, host_id=host_id, total_rounds=settings.total_rounds)
        return room_id, host_id

    async def _allocate_room_code(self) -> str:
        for _ in range(self._settings.max_code_attempts):
            code = generate_room_code(self._rng)
            if await self._store.read(room_path(code)) is None:
                return code
            logger.debug("room code collision", room_id=code)
        attempts = self._settings.max_code_attempts
        raise TransientStoreError(f"could not allocate a free room code in {attempts} attempts")

    async def join_room(self, room_id: str, name: str, avatar: str) -> str:
        """Add a human player. Every precondition is checked before anything is written."""
        _require_name(name)
        room = await self._load(room_id)
        if room.phase != GamePhase.WAITING_ROOM:
            raise WrongPhaseError(room_id, room.phase)
        if room.is_full:
            raise RoomFullError(room_id, room.settings.max_players)
        if room.name_taken(name):
            raise DuplicateNameError(room_id, name)

        player_id = generate_player_id(PLAYER_ID_PREFIX, self._rng)
        player = Player(id=player_id, name=name.strip(), avatar=avatar)
        await self._patch(room_id, {player_key(player_id): player.model_dump(mode="json")})
        await self._store.register_on_disconnect(
            join_path(room_path(room_id), player_key(player_id)),
            DisconnectAction.remove(),
        )
        logger.info("player joined", room_id=room_id, player_id=player_id)
        return player_id

    async def leave_room(self, room_id: str, player_id: str) -> None:
        """Remove a player, handing off host if needed.

        The room is deleted once no human player is left; bots alone cannot keep it going.
        """
        room = await self.get_room(room_id)
        if room is None:
            return

        entry_path = join_path(room_path(room_id), player_key(player_id))
        await self._store.remove(entry_path)
        await self._store.cancel_on_disconnect(entry_path)
        logger.info("player left", room_id=room_id, player_id=player_id)

        remaining = await self.get_room(room_id)
        if remaining is None or not remaining.has_humans:
            await self._store.remove(room_path(room_id))
            logger.info("room deleted", room_id=room_id)
            return

        if room.host_id == player_id and host_arbiter.needs_succession(remaining):
            heir = host_arbiter.choose_heir(remaining)
            await self._patch(room_id, {"host_id": heir})
            logger.info("host handed off", room_id=room_id, old_host_id=player_id, host_id=heir)

    async def kick_player(self, room_id: str, player_id: str, *, requested_by: str) -> None:
        room = await self._load(room_id)
        if room.host_id != requested_by:
            raise NotHostError(room_id, requested_by)
        await self.leave_room(room_id, player_id)

    async def claim_host(self, room_id: str, player_id: str) -> bool:
        """Write ``player_id`` as host if the latest snapshot makes it the heir."""
        room = await self.get_room(room_id)
        if room is None:
            return False
        updates = host_arbiter.succession_patch(room, player_id)
        if updates is None:
            return False
        await self._patch(room_id, updates)
        logger.info("host succession", room_id=room_id, old_host_id=room.host_id, host_id=player_id)
        return True

    async def add_bot(self, room_id: str) -> str:
        room = await self._load(room_id)
        if room.phase != GamePhase.WAITING_ROOM:
            raise WrongPhaseError(room_id, room.phase)
        if room.is_full:
            raise RoomFullError(room_id, room.settings.max_players)

        name = generate_bot_name(self._rng)
        for _ in range(_MAX_BOT_NAME_ATTEMPTS):
            if not room.name_taken(name):
                break
            name = generate_bot_name(self._rng)
        bot_id = generate_player_id(BOT_ID_PREFIX, self._rng)
        bot = Player(id=bot_id, name=name, avatar=random_avatar(self._rng), is_bot=True)
        await self._patch(room_id, {player_key(bot_id): bot.model_dump(mode="json")})
        logger.info("bot added", room_id=room_id, player_id=bot_id)
        return bot_id

    # --- Player progress ---

    async def update_progress(self, room_id: str, player_id: str, progress: float) -> None:
        """Record a player's progress. Dropped silently if the player entry is gone."""
        entry_path = join_path(room_path(room_id), player_key(player_id))
        if await self._store.read(entry_path) is None:
            logger.debug("progress for missing player dropped", room_id=room_id, player_id=player_id)
            return
        await self._patch(room_id, {player_key(player_id, "progress"): min(100.0, max(0.0, progress))})

    async def player_finished(self, room_id: str, player_id: str, score: int) -> None:
        """Mark a player FINISHED with the total score its client computed."""
        room = await self._load(room_id)
        player = room.players.get(player_id)
        if player is None:
            logger.warning("finish for missing player dropped", room_id=room_id, player_id=player_id)
            return
        await self._patch(
            room_id,
            {
                player_key(player_id, "status"): PlayerStatus.FINISHED.value,
                player_key(player_id, "progress"): 100,
                player_key(player_id, "score"): max(score, player.score),
            },
        )
        logger.info("player finished", room_id=room_id, player_id=player_id, score=score)

    async def apply_bot_tick(self, room_id: str, updates: Mapping[str, Any]) -> None:
        await self._patch(room_id, updates)

    # --- Phase control (host) ---

    async def start_game(self, room_id: str, lang: Language | None = None, *, requested_by: str | None = None) -> None:
        await self.start_round(room_id, lang, 0, requested_by=requested_by)

    async def start_round(
        self,
        room_id: str,
        lang: Language | None,
        round_index: int,
        *,
        requested_by: str | None = None,
    ) -> bool:
        """Enter TRANSITION for ``round_index``. Returns False if the room was already there."""
        room = await self._load(room_id)
        if requested_by is not None and room.host_id != requested_by:
            raise NotHostError(room_id, requested_by)
        if not 0 <= round_index < len(room.rounds):
            raise ValueError(f"round index {round_index} out of range for {len(room.rounds)} rounds")

        lang = lang or room.lang
        round_config = room.rounds[round_index]
        words = self._words.word_list(lang, self._settings.word_count) if round_config.mode == GameMode.TYPING else []
        updates = enter_transition(room, round_index, words, self._clock(), self._settings.lead_in_ms)
        if updates is None:
            return False
        if lang != room.lang:
            updates["lang"] = lang.value
        await self._patch(room_id, updates)
        logger.info(
            "round starting",
            room_id=room_id,
            phase=GamePhase.TRANSITION,
            round_number=round_config.round_number,
            mode=round_config.mode,
        )
        return True

    async def begin_playing(self, room_id: str, round_index: int) -> bool:
        room = await self._load(room_id)
        if room.phase != GamePhase.TRANSITION or room.current_round != round_index:
            return False
        updates = enter_playing(room)
        if updates is None:
            return False
        await self._patch(room_id, updates)
        logger.info("round playing", room_id=room_id, phase=GamePhase.PLAYING, round_index=round_index)
        return True

    async def end_round(self, room_id: str, round_index: int) -> bool:
        """Move PLAYING -> ROUND_RESULT. Stale or repeated calls return False and write nothing."""
        room = await self._load(room_id)
        if room.phase != GamePhase.PLAYING or room.current_round != round_index:
            return False
        updates = enter_round_result(room)
        if updates is None:
            return False
        await self._patch(room_id, updates)
        logger.info("round ended", room_id=room_id, phase=GamePhase.ROUND_RESULT, round_index=round_index)
        return True

    async def advance_after_result(self, room_id: str, round_index: int) -> GamePhase | None:
        """Leave ROUND_RESULT for GAME_OVER or the next round. Returns the phase entered."""
        room = await self._load(room_id)
        if room.phase != GamePhase.ROUND_RESULT or room.current_round != round_index:
            return None
        target = phase_after_result(room)
        if target == GamePhase.GAME_OVER:
            updates = enter_game_over(room)
            if updates is None:
                return None
            await self._patch(room_id, updates)
            logger.info("game over", room_id=room_id, phase=GamePhase.GAME_OVER, round_index=round_index)
            return target
        if not await self.start_round(room_id, room.lang, round_index + 1):
            return None
        return target

    async def reset_room(self, room_id: str) -> bool:
        room = await self._load(room_id)
        updates = enter_waiting_room(room) if room.phase == GamePhase.GAME_OVER else None
        if updates is None:
            return False
        await self._patch(room_id, updates)
        logger.info("room reset", room_id=room_id, phase=GamePhase.WAITING_ROOM)
        return True

    # --- Room reaper ---

    async def reap_abandoned_rooms(self) -> list[str]:
        """Delete room documents with no human player left.

        A client that drops without leaving only has its player entry removed
        by the store, so the last such drop leaves a room with no players, or
        with bots that no client drives.
        """
        raw_rooms = await self._store.read(ROOMS_ROOT) or {}
        reaped = [room_id for room_id, raw in raw_rooms.items() if _is_abandoned(room_id, raw)]
        for room_id in reaped:
            await self._store.remove(room_path(room_id))
            logger.info("abandoned room deleted", room_id=room_id)
        return reaped

    def start_room_reaper(self) -> None:
        """Start the periodic room reaper task. Idempotent."""
        if self._reaper_task is not None and not self._reaper_task.done():
            return
        self._reaper_task = asyncio.create_task(self._room_reaper_loop())

    async def stop_room_reaper(self) -> None:
        if self._reaper_task is not None:
            self._reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reaper_task
            self._reaper_task = None

    async def _room_reaper_loop(self) -> None:
        while True:
            await asyncio.sleep(self._settings.reaper_interval_seconds)
            try:
                await self.reap_abandoned_rooms()
            except Exception:
                logger.exception("room reaper encountered an error")


def _is_abandoned(room_id: str, raw: Any) -> bool:
    if not (raw or {}).get("players"):
        return True
    try:
        room = RoomDocument.from_snapshot(raw)
    except ValidationError:
        logger.warning("skipping malformed room document", room_id=room_id)
        return False
    return room is None or not room.has_humans


def _require_name(name: str) -> None:
    if not name.strip():
        raise ValueError("player name must not be blank")
