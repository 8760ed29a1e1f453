import random

import pytest

from party.logic.enums import GameMode, GamePhase, Language, PlayerStatus
from party.logic.exceptions import (
    DuplicateNameError,
    InvalidTransitionError,
    NotHostError,
    RoomFullError,
    RoomNotFoundError,
    TransientStoreError,
    WrongPhaseError,
)
from party.logic.identity import ROOM_CODE_ALPHABET, generate_room_code
from party.logic.settings import RoomSettings
from party.session.room_service import RoomService
from party.store.paths import room_path
from party.tests.helpers.waiting import wait_until


async def _room_with(service, *names, settings=None):
    room_id, host_id = await service.create_room("Host", "v1:0-0-0-0-0", settings or RoomSettings())
    ids = [host_id]
    for name in names:
        ids.append(await service.join_room(room_id, name, ""))
    return room_id, ids


class TestCreateRoom:
    async def test_seeds_room_with_host(self, service, store):
        room_id, host_id = await service.create_room("Alice", "v1:1-2-3-4-0", RoomSettings(total_rounds=2))

        room = await service.get_room(room_id)
        assert room is not None
        assert len(room_id) == 6
        assert set(room_id) <= set(ROOM_CODE_ALPHABET)
        assert host_id.startswith("host-")
        assert room.host_id == host_id
        assert list(room.players) == [host_id]
        assert room.players[host_id].name == "Alice"
        assert room.phase == GamePhase.WAITING_ROOM
        assert [r.mode for r in room.rounds] == [GameMode.REPAIR, GameMode.TYPING]
        assert store.snapshot(room_path(room_id))["lang"] == "EN"

    async def test_retries_on_code_collision(self, store, fast_settings):
        first = RoomService(store.connect(), settings=fast_settings, rng=random.Random(5))
        taken, _ = await first.create_room("A", "", RoomSettings())

        # Same seed draws the same first code, which is now taken.
        second = RoomService(store.connect(), settings=fast_settings, rng=random.Random(5))
        room_id, _ = await second.create_room("B", "", RoomSettings())

        assert room_id != taken
        assert set(store.snapshot("rooms")) == {taken, room_id}

    async def test_gives_up_after_bounded_attempts(self, store, fast_settings):
        settings = fast_settings.model_copy(update={"max_code_attempts": 3})
        session = store.connect()
        # Occupy the first three codes a Random(11) will draw.
        occupied = random.Random(11)
        for _ in range(3):
            code = generate_room_code(occupied)
            await session.write(room_path(code), {"id": code})
        service = RoomService(session, settings=settings, rng=random.Random(11))

        with pytest.raises(TransientStoreError):
            await service.create_room("A", "", RoomSettings())

    async def test_blank_name_rejected(self, service):
        with pytest.raises(ValueError, match="blank"):
            await service.create_room("   ", "", RoomSettings())

    async def test_host_entry_removed_on_disconnect(self, store, fast_settings):
        session = store.connect()
        service = RoomService(session, settings=fast_settings)
        room_id, host_id = await service.create_room("A", "", RoomSettings())

        session.disconnect()

        assert store.snapshot(f"rooms/{room_id}/players") is None


class TestJoinRoom:
    async def test_adds_player(self, service):
        room_id, (host_id, player_id) = await _room_with(service, "Bob")

        room = await service.get_room(room_id)
        assert player_id.startswith("p-")
        assert room.players[player_id].name == "Bob"
        assert room.players[player_id].status == PlayerStatus.IDLE
        assert room.host_id == host_id

    async def test_trims_name(self, service):
        room_id, (_, player_id) = await _room_with(service, "  Bob  ")

        assert (await service.get_room(room_id)).players[player_id].name == "Bob"

    async def test_missing_room(self, service):
        with pytest.raises(RoomNotFoundError):
            await service.join_room("ZZZZZZ", "Bob", "")

    async def test_duplicate_name_case_insensitive_leaves_room_unchanged(self, service, store):
        room_id, _ = await _room_with(service, "Bob")
        before = store.snapshot(room_path(room_id))

        with pytest.raises(DuplicateNameError):
            await service.join_room(room_id, " bOB ", "")

        assert store.snapshot(room_path(room_id)) == before

    async def test_full_room(self, service, store):
        room_id, _ = await _room_with(service, "Bob", settings=RoomSettings(max_players=2))
        before = store.snapshot(room_path(room_id))

        with pytest.raises(RoomFullError) as exc_info:
            await service.join_room(room_id, "Carol", "")

        assert exc_info.value.max_players == 2
        assert store.snapshot(room_path(room_id)) == before

    async def test_player_count_never_exceeds_max(self, service):
        room_id, _ = await _room_with(service, settings=RoomSettings(max_players=3))

        for i in range(6):
            try:
                await service.join_room(room_id, f"P{i}", "")
            except RoomFullError:
                pass

        assert (await service.get_room(room_id)).player_count == 3

    async def test_game_in_progress(self, service):
        room_id, _ = await _room_with(service)
        await service.start_game(room_id)

        with pytest.raises(WrongPhaseError) as exc_info:
            await service.join_room(room_id, "Late", "")
        assert exc_info.value.phase == GamePhase.TRANSITION

    async def test_not_found_checked_before_name(self, service):
        with pytest.raises(RoomNotFoundError):
            await service.join_room("ZZZZZZ", "Host", "")

    async def test_stale_per_player_write_does_not_block_room(self, service, store):
        room_id, (host_id,) = await _room_with(service)
        await store.connect().patch(
            room_path(room_id),
            {"players/p-gone/status": "PLAYING", "players/p-gone/progress": 0},
        )

        player_id = await service.join_room(room_id, "Bob", "")
        await service.start_game(room_id)

        room = await service.get_room(room_id)
        assert set(room.players) == {host_id, player_id}
        assert room.phase == GamePhase.TRANSITION


class TestLeaveRoom:
    async def test_removes_player(self, service):
        room_id, (host_id, player_id) = await _room_with(service, "Bob")

        await service.leave_room(room_id, player_id)

        room = await service.get_room(room_id)
        assert list(room.players) == [host_id]

    async def test_last_player_deletes_room(self, service):
        room_id, (host_id,) = await _room_with(service)

        await service.leave_room(room_id, host_id)

        assert await service.get_room(room_id) is None
        with pytest.raises(RoomNotFoundError):
            await service.join_room(room_id, "Bob", "")

    async def test_host_leaving_hands_off_to_smallest_identity(self, service, store):
        session = store.connect()
        await session.write(
            "rooms/ROOM42",
            {
                "id": "ROOM42",
                "host_id": "host-1",
                "settings": {"max_players": 4},
                "phase": "WAITING_ROOM",
                "players": {
                    "host-1": {"id": "host-1", "name": "H"},
                    "p-9": {"id": "p-9", "name": "Nine"},
                    "p-2": {"id": "p-2", "name": "Two"},
                },
            },
        )

        await service.leave_room("ROOM42", "host-1")

        room = await service.get_room("ROOM42")
        assert room.host_id == "p-2"

    async def test_bot_never_inherits_host(self, service):
        room_id, (host_id, guest_id) = await _room_with(service, "Guest")
        bot_id = await service.add_bot(room_id)
        assert bot_id < guest_id

        await service.leave_room(room_id, host_id)

        assert (await service.get_room(room_id)).host_id == guest_id

    async def test_room_deleted_when_only_bots_remain(self, service):
        room_id, (host_id,) = await _room_with(service)
        await service.add_bot(room_id)

        await service.leave_room(room_id, host_id)

        assert await service.get_room(room_id) is None

    async def test_graceful_leave_cancels_disconnect_hook(self, store, fast_settings):
        host_session = store.connect()
        guest_session = store.connect()
        room_id, _ = await RoomService(host_session, settings=fast_settings).create_room("H", "", RoomSettings())
        guest = RoomService(guest_session, settings=fast_settings)
        player_id = await guest.join_room(room_id, "Bob", "")
        await guest.leave_room(room_id, player_id)
        # Re-adding an entry with the same id must survive the old session dropping.
        await host_session.write(f"rooms/{room_id}/players/{player_id}", {"id": player_id, "name": "Bob"})

        guest_session.disconnect()

        assert store.snapshot(f"rooms/{room_id}/players/{player_id}/name") == "Bob"

    async def test_leaving_missing_room_is_noop(self, service):
        await service.leave_room("ZZZZZZ", "p-1")


class TestKickAndClaimHost:
    async def test_host_kicks_player(self, service):
        room_id, (host_id, player_id) = await _room_with(service, "Bob")

        await service.kick_player(room_id, player_id, requested_by=host_id)

        assert player_id not in (await service.get_room(room_id)).players

    async def test_non_host_cannot_kick(self, service):
        room_id, (host_id, player_id) = await _room_with(service, "Bob")

        with pytest.raises(NotHostError):
            await service.kick_player(room_id, host_id, requested_by=player_id)

    async def test_claim_host_only_for_heir(self, service, store):
        room_id, (host_id, a, b) = await _room_with(service, "A", "B")
        await store.connect().remove(f"rooms/{room_id}/players/{host_id}")
        heir, other = sorted([a, b])

        assert await service.claim_host(room_id, other) is False
        assert await service.claim_host(room_id, heir) is True
        assert (await service.get_room(room_id)).host_id == heir
        assert await service.claim_host(room_id, heir) is False


class TestAddBot:
    async def test_inserts_bot(self, service):
        room_id, _ = await _room_with(service)

        bot_id = await service.add_bot(room_id)

        bot = (await service.get_room(room_id)).players[bot_id]
        assert bot_id.startswith("bot-")
        assert bot.is_bot is True
        assert bot.name.startswith("Bot ")
        assert bot.avatar.startswith("v1:")

    async def test_full_room(self, service):
        room_id, _ = await _room_with(service, settings=RoomSettings(max_players=2))
        await service.add_bot(room_id)

        with pytest.raises(RoomFullError):
            await service.add_bot(room_id)

    async def test_only_in_waiting_room(self, service):
        room_id, _ = await _room_with(service)
        await service.start_game(room_id)

        with pytest.raises(WrongPhaseError):
            await service.add_bot(room_id)


class TestProgress:
    async def test_update_progress_clamps(self, service):
        room_id, (host_id,) = await _room_with(service)

        await service.update_progress(room_id, host_id, 140)
        assert (await service.get_room(room_id)).players[host_id].progress == 100

        await service.update_progress(room_id, host_id, -5)
        assert (await service.get_room(room_id)).players[host_id].progress == 0

    async def test_progress_for_departed_player_is_dropped(self, service, store):
        room_id, (host_id, player_id) = await _room_with(service, "Bob")
        await service.leave_room(room_id, player_id)

        await service.update_progress(room_id, player_id, 50)

        assert store.snapshot(f"rooms/{room_id}/players/{player_id}") is None

    async def test_player_finished(self, service):
        room_id, (host_id,) = await _room_with(service)

        await service.player_finished(room_id, host_id, 170)

        player = (await service.get_room(room_id)).players[host_id]
        assert player.status == PlayerStatus.FINISHED
        assert player.progress == 100
        assert player.score == 170

    async def test_finished_score_never_decreases(self, service):
        room_id, (host_id,) = await _room_with(service)
        await service.player_finished(room_id, host_id, 300)

        await service.player_finished(room_id, host_id, 120)

        assert (await service.get_room(room_id)).players[host_id].score == 300


class TestPhaseCommands:
    async def test_start_game_enters_transition(self, service, clock, fast_settings):
        room_id, (host_id, player_id) = await _room_with(service, "Bob")

        await service.start_game(room_id, requested_by=host_id)

        room = await service.get_room(room_id)
        assert room.phase == GamePhase.TRANSITION
        assert room.current_round == 0
        assert room.start_time == clock() + fast_settings.lead_in_ms
        assert room.words == []
        assert {p.status for p in room.players.values()} == {PlayerStatus.PLAYING}

    async def test_start_game_by_non_host(self, service):
        room_id, (_, player_id) = await _room_with(service, "Bob")

        with pytest.raises(NotHostError):
            await service.start_game(room_id, requested_by=player_id)

    async def test_typing_round_shares_words_and_language(self, service, fast_settings):
        room_id, _ = await _room_with(service)
        await service.start_game(room_id)
        await service.begin_playing(room_id, 0)
        await service.end_round(room_id, 0)

        assert await service.advance_after_result(room_id, 0) == GamePhase.TRANSITION

        room = await service.get_room(room_id)
        assert room.current_round == 1
        assert room.round_config.mode == GameMode.TYPING
        assert len(room.words) == fast_settings.word_count

    async def test_start_game_with_language_persists_it(self, service):
        room_id, _ = await _room_with(service)

        await service.start_game(room_id, Language.TR)

        assert (await service.get_room(room_id)).lang == Language.TR

    async def test_duplicate_start_is_noop(self, service):
        room_id, _ = await _room_with(service)

        assert await service.start_round(room_id, None, 0) is True
        assert await service.start_round(room_id, None, 0) is False

    async def test_stale_commands_write_nothing(self, service):
        room_id, _ = await _room_with(service)
        await service.start_game(room_id)

        assert await service.end_round(room_id, 0) is False
        assert await service.begin_playing(room_id, 3) is False
        assert await service.begin_playing(room_id, 0) is True
        assert await service.begin_playing(room_id, 0) is False
        assert await service.advance_after_result(room_id, 0) is None
        assert await service.reset_room(room_id) is False

    async def test_round_end_exactly_once(self, service):
        room_id, _ = await _room_with(service)
        await service.start_game(room_id)
        await service.begin_playing(room_id, 0)

        results = [await service.end_round(room_id, 0), await service.end_round(room_id, 0)]

        assert results == [True, False]

    async def test_target_score_reached_ends_game(self, service):
        room_id, (host_id,) = await _room_with(service, settings=RoomSettings(target_score=1000, total_rounds=4))
        await service.start_game(room_id)
        await service.begin_playing(room_id, 0)
        await service.player_finished(room_id, host_id, 1050)
        await service.end_round(room_id, 0)

        assert await service.advance_after_result(room_id, 0) == GamePhase.GAME_OVER
        assert (await service.get_room(room_id)).phase == GamePhase.GAME_OVER

    async def test_reset_after_game_over(self, service):
        room_id, (host_id,) = await _room_with(service, settings=RoomSettings(total_rounds=1))
        await service.start_game(room_id)
        await service.begin_playing(room_id, 0)
        await service.player_finished(room_id, host_id, 90)
        await service.end_round(room_id, 0)
        await service.advance_after_result(room_id, 0)

        assert await service.reset_room(room_id) is True

        room = await service.get_room(room_id)
        assert room.phase == GamePhase.WAITING_ROOM
        assert room.start_time is None
        assert room.players[host_id].score == 0
        assert room.players[host_id].status == PlayerStatus.IDLE

    async def test_start_from_wrong_phase_raises(self, service):
        room_id, _ = await _room_with(service)
        await service.start_game(room_id)
        await service.begin_playing(room_id, 0)

        with pytest.raises(InvalidTransitionError):
            await service.start_round(room_id, None, 1)


class TestListAndReap:
    async def test_lists_public_waiting_rooms(self, service):
        public_id, _ = await _room_with(service, "Bob")
        await _room_with(service, settings=RoomSettings(is_private=True))
        started_id, _ = await _room_with(service)
        await service.start_game(started_id)

        listings = await service.list_public_rooms()

        assert [listing.room_id for listing in listings] == [public_id]
        assert listings[0].host_name == "Host"
        assert listings[0].player_count == 2

    async def test_skips_malformed_rooms(self, service, store):
        await store.connect().write("rooms/BROKEN", {"players": {"p-1": {"name": "x"}}})
        room_id, _ = await _room_with(service)

        assert [listing.room_id for listing in await service.list_public_rooms()] == [room_id]

    async def test_reaps_rooms_without_players(self, store, fast_settings):
        session = store.connect()
        service = RoomService(session, settings=fast_settings)
        abandoned_id, _ = await service.create_room("Gone", "", RoomSettings())
        session.disconnect()
        survivor = RoomService(store.connect(), settings=fast_settings)
        live_id, _ = await survivor.create_room("Here", "", RoomSettings())

        reaped = await survivor.reap_abandoned_rooms()

        assert reaped == [abandoned_id]
        assert set(store.snapshot("rooms")) == {live_id}

    async def test_reaps_rooms_left_to_bots(self, store, fast_settings):
        session = store.connect()
        service = RoomService(session, settings=fast_settings)
        abandoned_id, _ = await service.create_room("Gone", "", RoomSettings())
        await service.add_bot(abandoned_id)
        session.disconnect()
        survivor = RoomService(store.connect(), settings=fast_settings)
        live_id, _ = await survivor.create_room("Here", "", RoomSettings())
        await survivor.add_bot(live_id)

        reaped = await survivor.reap_abandoned_rooms()

        assert reaped == [abandoned_id]
        assert set(store.snapshot("rooms")) == {live_id}

    async def test_reaper_task_runs_periodically(self, store, fast_settings):
        session = store.connect()
        abandoned_id, _ = await RoomService(session, settings=fast_settings).create_room("Gone", "", RoomSettings())
        session.disconnect()
        service = RoomService(store.connect(), settings=fast_settings)

        service.start_room_reaper()
        service.start_room_reaper()
        try:
            await wait_until(lambda: store.snapshot(room_path(abandoned_id)) is None)
        finally:
            await service.stop_room_reaper()
