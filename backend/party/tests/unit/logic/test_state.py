import logging

from party.logic.enums import GamePhase, Language, PlayerStatus
from party.logic.settings import RoomSettings
from party.logic.state import RoomDocument, normalize_name, player_key
from party.tests.helpers.rooms import create_player, create_room


class TestRoomDocumentSnapshot:
    def test_from_snapshot_returns_none_for_missing_room(self):
        assert RoomDocument.from_snapshot(None) is None
        assert RoomDocument.from_snapshot({}) is None

    def test_missing_collections_default_to_empty(self):
        raw = {
            "id": "ROOM42",
            "host_id": "host-1",
            "settings": {"max_players": 4},
            "phase": "WAITING_ROOM",
        }
        room = RoomDocument.from_snapshot(raw)

        assert room is not None
        assert room.players == {}
        assert room.words == []
        assert room.rounds == []
        assert room.start_time is None
        assert room.lang == Language.EN

    def test_to_snapshot_omits_absent_start_time_and_uses_plain_values(self):
        room = create_room()
        snapshot = room.to_snapshot()

        assert "start_time" not in snapshot
        assert snapshot["phase"] == "WAITING_ROOM"
        assert snapshot["players"]["host-1"]["status"] == "IDLE"

    def test_snapshot_survives_reparse(self):
        room = create_room([create_player("host-1"), create_player("p-2", score=120)], start_time=5000)

        assert RoomDocument.from_snapshot(room.to_snapshot()) == room

    def test_partial_player_entry_is_dropped(self):
        raw = create_room([create_player("host-1")]).to_snapshot()
        raw["players"]["p-gone"] = {"status": "PLAYING", "progress": 0}

        room = RoomDocument.from_snapshot(raw)

        assert room is not None
        assert list(room.players) == ["host-1"]

    def test_partial_entry_is_logged(self, caplog):
        raw = create_room([create_player("host-1")]).to_snapshot()
        raw["players"]["p-gone"] = {"progress": 40}

        with caplog.at_level(logging.WARNING):
            RoomDocument.from_snapshot(raw)

        assert any("dropping partial player entry" in r.getMessage() for r in caplog.records)


class TestRoomDocumentQueries:
    def test_is_full_counts_bots(self):
        room = create_room(
            [create_player("host-1"), create_player("bot-1", is_bot=True)],
            settings=RoomSettings(max_players=2),
        )

        assert room.is_full is True

    def test_name_taken_ignores_case_and_whitespace(self):
        room = create_room([create_player("host-1", "Alice")])

        assert room.name_taken("  alice ") is True
        assert room.name_taken("ALICE") is True
        assert room.name_taken("Alicia") is False

    def test_round_config_follows_current_round(self):
        room = create_room(current_round=1)

        assert room.round_config is not None
        assert room.round_config.round_number == 2

    def test_round_config_out_of_range_is_none(self):
        room = create_room(current_round=10)

        assert room.round_config is None

    def test_is_last_round(self):
        assert create_room(current_round=3).is_last_round is True
        assert create_room(current_round=2).is_last_round is False

    def test_host_lookup(self):
        room = create_room([create_player("p-1")], host_id="host-gone")

        assert room.host is None

    def test_human_ids_exclude_bots(self):
        room = create_room([create_player("p-9"), create_player("bot-1", is_bot=True), create_player("host-1")])
        bots_only = create_room([create_player("bot-1", is_bot=True)])

        assert room.human_ids == ["host-1", "p-9"]
        assert room.has_humans is True
        assert bots_only.has_humans is False

    def test_sorted_player_ids(self):
        room = create_room([create_player("p-9"), create_player("p-2"), create_player("host-1")])

        assert room.sorted_player_ids == ["host-1", "p-2", "p-9"]

    def test_player_is_finished(self):
        assert create_player(status=PlayerStatus.FINISHED).is_finished is True
        assert create_player(status=PlayerStatus.PLAYING).is_finished is False

    def test_default_phase(self):
        assert create_room().phase == GamePhase.WAITING_ROOM


class TestHelpers:
    def test_normalize_name(self):
        assert normalize_name("  Bob ") == "bob"

    def test_player_key(self):
        assert player_key("p-1") == "players/p-1"
        assert player_key("p-1", "progress") == "players/p-1/progress"
