import random

import pytest

from party.session.room_service import RoomService
from party.session.settings import PartySettings
from party.store.memory import InMemoryStore
from party.tests.helpers.clock import FakeClock


@pytest.fixture
def fast_settings() -> PartySettings:
    """Timings shrunk so complete games run in a fraction of a second."""
    return PartySettings(
        lead_in_ms=0,
        transition_seconds=0.01,
        round_result_seconds=0.01,
        game_over_seconds=0.01,
        host_tick_seconds=0.005,
        bot_tick_seconds=0.005,
        display_tick_seconds=0.005,
        reaper_interval_seconds=0.01,
        word_count=10,
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(store, fast_settings, clock) -> RoomService:
    return RoomService(store.connect("service"), settings=fast_settings, rng=random.Random(7), clock=clock)
