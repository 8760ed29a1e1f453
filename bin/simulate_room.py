"""Run a complete party game on an in-memory store and print what happened.

The host is played by a scripted typist that advances like a bot; every
other seat is a bot. All phase timers are scaled by --time-scale so a game
finishes in seconds.

Usage:
    uv run python bin/simulate_room.py
    uv run python bin/simulate_room.py --bots 5 --rounds 6 --target-score 400
    uv run python bin/simulate_room.py --seed 7 --time-scale 0.01 --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys
import time

from party.logic.enums import GamePhase
from party.logic.progress import standings, winners
from party.logic.settings import MAX_PLAYERS_LIMIT, RoomSettings
from party.session.client import RoomClient
from party.session.settings import PartySettings
from party.store.memory import InMemoryStore
from shared.logging import setup_logging

DEFAULT_TIME_SCALE = 0.05


def _scaled_settings(scale: float) -> PartySettings:
    base = PartySettings()
    return PartySettings(
        lead_in_ms=int(base.lead_in_ms * scale),
        transition_seconds=base.transition_seconds * scale,
        round_result_seconds=base.round_result_seconds * scale,
        game_over_seconds=base.game_over_seconds * scale,
        host_tick_seconds=base.host_tick_seconds * scale,
        bot_tick_seconds=base.bot_tick_seconds * scale,
        display_tick_seconds=base.display_tick_seconds * scale,
        word_count=base.word_count,
    )


async def _play_round(client: RoomClient, rng: random.Random, tick: float) -> None:
    progress = 0.0
    while progress < 100:
        await asyncio.sleep(tick)
        room = client.room
        if room is None or room.phase != GamePhase.PLAYING:
            return
        progress = min(100.0, progress + 4 + rng.random() * 5)
        await client.report_progress(progress)
    await client.finish(mode_bonus=rng.randint(20, 60))


async def simulate(args: argparse.Namespace) -> int:
    rng = random.Random(args.seed)  # noqa: S311
    settings = _scaled_settings(args.time_scale)
    store = InMemoryStore()
    room_settings = RoomSettings(
        max_players=args.bots + 1,
        enable_bots=True,
        total_rounds=args.rounds,
        target_score=args.target_score,
    )

    client = await RoomClient.create(
        store.connect("simulator"),
        "Host",
        "",
        room_settings,
        settings=settings,
        rng=rng,
    )
    for _ in range(args.bots):
        await client.add_bot()

    started = time.monotonic()
    timeline: list[tuple[float, GamePhase, int]] = []
    game_over = asyncio.Event()
    play_task: asyncio.Task[None] | None = None

    def on_change(room) -> None:
        nonlocal play_task
        if room is None:
            game_over.set()
            return
        if timeline and timeline[-1][1:] == (room.phase, room.current_round):
            return
        timeline.append((time.monotonic() - started, room.phase, room.current_round))
        if room.phase == GamePhase.PLAYING:
            play_task = asyncio.create_task(_play_round(client, rng, settings.bot_tick_seconds))
        elif room.phase == GamePhase.GAME_OVER:
            game_over.set()

    client.add_listener(on_change)
    await client.start_game()
    try:
        await asyncio.wait_for(game_over.wait(), timeout=args.timeout)
    except TimeoutError:
        print(f"Game did not finish within {args.timeout}s", file=sys.stderr)
        return 1
    finally:
        if play_task is not None:
            play_task.cancel()

    room = client.room
    print("Timeline:")
    for elapsed, phase, round_index in timeline:
        print(f"  {elapsed:7.3f}s  {phase.value:<13} round {round_index + 1}")
    if room is not None:
        print()
        print("Standings:")
        for rank, player in enumerate(standings(room.players), start=1):
            marker = "*" if player in winners(room.players, room_settings.target_score) else " "
            print(f" {marker}{rank}. {player.name:<10} {player.score:>6}")
    await client.leave()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate a party game against bots on an in-memory store")
    parser.add_argument(
        "--bots",
        type=int,
        default=3,
        choices=range(1, MAX_PLAYERS_LIMIT),
        metavar=f"1-{MAX_PLAYERS_LIMIT - 1}",
        help="Number of bot players (default: 3)",
    )
    parser.add_argument("--rounds", type=int, default=4, help="Total rounds (default: 4)")
    parser.add_argument("--target-score", type=int, default=1000, help="Score that ends the game early (default: 1000)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for a reproducible game")
    parser.add_argument(
        "--time-scale",
        type=float,
        default=DEFAULT_TIME_SCALE,
        help=f"Multiplier applied to phase delays and tick intervals (default: {DEFAULT_TIME_SCALE})",
    )
    parser.add_argument("--timeout", type=float, default=120, help="Give up after this many seconds (default: 120)")
    parser.add_argument("--log-level", default="WARNING", help="Log level (default: WARNING)")
    args = parser.parse_args()

    setup_logging(log_dir=PartySettings().log_dir, level=getattr(logging, args.log_level.upper()))
    sys.exit(asyncio.run(simulate(args)))


if __name__ == "__main__":
    main()
