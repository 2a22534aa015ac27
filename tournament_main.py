"""
BracketForge — interactive tournament simulation.

Usage:
    python tournament_main.py

Wires together:
    config → tournament settings → registry → simulated results → CLI display

Every result goes through the same TournamentRegistry API the web server
uses, so this doubles as an end-to-end smoke test of the engine.
"""

from __future__ import annotations

import asyncio
import logging
import random
import signal
import sys
from pathlib import Path

from rich.logging import RichHandler

from bracketforge.cli.tournament_display import (
    console,
    display_tournament_event,
    render_bracket,
    render_standings,
)
from bracketforge.cli.tournament_selector import (
    generate_line_up,
    print_line_up,
    select_tournament_settings,
)
from bracketforge.config import Config, load_config
from bracketforge.errors import Result
from bracketforge.notifier import EventNotifier
from bracketforge.registry import TournamentRegistry
from bracketforge.storage import JsonTournamentStore, MemoryTournamentStore
from bracketforge.tournaments.base import Match, PlacementEntry, StatDelta, Tournament

_DRAW_CHANCE = 0.1


async def _main(stop_event: asyncio.Event) -> None:
    try:
        config = load_config(Path("config.yaml"), missing_ok=True)
    except ValueError as exc:
        console.print(f"[red]Config error:[/] {exc}")
        sys.exit(1)

    logging.basicConfig(
        level=config.engine.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    # Engine INFO logs duplicate the event display
    logging.getLogger("bracketforge").setLevel(logging.WARNING)

    rng = random.Random(config.engine.rng_seed)
    registry = _build_registry(config, rng)
    await registry.load()

    settings = select_tournament_settings(config.defaults)
    players = generate_line_up(settings.field_size, rng)
    print_line_up(players, settings.format)
    names = {p.id: p.name for p in players}

    registry.notifier.subscribe(lambda event: display_tournament_event(event, names))

    created = await registry.create_tournament(
        {
            "name": f"{settings.format.replace('_', ' ').title()} Showdown",
            "format": settings.format,
            "seeding": settings.seeding,
            "min_players": 2,
            "max_players": max(settings.field_size, 2),
            "prize_pool": settings.prize_pool,
            "settings": {"players_per_match": settings.players_per_match},
            "special_prizes": [
                {"name": "Sharpshooter", "criteria": "most_tags", "reward": {"amount": 50}},
                {"name": "Survivor", "criteria": "longest_survival", "reward": {"amount": 50}},
                {"name": "Giant Killer", "criteria": "underdog", "reward": {"title": "Giant Killer"}},
            ],
        }
    )
    tid = _check(created)

    _check(await registry.open_registration(tid))
    for player in players:
        _check(await registry.register_player(tid, player, fee_paid=True))
        _check(await registry.check_in(tid, player.id))
    _check(await registry.start_tournament(tid))
    await registry.notifier.drain()

    while not stop_event.is_set():
        tournament = registry.get_tournament(tid).unwrap()
        if tournament.status != "in_progress":
            break
        playable = [m for m in tournament.matches if m.status in ("ready", "in_progress")]
        if not playable:
            console.print("[red]No playable matches left; the bracket is stuck.[/]")
            break
        for match in playable:
            await _simulate(registry, tournament, match, rng)
            await registry.notifier.drain()
            if stop_event.is_set():
                break

    render_bracket(registry.get_bracket(tid).unwrap(), names)
    render_standings(registry.get_standings(tid).unwrap(), title="Final Standings")
    await registry.flush()


def _build_registry(config: Config, rng: random.Random) -> TournamentRegistry:
    storage_dir = config.storage_dir_path
    store = JsonTournamentStore(storage_dir) if storage_dir else MemoryTournamentStore()
    return TournamentRegistry(
        store,
        EventNotifier(history_size=config.engine.event_history),
        rng=rng,
        defaults=config.defaults,
        default_seeding=config.engine.default_seeding,
    )


async def _simulate(
    registry: TournamentRegistry, tournament: Tournament, match: Match, rng: random.Random
) -> None:
    """Play one match with rating-weighted random outcomes."""
    ratings = {p.id: p.rating for p in tournament.participants}

    if match.is_battle_royale:
        remaining = list(match.participant_ids)
        order: list[str] = []
        while remaining:
            pick = rng.choices(remaining, weights=[ratings[p] for p in remaining])[0]
            remaining.remove(pick)
            order.append(pick)
        placements = [
            PlacementEntry(
                participant_id=pid,
                tags=rng.randint(0, 8),
                survival_time=round(rng.uniform(30, 600), 1),
            )
            for pid in order
        ]
        _check(await registry.report_battle_royale_result(tournament.id, match.id, placements))
        return

    a, b = match.participant_ids
    can_draw = tournament.format in ("round_robin", "swiss")
    draw = can_draw and rng.random() < _DRAW_CHANCE
    winner = rng.choices([a, b], weights=[ratings[a], ratings[b]])[0]
    loser = b if winner == a else a
    _check(
        await registry.report_match_result(
            tournament.id,
            match.id,
            winner,
            loser,
            scores={winner: rng.randint(3, 5), loser: rng.randint(0, 2)},
            stats={pid: StatDelta(tags=rng.randint(0, 5)) for pid in (a, b)},
            draw=draw,
        )
    )


def _check(result: Result):
    error = result.error
    if error is not None:
        console.print(f"[red]{error.kind}:[/] {error.reason}")
        sys.exit(1)
    return result.value


def main() -> None:
    async def _run() -> None:
        stop_event = asyncio.Event()
        original_sigint = signal.getsignal(signal.SIGINT)

        def _on_sigint(sig: int, frame: object) -> None:
            if not stop_event.is_set():
                stop_event.set()
                console.print("\n[yellow]Stopping after the current match…[/]")
                signal.signal(signal.SIGINT, original_sigint)
            else:
                sys.exit(1)

        signal.signal(signal.SIGINT, _on_sigint)
        await _main(stop_event)

    asyncio.run(_run())


if __name__ == "__main__":
    main()
