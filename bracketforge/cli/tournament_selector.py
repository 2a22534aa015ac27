"""
Interactive setup for a simulated tournament.

Prompts for format, field size, seeding policy and prize pool, then
generates a line-up of simulated players with random ratings.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

from rich.console import Console
from rich.prompt import IntPrompt
from rich.table import Table

from bracketforge.config import TournamentDefaults
from bracketforge.tournaments.base import (
    FORMATS,
    PlayerIdentity,
    SeedingPolicy,
    TournamentFormat,
)
from bracketforge.tournaments.single_elimination import next_power_of_two

console = Console(legacy_windows=False)

_CALLSIGNS = (
    "Ace", "Blaze", "Comet", "Dash", "Echo", "Flux", "Ghost", "Havoc",
    "Ion", "Jinx", "Kilo", "Lynx", "Mako", "Nova", "Onyx", "Pixel",
    "Quill", "Rogue", "Sable", "Talon", "Umbra", "Vex", "Wisp", "Xeno",
    "Yeti", "Zephyr", "Astra", "Bolt", "Cinder", "Drift", "Ember", "Frost",
)

_SEEDINGS: tuple[SeedingPolicy, ...] = ("rating", "random", "registration")


@dataclass
class SimulationSettings:
    format: TournamentFormat
    field_size: int
    seeding: SeedingPolicy
    prize_pool: int
    players_per_match: int


def select_tournament_settings(defaults: TournamentDefaults) -> SimulationSettings:
    """Prompt the user for everything needed to run a simulated tournament."""
    console.print()

    console.print("[bold]Tournament format:[/]")
    for i, fmt in enumerate(FORMATS, 1):
        console.print(f"  {i}. {fmt.replace('_', ' ').title()}")
    choices = [str(i) for i in range(1, len(FORMATS) + 1)]
    fmt = FORMATS[IntPrompt.ask("\nSelect format", choices=choices, default=1) - 1]

    max_field = max(defaults.max_players, 2)
    while True:
        field_size = IntPrompt.ask(
            f"Number of players [dim](2-{max_field})[/]", default=min(8, max_field)
        )
        if 2 <= field_size <= max_field:
            break
        console.print(f"  [red]Enter a number between 2 and {max_field}.[/]")

    players_per_match = defaults.players_per_match
    if fmt == "battle_royale":
        players_per_match = max(
            2, IntPrompt.ask("Players per match", default=defaults.players_per_match)
        )

    console.print("\n[bold]Seeding:[/]")
    console.print("  1. By rating  [dim](default)[/]")
    console.print("  2. Random")
    console.print("  3. Registration order")
    seeding = _SEEDINGS[IntPrompt.ask("Select", choices=["1", "2", "3"], default=1) - 1]

    prize_pool = max(0, IntPrompt.ask("Prize pool", default=defaults.prize_pool or 1000))

    console.print()
    return SimulationSettings(
        format=fmt,
        field_size=field_size,
        seeding=seeding,
        prize_pool=prize_pool,
        players_per_match=players_per_match,
    )


def generate_line_up(count: int, rng: random.Random) -> list[PlayerIdentity]:
    players = []
    for i in range(count):
        callsign = _CALLSIGNS[i % len(_CALLSIGNS)]
        if i >= len(_CALLSIGNS):
            callsign += f" {i // len(_CALLSIGNS) + 1}"
        players.append(
            PlayerIdentity(id=f"p{i + 1}", name=callsign, rating=rng.randint(800, 2200))
        )
    return players


def print_line_up(players: list[PlayerIdentity], fmt: TournamentFormat) -> None:
    table = Table(
        title="Tournament Line-up",
        show_header=True,
        header_style="bold",
        border_style="green",
        show_lines=False,
    )
    table.add_column("#", style="dim", width=4, justify="right")
    table.add_column("Name", min_width=20)
    table.add_column("Rating", justify="right")

    for i, p in enumerate(players, 1):
        table.add_row(str(i), p.name, str(p.rating))

    console.print()
    console.print(table)
    if fmt in ("single_elimination", "double_elimination"):
        byes = next_power_of_two(len(players)) - len(players)
        if byes:
            console.print(
                f"  [dim]ℹ  {byes} bye(s) will be awarded to the top {byes} seed(s) in round 1.[/]"
            )
    console.print()
