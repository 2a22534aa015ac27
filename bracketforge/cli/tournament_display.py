"""
Rich-based CLI consumer for TournamentEvent objects.

display_tournament_event() renders one event as it arrives from the
notifier; render_bracket(), render_standings() and render_prizes() draw
snapshots taken from the registry.

Events only carry participant ids, so every renderer accepts an optional
id -> display name map.
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from bracketforge.registry import BracketView
from bracketforge.tournaments.base import Match, PrizeAward, StandingEntry
from bracketforge.tournaments.events import (
    MatchCompletedEvent,
    MatchReadyEvent,
    PlayerPromotedEvent,
    PlayerRegisteredEvent,
    RegistrationOpenedEvent,
    RoundCompleteEvent,
    TournamentCancelledEvent,
    TournamentCompletedEvent,
    TournamentEvent,
    TournamentStartedEvent,
)

console = Console(legacy_windows=False)

_STATUS_STYLE = {
    "pending": "dim",
    "ready": "bold cyan",
    "in_progress": "bold yellow",
    "completed": "green",
    "bye": "dim italic",
    "forfeit": "red",
}


def display_tournament_event(
    event: TournamentEvent, names: dict[str, str] | None = None
) -> None:
    """Dispatch a TournamentEvent to the appropriate display function."""
    names = names or {}
    match event:
        case RegistrationOpenedEvent():
            console.print(f"[bold green]Registration open:[/] {event.tournament_name}")
        case PlayerRegisteredEvent():
            console.print(
                f"  [dim]#{event.position}[/] [bold]{event.participant_name}[/] registered"
            )
        case PlayerPromotedEvent():
            console.print(
                f"  [yellow]↑[/] [bold]{event.participant_name}[/] promoted from the waitlist"
            )
        case TournamentStartedEvent():
            _tournament_started(event, names)
        case MatchReadyEvent():
            players = "  vs  ".join(f"[bold]{_name(p, names)}[/]" for p in event.participant_ids)
            console.print(f"[bright_blue]▶ Match {event.match_id}[/] [dim](round {event.round_num})[/]  {players}")
        case MatchCompletedEvent():
            _match_completed(event, names)
        case RoundCompleteEvent():
            console.print()
            console.rule(f"[dim]{event.round_name} complete[/]", style="dim")
        case TournamentCompletedEvent():
            _tournament_completed(event, names)
        case TournamentCancelledEvent():
            console.print(f"[red]Tournament {event.tournament_id} cancelled[/]")


# --------------------------------------------------------------------------- #
# Event display                                                                #
# --------------------------------------------------------------------------- #

def _tournament_started(event: TournamentStartedEvent, names: dict[str, str]) -> None:
    seeded = "\n".join(
        f"  [dim]{seed:>2}.[/] {_name(pid, names)}"
        for seed, pid in enumerate(event.participant_ids, 1)
    )
    console.print()
    console.print(
        Panel(
            f"[bold]{event.format.replace('_', ' ').title()}[/]\n\n"
            f"[dim]Seeds ({len(event.participant_ids)}):[/]\n{seeded}\n\n"
            f"[dim]Rounds: {event.total_rounds}  •  "
            f"{event.timestamp.strftime('%Y-%m-%d %H:%M:%S')}[/]",
            title="[bold green] Tournament Started [/]",
            border_style="green",
            expand=False,
        )
    )


def _match_completed(event: MatchCompletedEvent, names: dict[str, str]) -> None:
    if event.qualifier_ids:
        qualified = ", ".join(_name(p, names) for p in event.qualifier_ids)
        summary = f"[green]✓[/] Match {event.match_id}: [bold]{qualified}[/] qualify"
    elif event.is_draw:
        summary = f"[yellow]½[/] Match {event.match_id} drawn"
    elif event.status == "forfeit":
        summary = (
            f"[red]✗[/] Match {event.match_id}: {_name(event.loser_id, names)} forfeits, "
            f"[bold]{_name(event.winner_id, names)}[/] advances"
        )
    else:
        summary = (
            f"[green]✓[/] Match {event.match_id}: [bold]{_name(event.winner_id, names)}[/] "
            f"beats {_name(event.loser_id, names)}"
        )
    console.print(f"  {summary}")


def _tournament_completed(event: TournamentCompletedEvent, names: dict[str, str]) -> None:
    champion = _name(event.standing_ids[0], names) if event.standing_ids else "—"
    console.print()
    console.print(
        Panel(
            f"[bold yellow]★  {champion}[/]\n\n"
            f"[dim]{event.timestamp.strftime('%Y-%m-%d %H:%M:%S')}[/]",
            title="[bold green] Tournament Champion [/]",
            border_style="yellow",
            expand=False,
        )
    )
    if event.prizes:
        render_prizes(event.prizes)


# --------------------------------------------------------------------------- #
# Snapshots                                                                    #
# --------------------------------------------------------------------------- #

def render_bracket(view: BracketView, names: dict[str, str] | None = None) -> None:
    names = names or {}
    for rnd in view.rounds:
        marker = "  [green]✓[/]" if rnd.completed else ""
        table = Table(
            title=f"{rnd.name}{marker}",
            show_header=True,
            header_style="bold",
            border_style="dim",
            show_lines=False,
        )
        table.add_column("Match", style="dim", width=6)
        table.add_column("Players", min_width=30)
        table.add_column("Status", width=12)
        table.add_column("Winner", min_width=16)

        for mid in rnd.match_ids:
            m = view.matches[mid]
            table.add_row(
                str(m.id),
                _players(m, names),
                f"[{_STATUS_STYLE[m.status]}]{m.status}[/]",
                "draw" if m.is_draw else _name(m.winner_id, names) if m.winner_id else "",
            )
        console.print()
        console.print(table)


def render_standings(standings: list[StandingEntry], title: str = "Standings") -> None:
    table = Table(
        title=title,
        show_header=True,
        header_style="bold",
        border_style="dim",
        show_lines=False,
    )
    table.add_column("#", style="dim", width=3, justify="right")
    table.add_column("Name", min_width=20)
    table.add_column("Seed", justify="right", width=5)
    table.add_column("W", justify="center", width=4)
    table.add_column("D", justify="center", width=4)
    table.add_column("L", justify="center", width=4)
    table.add_column("Pts", justify="right", width=5)
    table.add_column("Tags", justify="right", width=5)
    table.add_column("Status", width=10)

    for entry in standings:
        table.add_row(
            str(entry.rank),
            entry.name,
            str(entry.seed or ""),
            str(entry.wins),
            str(entry.draws),
            str(entry.losses),
            str(entry.points),
            str(entry.tags),
            "[red]out[/]" if entry.eliminated else "[green]alive[/]",
            style="bold yellow" if entry.rank == 1 else "",
        )

    console.print()
    console.print(table)


def render_prizes(prizes: list[PrizeAward]) -> None:
    table = Table(title="Prizes", show_header=True, header_style="bold", border_style="dim")
    table.add_column("Award", min_width=14)
    table.add_column("Winner", min_width=20)
    table.add_column("Amount", justify="right")

    for prize in prizes:
        label = f"#{prize.place}" if prize.place is not None else prize.special or ""
        amount = f"{prize.amount} {prize.currency}"
        if prize.reward and prize.reward.title:
            amount += f"  [dim]“{prize.reward.title}”[/]"
        table.add_row(label, prize.participant_name, amount)

    console.print()
    console.print(table)


def _players(match: Match, names: dict[str, str]) -> str:
    shown = [f"[bold]{_name(p, names)}[/]" if p else "[dim]TBD[/]" for p in match.slots]
    if match.status == "bye" and not match.participant_ids:
        return "[dim]empty[/]"
    return "  vs  ".join(shown)


def _name(participant_id: str | None, names: dict[str, str]) -> str:
    if participant_id is None:
        return "—"
    return names.get(participant_id, participant_id)
