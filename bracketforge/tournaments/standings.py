"""
Standings and prize calculation.

Ordering by format:
  single / double elimination — still standing first, then wins descending
  round robin / swiss         — points (wins * 3 + draws), then tags
  battle royale               — recorded placement (unplaced = still alive)
Seed is the final tie-break everywhere so the order is deterministic.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime

from bracketforge.errors import Result
from bracketforge.tournaments.base import (
    BattleRoyaleSettings,
    CompletionResult,
    DoubleEliminationSettings,
    Participant,
    PrizeAward,
    RoundRobinSettings,
    SingleEliminationSettings,
    SpecialPrize,
    StandingEntry,
    SwissSettings,
    Tournament,
)
from bracketforge.tournaments.events import TournamentCompletedEvent, TournamentEvent

logger = logging.getLogger(__name__)


def _seed_key(p: Participant) -> float:
    return p.seed if p.seed is not None else math.inf


def order_participants(tournament: Tournament) -> list[Participant]:
    players = list(tournament.participants)
    match tournament.settings:
        case SingleEliminationSettings() | DoubleEliminationSettings():
            return sorted(players, key=lambda p: (p.eliminated, -p.stats.wins, _seed_key(p)))
        case RoundRobinSettings() | SwissSettings():
            return sorted(
                players, key=lambda p: (-p.stats.points, -p.stats.tags, _seed_key(p))
            )
        case BattleRoyaleSettings():
            return sorted(
                players,
                key=lambda p: (
                    p.placement is not None,
                    p.placement or 0,
                    _seed_key(p),
                ),
            )
        case _:
            raise ValueError(f"Unknown tournament settings: {tournament.settings!r}")


def compute_standings(tournament: Tournament) -> list[StandingEntry]:
    return [
        StandingEntry(
            rank=rank,
            participant_id=p.id,
            name=p.name,
            seed=p.seed,
            points=p.stats.points,
            wins=p.stats.wins,
            losses=p.stats.losses,
            draws=p.stats.draws,
            tags=p.stats.tags,
            survival_time=p.stats.survival_time,
            eliminated=p.eliminated,
            placement=p.placement,
        )
        for rank, p in enumerate(order_participants(tournament), 1)
    ]


def special_prize_winner(
    standings: list[StandingEntry], prize: SpecialPrize
) -> StandingEntry | None:
    """Best entry for a special-prize criterion; earlier standings win ties."""
    best: StandingEntry | None = None
    match prize.criteria:
        case "most_tags":
            for entry in standings:
                if entry.tags > (best.tags if best else 0):
                    best = entry
        case "longest_survival":
            for entry in standings:
                if entry.survival_time > (best.survival_time if best else 0):
                    best = entry
        case "underdog":
            # Lowest seed (highest seed number) that went deep
            for entry in standings:
                if entry.seed is None or (entry.eliminated and entry.wins < 2):
                    continue
                if best is None or entry.seed > (best.seed or 0):
                    best = entry
        case _:
            logger.warning("Unknown special prize criteria %r", prize.criteria)
    return best


def calculate_prizes(
    tournament: Tournament, standings: list[StandingEntry]
) -> list[PrizeAward]:
    prizes: list[PrizeAward] = []
    for share in tournament.prize_distribution:
        if share.place > len(standings):
            continue
        entry = standings[share.place - 1]
        prizes.append(
            PrizeAward(
                participant_id=entry.participant_id,
                participant_name=entry.name,
                place=share.place,
                amount=math.floor(tournament.prize_pool * share.percentage / 100),
                currency=tournament.entry_fee_type,
            )
        )

    for special in tournament.special_prizes:
        winner = special_prize_winner(standings, special)
        if winner is None:
            continue
        prizes.append(
            PrizeAward(
                participant_id=winner.participant_id,
                participant_name=winner.name,
                special=special.name,
                criteria=special.criteria,
                amount=special.reward.amount,
                currency=tournament.entry_fee_type,
                reward=special.reward,
            )
        )
    return prizes


def complete_tournament(
    tournament: Tournament, events: list[TournamentEvent], now: datetime
) -> Result[CompletionResult]:
    """
    Finalise standings and prizes.  Safe to call again: a completed tournament
    returns the result it already computed and emits nothing.
    """
    if tournament.status == "completed" and tournament.completion is not None:
        return Result.success(tournament.completion)
    if tournament.status != "in_progress":
        return Result.failure(
            "invalid_state", f"Tournament is {tournament.status}, not in progress"
        )
    if any(not m.is_terminal for m in tournament.matches):
        return Result.failure("invalid_state", "Matches are still outstanding")

    ordered = order_participants(tournament)
    for place, participant in enumerate(ordered, 1):
        if participant.placement is None:
            participant.placement = place

    standings = compute_standings(tournament)
    prizes = calculate_prizes(tournament, standings)
    tournament.completion = CompletionResult(standings=standings, prizes=prizes)
    tournament.status = "completed"
    tournament.end_time = now

    events.append(
        TournamentCompletedEvent(
            tournament_id=tournament.id,
            standing_ids=[s.participant_id for s in standings],
            prizes=prizes,
        )
    )
    logger.info(
        "Tournament %s completed; champion %s, %d prize(s)",
        tournament.id, standings[0].participant_id if standings else None, len(prizes),
    )
    return Result.success(tournament.completion)
