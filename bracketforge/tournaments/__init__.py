"""
Tournament package.

start_tournament() is the single entry point that turns a registered field
into a playable bracket; generate_bracket() dispatches to the per-format
generator.

To add a new format:
  1. Add a settings class (and layout, if it needs one) in base.py
  2. Create bracketforge/tournaments/<name>.py with the generator
  3. Add a case to generate_bracket() and to standings.order_participants()
"""

from __future__ import annotations

import logging
import random
from datetime import datetime

# base and events first: the modules below import them
from bracketforge.tournaments.base import (
    BattleRoyaleLayout,
    BattleRoyaleSettings,
    CompletionResult,
    DoubleEliminationSettings,
    FormatSettings,
    Match,
    Participant,
    PlacementEntry,
    PlayerIdentity,
    PrizeAward,
    PrizeShare,
    Reward,
    Round,
    RoundRobinSettings,
    SingleEliminationSettings,
    SpecialPrize,
    StandingEntry,
    StatDelta,
    SwissLayout,
    SwissSettings,
    Tournament,
    TournamentFormat,
)
from bracketforge.tournaments.events import (
    EVENT_NAMES,
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

from bracketforge.errors import Result
from bracketforge.tournaments.battle_royale import append_battle_royale_round
from bracketforge.tournaments.double_elimination import generate_double_elimination
from bracketforge.tournaments.results import advance_rounds, emit_ready
from bracketforge.tournaments.round_robin import generate_round_robin
from bracketforge.tournaments.seeding import seed_participants
from bracketforge.tournaments.single_elimination import generate_single_elimination
from bracketforge.tournaments.swiss import generate_swiss_round, swiss_total_rounds

__all__ = [
    # Model
    "BattleRoyaleSettings",
    "CompletionResult",
    "DoubleEliminationSettings",
    "FormatSettings",
    "Match",
    "Participant",
    "PlacementEntry",
    "PlayerIdentity",
    "PrizeAward",
    "PrizeShare",
    "Reward",
    "Round",
    "RoundRobinSettings",
    "SingleEliminationSettings",
    "SpecialPrize",
    "StandingEntry",
    "StatDelta",
    "SwissSettings",
    "Tournament",
    "TournamentFormat",
    # Events
    "EVENT_NAMES",
    "TournamentEvent",
    "RegistrationOpenedEvent",
    "PlayerRegisteredEvent",
    "PlayerPromotedEvent",
    "TournamentStartedEvent",
    "MatchReadyEvent",
    "MatchCompletedEvent",
    "RoundCompleteEvent",
    "TournamentCompletedEvent",
    "TournamentCancelledEvent",
    # Entry points
    "generate_bracket",
    "start_tournament",
]

logger = logging.getLogger(__name__)

MIN_FIELD = 2


def generate_bracket(tournament: Tournament, seeds: list[str]) -> list[int]:
    """
    Install the opening bracket for `seeds` on `tournament`.
    Returns ids of matches that are ready to play.
    """
    match tournament.settings:
        case SingleEliminationSettings():
            generated, layout = generate_single_elimination(seeds)
        case DoubleEliminationSettings():
            generated, layout = generate_double_elimination(seeds)
        case RoundRobinSettings():
            generated, layout = generate_round_robin(seeds)
        case SwissSettings(rounds=requested):
            tournament.layout = SwissLayout(total_rounds=swiss_total_rounds(len(seeds), requested))
            tournament.rounds, tournament.matches = [], []
            _, ready = generate_swiss_round(tournament)
            return ready
        case BattleRoyaleSettings(players_per_match=per_match):
            tournament.layout = BattleRoyaleLayout(players_per_match=per_match)
            tournament.rounds, tournament.matches = [], []
            _, ready = append_battle_royale_round(
                tournament.matches, tournament.rounds, seeds, per_match
            )
            return ready
        case _:
            raise ValueError(f"Unknown tournament settings: {tournament.settings!r}")

    tournament.layout = layout
    tournament.rounds = generated.rounds
    tournament.matches = generated.matches
    return generated.ready_ids


def start_tournament(
    tournament: Tournament,
    events: list[TournamentEvent],
    now: datetime,
    rng: random.Random | None = None,
) -> Result[Tournament]:
    """Drop no-shows, seed the field and build the bracket."""
    if tournament.status not in ("registration", "ready"):
        return Result.failure(
            "invalid_state", f"Tournament is {tournament.status}; cannot start"
        )

    checked_in = [p for p in tournament.participants if p.checked_in]
    required = max(tournament.min_players, MIN_FIELD)
    if len(checked_in) < required:
        return Result.failure(
            "insufficient_players",
            f"{len(checked_in)} player(s) checked in, {required} required",
        )

    tournament.participants = seed_participants(checked_in, tournament.seeding, rng)
    seeds = [p.id for p in tournament.participants]
    ready = generate_bracket(tournament, seeds)

    tournament.status = "in_progress"
    tournament.current_round = 1
    tournament.start_time = now

    events.append(
        TournamentStartedEvent(
            tournament_id=tournament.id,
            format=tournament.format,
            participant_ids=seeds,
            total_rounds=len(tournament.rounds),
        )
    )
    emit_ready(tournament, ready, events)
    advance_rounds(tournament, events)
    logger.info(
        "Tournament %s started: %s, %d players, %d round(s)",
        tournament.id, tournament.format, len(seeds), len(tournament.rounds),
    )
    return Result.success(tournament)
