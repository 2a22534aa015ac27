"""
Match result processor — the per-match state machine.

    pending → ready → in_progress → completed
    pending → bye          (settled by the bracket, never reported)
    ready / in_progress → forfeit

After any match finishes the processor, in order:
  1. pushes the winner (and, in double elimination, the loser) forward
  2. marks finished rounds complete and advances current_round, generating the
     next Swiss / battle-royale round when the last known round finishes
  3. completes the tournament once nothing is left to play
"""

from __future__ import annotations

import logging
from datetime import datetime

from bracketforge.errors import BracketIntegrityError, Result
from bracketforge.tournaments.base import (
    BattleRoyaleSettings,
    DoubleEliminationLayout,
    DoubleEliminationSettings,
    Match,
    Participant,
    PlacementEntry,
    Round,
    RoundRobinSettings,
    SingleEliminationSettings,
    StatDelta,
    SwissSettings,
    Tournament,
)
from bracketforge.tournaments.battle_royale import is_final_round, next_battle_royale_round
from bracketforge.tournaments.bracket import advance, new_match, settle
from bracketforge.tournaments.double_elimination import GRAND_FINALS_RESET
from bracketforge.tournaments.events import (
    MatchCompletedEvent,
    MatchReadyEvent,
    RoundCompleteEvent,
    TournamentEvent,
)
from bracketforge.tournaments.standings import complete_tournament
from bracketforge.tournaments.swiss import generate_swiss_round

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------ #
# Public operations                                                    #
# ------------------------------------------------------------------ #

def start_match(tournament: Tournament, match_id: int) -> Result[Match]:
    found = _find_match(tournament, match_id)
    if not found.ok:
        return found
    match = found.unwrap()
    if match.status != "ready":
        return Result.failure("invalid_state", f"Match {match_id} is {match.status}, not ready")
    match.status = "in_progress"
    return Result.success(match)


def report_match_result(
    tournament: Tournament,
    match_id: int,
    winner_id: str,
    loser_id: str,
    events: list[TournamentEvent],
    now: datetime,
    scores: dict[str, int] | None = None,
    stats: dict[str, StatDelta] | None = None,
    draw: bool = False,
) -> Result[Match]:
    found = _find_playable(tournament, match_id)
    if not found.ok:
        return found
    match = found.unwrap()
    if match.is_battle_royale:
        return Result.failure(
            "invalid_state", f"Match {match_id} is a battle royale group; report placements"
        )
    if winner_id == loser_id or {winner_id, loser_id} != set(match.participant_ids):
        return Result.failure(
            "invalid_state",
            f"{winner_id!r} and {loser_id!r} are not the participants of match {match_id}",
        )
    if draw and not isinstance(tournament.settings, (RoundRobinSettings, SwissSettings)):
        return Result.failure("invalid_state", f"Draws are not allowed in {tournament.format}")

    winner = _member(tournament, winner_id)
    loser = _member(tournament, loser_id)
    match.scores = dict(scores or {})
    match.status = "completed"
    match.completed_at = now

    for pid, delta in (stats or {}).items():
        if pid in (winner_id, loser_id):
            _apply_delta(_member(tournament, pid), delta)

    if draw:
        match.is_draw = True
        winner.stats.draws += 1
        loser.stats.draws += 1
    else:
        match.winner_id = winner_id
        match.loser_id = loser_id
        winner.stats.wins += 1
        loser.stats.losses += 1
        _apply_elimination(tournament, loser)

    logger.info(
        "Tournament %s: match %d %s",
        tournament.id, match.id,
        f"drawn between {winner_id} and {loser_id}" if draw else f"won by {winner_id} over {loser_id}",
    )
    events.append(
        MatchCompletedEvent(
            tournament_id=tournament.id,
            match_id=match.id,
            round_num=match.round,
            status=match.status,
            winner_id=match.winner_id,
            loser_id=match.loser_id,
            is_draw=match.is_draw,
        )
    )

    if not draw:
        _maybe_reset_grand_finals(tournament, match, events)
    _after_match(tournament, match, events, now)
    return Result.success(match)


def report_forfeit(
    tournament: Tournament,
    match_id: int,
    forfeiting_id: str,
    events: list[TournamentEvent],
    now: datetime,
) -> Result[Match]:
    found = _find_playable(tournament, match_id)
    if not found.ok:
        return found
    match = found.unwrap()
    if match.is_battle_royale:
        return Result.failure("invalid_state", "Battle royale groups cannot be forfeited")
    if forfeiting_id not in match.participant_ids:
        return Result.failure(
            "invalid_state", f"{forfeiting_id!r} is not a participant of match {match_id}"
        )

    winner_id = next(pid for pid in match.participant_ids if pid != forfeiting_id)
    winner = _member(tournament, winner_id)
    loser = _member(tournament, forfeiting_id)
    match.status = "forfeit"
    match.completed_at = now
    match.winner_id = winner_id
    match.loser_id = forfeiting_id

    winner.stats.wins += 1
    loser.stats.losses += 1
    _apply_elimination(tournament, loser)

    logger.info("Tournament %s: %s forfeited match %d", tournament.id, forfeiting_id, match.id)
    events.append(
        MatchCompletedEvent(
            tournament_id=tournament.id,
            match_id=match.id,
            round_num=match.round,
            status=match.status,
            winner_id=winner_id,
            loser_id=forfeiting_id,
        )
    )
    _maybe_reset_grand_finals(tournament, match, events)
    _after_match(tournament, match, events, now)
    return Result.success(match)


def report_battle_royale_result(
    tournament: Tournament,
    match_id: int,
    placements: list[PlacementEntry],
    events: list[TournamentEvent],
    now: datetime,
) -> Result[Match]:
    found = _find_playable(tournament, match_id)
    if not found.ok:
        return found
    match = found.unwrap()
    if not match.is_battle_royale:
        return Result.failure("invalid_state", f"Match {match_id} is not a battle royale group")

    order = [entry.participant_id for entry in placements]
    if len(order) != len(set(order)) or set(order) != set(match.participant_ids):
        return Result.failure(
            "invalid_state",
            f"Placements must list every member of match {match_id} exactly once",
        )

    rnd = tournament.rounds[match.round - 1]
    final = is_final_round(rnd)
    qualify = match.qualify_count or 0
    qualifiers_in_round = sum(
        tournament.matches[mid].qualify_count or 0 for mid in rnd.match_ids
    )

    match.placements = order
    match.winner_id = order[0]
    match.status = "completed"
    match.completed_at = now

    for index, entry in enumerate(placements):
        participant = _member(tournament, entry.participant_id)
        _apply_delta(participant, StatDelta(tags=entry.tags, survival_time=entry.survival_time))
        if index == 0:
            participant.stats.wins += 1
        if final:
            participant.placement = index + 1
            if index > 0:
                participant.eliminated = True
                participant.stats.losses += 1
        elif index >= qualify:
            participant.eliminated = True
            participant.stats.losses += 1
            # Same finishing position in parallel groups shares a placement
            participant.placement = qualifiers_in_round + (index - qualify) + 1

    qualifiers = order[:1] if final else order[:qualify]
    logger.info(
        "Tournament %s: battle royale match %d finished, %d qualify",
        tournament.id, match.id, len(qualifiers),
    )
    events.append(
        MatchCompletedEvent(
            tournament_id=tournament.id,
            match_id=match.id,
            round_num=match.round,
            status=match.status,
            winner_id=match.winner_id,
            loser_id=None,
            qualifier_ids=qualifiers,
        )
    )
    _after_match(tournament, match, events, now)
    return Result.success(match)


# ------------------------------------------------------------------ #
# Progression                                                          #
# ------------------------------------------------------------------ #

def emit_ready(tournament: Tournament, ready_ids: list[int], events: list[TournamentEvent]) -> None:
    for mid in ready_ids:
        match = tournament.matches[mid]
        events.append(
            MatchReadyEvent(
                tournament_id=tournament.id,
                match_id=mid,
                round_num=match.round,
                participant_ids=match.participant_ids,
            )
        )


def advance_rounds(tournament: Tournament, events: list[TournamentEvent]) -> None:
    """Complete finished rounds in order, materialising lazy rounds as needed."""
    while 0 < tournament.current_round <= len(tournament.rounds):
        rnd = tournament.rounds[tournament.current_round - 1]
        if not rnd.completed:
            if not all(tournament.matches[mid].is_terminal for mid in rnd.match_ids):
                return
            rnd.completed = True
            events.append(
                RoundCompleteEvent(
                    tournament_id=tournament.id, round_num=rnd.number, round_name=rnd.name
                )
            )
            logger.info("Tournament %s: %s complete", tournament.id, rnd.name)
            if tournament.current_round == len(tournament.rounds):
                _extend_lazy_rounds(tournament, events)
        if tournament.current_round >= len(tournament.rounds):
            return
        tournament.current_round += 1


def has_outstanding_matches(tournament: Tournament) -> bool:
    return any(not m.is_terminal for m in tournament.matches)


def _after_match(
    tournament: Tournament, match: Match, events: list[TournamentEvent], now: datetime
) -> None:
    emit_ready(tournament, advance(tournament.matches, match), events)
    advance_rounds(tournament, events)
    if not has_outstanding_matches(tournament):
        complete_tournament(tournament, events, now)


def _extend_lazy_rounds(tournament: Tournament, events: list[TournamentEvent]) -> None:
    match tournament.settings:
        case SwissSettings():
            _, ready = generate_swiss_round(tournament)
        case BattleRoyaleSettings():
            _, ready = next_battle_royale_round(tournament)
        case _:
            return
    emit_ready(tournament, ready, events)


def _maybe_reset_grand_finals(
    tournament: Tournament, match: Match, events: list[TournamentEvent]
) -> None:
    """Spawn the bracket-reset match when the losers-bracket champion wins Grand Finals."""
    layout = tournament.layout
    if not isinstance(layout, DoubleEliminationLayout):
        return
    if match.id != layout.grand_finals_id or layout.reset_match_id is not None:
        return
    winners_champion = tournament.matches[layout.winners_final_id].winner_id
    if match.winner_id == winners_champion:
        return

    layout.requires_reset = True
    number = len(tournament.rounds) + 1
    reset = new_match(
        tournament.matches, number, 0, [winners_champion, match.winner_id],
        bracket="grand_finals",
    )
    tournament.rounds.append(
        Round(number=number, name=GRAND_FINALS_RESET, match_ids=[reset.id], bracket="grand_finals")
    )
    layout.reset_match_id = reset.id
    emit_ready(tournament, settle(tournament.matches, reset), events)
    logger.info("Tournament %s: bracket reset, match %d added", tournament.id, reset.id)


# ------------------------------------------------------------------ #
# Helpers                                                              #
# ------------------------------------------------------------------ #

def _find_match(tournament: Tournament, match_id: int) -> Result[Match]:
    match = tournament.match(match_id)
    if match is None:
        return Result.failure("not_found", f"Match {match_id} not found")
    if tournament.status != "in_progress":
        return Result.failure(
            "invalid_state", f"Tournament is {tournament.status}, not in progress"
        )
    return Result.success(match)


def _find_playable(tournament: Tournament, match_id: int) -> Result[Match]:
    found = _find_match(tournament, match_id)
    if not found.ok:
        return found
    match = found.unwrap()
    if match.status == "completed":
        return Result.failure("invalid_state", f"Match {match_id} is already completed")
    if match.status not in ("ready", "in_progress"):
        return Result.failure(
            "invalid_state", f"Match {match_id} is {match.status} and cannot take a result"
        )
    return Result.success(match)


def _member(tournament: Tournament, participant_id: str) -> Participant:
    participant = tournament.participant(participant_id)
    if participant is None:
        raise BracketIntegrityError(
            f"Match slot holds {participant_id!r}, who is not in tournament {tournament.id}"
        )
    return participant


def _apply_delta(participant: Participant, delta: StatDelta) -> None:
    participant.stats.tags += delta.tags
    participant.stats.survival_time += delta.survival_time


def _apply_elimination(tournament: Tournament, loser: Participant) -> None:
    match tournament.settings:
        case SingleEliminationSettings():
            loser.eliminated = True
        case DoubleEliminationSettings():
            loser.eliminated = loser.stats.losses >= 2
        case _:
            pass
