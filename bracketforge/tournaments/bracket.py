"""
Match-graph helpers shared by the generators and the result processor.

A match "settles" once it can no longer wait for anybody:
  - every slot is filled            → ready
  - every feeder match is terminal  → bye (the lone participant walks over,
                                      or nobody does and the match is void)

Settling a bye advances its winner, which may settle the next match, and so
on.  That is how byes cascade through a bracket without anyone reporting.
"""

from __future__ import annotations

import logging
from datetime import datetime

from bracketforge.errors import BracketIntegrityError
from bracketforge.tournaments.base import Match, Round, Tournament

logger = logging.getLogger(__name__)


def new_match(
    matches: list[Match],
    round_num: int,
    position: int,
    slots: list[str | None],
    **kwargs,
) -> Match:
    """Append a match to the arena, keeping matches[i].id == i."""
    match = Match(id=len(matches), round=round_num, position=position, slots=slots, **kwargs)
    matches.append(match)
    return match


def place_participant(match: Match, participant_id: str) -> None:
    """Slot a participant into the first empty slot of `match`."""
    for i, slot in enumerate(match.slots):
        if slot is None:
            match.slots[i] = participant_id
            return
    raise BracketIntegrityError(
        f"Match {match.id} has no free slot for participant {participant_id!r}"
    )


def settle(matches: list[Match], match: Match) -> list[int]:
    """
    Move a pending match forward if nothing more can arrive.
    Returns ids of matches that became ready as a consequence.
    """
    if match.status != "pending":
        return []
    if match.is_filled:
        match.status = "ready"
        return [match.id]
    if all(matches[p].is_terminal for p in match.previous_match_ids):
        present = match.participant_ids
        match.status = "bye"
        match.winner_id = present[0] if present else None
        match.completed_at = datetime.now()
        logger.debug("Match %d resolved as bye (winner=%s)", match.id, match.winner_id)
        return advance(matches, match)
    return []


def advance(matches: list[Match], match: Match) -> list[int]:
    """
    Push a terminal match's winner (and loser, where the bracket routes losers)
    to the matches it feeds, then settle those.  Returns newly ready match ids.
    """
    ready: list[int] = []
    if match.winner_id is not None and match.next_match_id is not None:
        place_participant(matches[match.next_match_id], match.winner_id)
    if match.loser_id is not None and match.loser_next_match_id is not None:
        place_participant(matches[match.loser_next_match_id], match.loser_id)
    for target in (match.next_match_id, match.loser_next_match_id):
        if target is not None:
            ready.extend(settle(matches, matches[target]))
    return ready


def settle_roots(matches: list[Match]) -> list[int]:
    """Settle every match that has no feeders (i.e. the opening round)."""
    ready: list[int] = []
    for match in list(matches):
        if not match.previous_match_ids:
            ready.extend(settle(matches, match))
    return ready


def validate_bracket(tournament: Tournament) -> None:
    """
    Check the arena invariants: ids match positions, links point inside the
    arena, rounds reference real matches, and the link graph has no cycle.

    Raises BracketIntegrityError on any violation.
    """
    matches = tournament.matches
    n = len(matches)
    for i, m in enumerate(matches):
        if m.id != i:
            raise BracketIntegrityError(f"Match at index {i} has id {m.id}")
        for target in (m.next_match_id, m.loser_next_match_id, *m.previous_match_ids):
            if target is not None and not 0 <= target < n:
                raise BracketIntegrityError(f"Match {i} links to unknown match {target}")
    for rnd in tournament.rounds:
        for mid in rnd.match_ids:
            if not 0 <= mid < n:
                raise BracketIntegrityError(f"Round {rnd.number} lists unknown match {mid}")

    # Iterative three-colour DFS over the forward links
    WHITE, GREY, BLACK = 0, 1, 2
    colour = [WHITE] * n
    for start in range(n):
        if colour[start] != WHITE:
            continue
        stack: list[tuple[int, int]] = [(start, 0)]
        colour[start] = GREY
        while stack:
            node, edge = stack.pop()
            targets = [
                t for t in (matches[node].next_match_id, matches[node].loser_next_match_id)
                if t is not None
            ]
            if edge < len(targets):
                stack.append((node, edge + 1))
                nxt = targets[edge]
                if colour[nxt] == GREY:
                    raise BracketIntegrityError(f"Cycle through match {nxt}")
                if colour[nxt] == WHITE:
                    colour[nxt] = GREY
                    stack.append((nxt, 0))
            else:
                colour[node] = BLACK


def round_matches(tournament: Tournament, rnd: Round) -> list[Match]:
    return [tournament.matches[mid] for mid in rnd.match_ids]
