"""
Swiss pairing — one round at a time from the current standings.

Each round:
  1. Rank players by score (wins * 3 + draws), seed breaking ties.
  2. With an odd field, the lowest-ranked player who hasn't had a bye sits
     out and is credited a win, unless that forces a rematch that a different
     bye (even a second one) would avoid.
  3. Walk the ranking top-down pairing each player with the nearest-ranked
     opponent they haven't met.  If that paints the bottom of the table into
     a corner, backtrack and try the next-nearest opponent, which is how the
     search relaxes into neighbouring score groups.
  4. Only if no repeat-free pairing exists at all are rematches allowed.
"""

from __future__ import annotations

import logging
import math

from bracketforge.tournaments.base import Participant, Round, SwissLayout, Tournament
from bracketforge.tournaments.bracket import new_match, settle

logger = logging.getLogger(__name__)

# Upper bound on backtracking steps before falling back to greedy pairing
_SEARCH_BUDGET = 200_000


def swiss_total_rounds(n: int, requested: int | None) -> int:
    """Requested count (or ceil(log2 n)), never more than a field can play without repeats."""
    default = max(1, math.ceil(math.log2(n))) if n > 1 else 1
    rounds = requested if requested is not None else default
    cap = n - 1 if n % 2 == 0 else n
    return max(1, min(rounds, cap))


def played_pairs(tournament: Tournament) -> set[frozenset[str]]:
    return {
        frozenset(m.participant_ids)
        for m in tournament.matches
        if len(m.participant_ids) == 2
    }


def rank_for_pairing(participants: list[Participant]) -> list[Participant]:
    return sorted(participants, key=lambda p: (-p.stats.points, p.seed or 0))


def pair_players(
    ranked: list[str],
    played: set[frozenset[str]],
) -> list[tuple[str, str]] | None:
    """Repeat-free pairing of an even-length ranking, or None if none exists."""
    budget = [_SEARCH_BUDGET]

    def _search(pool: list[str]) -> list[tuple[str, str]] | None:
        if not pool:
            return []
        budget[0] -= 1
        if budget[0] < 0:
            return None
        head, rest = pool[0], pool[1:]
        for idx, opponent in enumerate(rest):
            if frozenset((head, opponent)) in played:
                continue
            tail = _search(rest[:idx] + rest[idx + 1:])
            if tail is not None:
                return [(head, opponent)] + tail
        return None

    return _search(ranked)


def _greedy_pairs(ranked: list[str], played: set[frozenset[str]]) -> list[tuple[str, str]]:
    """Adjacent pairing that prefers fresh opponents but accepts rematches."""
    pool = list(ranked)
    pairs: list[tuple[str, str]] = []
    while len(pool) >= 2:
        head = pool.pop(0)
        idx = next(
            (i for i, other in enumerate(pool) if frozenset((head, other)) not in played),
            0,
        )
        pairs.append((head, pool.pop(idx)))
    return pairs


def _choose_bye(
    ranked: list[str],
    layout: SwissLayout,
    played: set[frozenset[str]],
) -> tuple[str, list[tuple[str, str]] | None]:
    """
    Pick the bye from the bottom up, preferring a choice that leaves a clean
    pairing.  Players who haven't had a bye are tried first; a second bye is
    given only when no fresh choice pairs without rematches.
    """
    fresh = [pid for pid in reversed(ranked) if pid not in layout.bye_history]
    repeat = [pid for pid in reversed(ranked) if pid in layout.bye_history]
    for pid in fresh + repeat:
        remaining = [p for p in ranked if p != pid]
        pairs = pair_players(remaining, played)
        if pairs is not None:
            return pid, pairs
    return (fresh or repeat)[0], None


def generate_swiss_round(tournament: Tournament) -> tuple[Round | None, list[int]]:
    """
    Append the next Swiss round to `tournament`.

    Returns (new round or None if the schedule is finished, ids of matches
    that are ready to play).
    """
    layout = tournament.layout
    if not isinstance(layout, SwissLayout):
        raise TypeError("generate_swiss_round needs a Swiss tournament")
    if len(tournament.rounds) >= layout.total_rounds:
        return None, []

    number = len(tournament.rounds) + 1
    ranked = [p.id for p in rank_for_pairing(tournament.participants)]
    played = played_pairs(tournament)

    bye: str | None = None
    if len(ranked) % 2 == 1:
        bye, pairs = _choose_bye(ranked, layout, played)
        pool = [p for p in ranked if p != bye]
    else:
        pool = ranked
        pairs = pair_players(pool, played)
    if pairs is None:
        logger.warning(
            "Tournament %s round %d: no repeat-free Swiss pairing, allowing rematches",
            tournament.id, number,
        )
        pairs = _greedy_pairs(pool, played)

    rnd = Round(number=number, name=f"Swiss Round {number}")
    ready: list[int] = []
    for a, b in pairs:
        match = new_match(tournament.matches, number, len(rnd.match_ids), [a, b])
        rnd.match_ids.append(match.id)
        ready.extend(settle(tournament.matches, match))

    if bye is not None:
        match = new_match(tournament.matches, number, len(rnd.match_ids), [bye, None])
        rnd.match_ids.append(match.id)
        settle(tournament.matches, match)
        layout.bye_history.append(bye)
        participant = tournament.participant(bye)
        if participant is not None:
            participant.stats.wins += 1

    tournament.rounds.append(rnd)
    logger.info(
        "Tournament %s: generated Swiss round %d (%d matches%s)",
        tournament.id, number, len(pairs), ", 1 bye" if bye else "",
    )
    return rnd, ready
