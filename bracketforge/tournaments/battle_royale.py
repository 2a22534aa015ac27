"""
Battle royale — free-for-all groups, top half of each group advances.

Rounds are generated lazily: round 1 from the seed list, every later round
from the previous round's qualifiers, until a round consists of a single group.
That group is the final and its finishing order is the podium.
"""

from __future__ import annotations

import math

from bracketforge.tournaments.base import BattleRoyaleLayout, Match, Round, Tournament
from bracketforge.tournaments.bracket import new_match, settle


def partition(participant_ids: list[str], players_per_match: int) -> list[list[str]]:
    return [
        participant_ids[i:i + players_per_match]
        for i in range(0, len(participant_ids), players_per_match)
    ]


def qualify_count(group_size: int) -> int:
    return math.ceil(group_size / 2)


def _round_label(number: int, groups: int) -> str:
    if groups == 1:
        return "Final"
    if number == 1:
        return "Qualifying Round"
    return f"Round {number}"


def append_battle_royale_round(
    matches: list[Match],
    rounds: list[Round],
    participant_ids: list[str],
    players_per_match: int,
) -> tuple[Round, list[int]]:
    """Partition `participant_ids` into a new round of group matches."""
    number = len(rounds) + 1
    groups = partition(participant_ids, players_per_match)
    rnd = Round(number=number, name=_round_label(number, len(groups)))
    ready: list[int] = []
    for position, members in enumerate(groups):
        match = new_match(
            matches, number, position, list(members),
            qualify_count=qualify_count(len(members)),
        )
        rnd.match_ids.append(match.id)
        if len(members) == 1 and len(groups) > 1:
            # Nobody to fight: the lone player qualifies without playing
            match.status = "bye"
            match.winner_id = members[0]
            match.placements = [members[0]]
        else:
            ready.extend(settle(matches, match))
    rounds.append(rnd)
    return rnd, ready


def qualifiers_of(tournament: Tournament, rnd: Round) -> list[str]:
    qualified: list[str] = []
    for mid in rnd.match_ids:
        match = tournament.matches[mid]
        qualified.extend(match.placements[: match.qualify_count or 0])
    return qualified


def is_final_round(rnd: Round) -> bool:
    return len(rnd.match_ids) == 1


def next_battle_royale_round(tournament: Tournament) -> tuple[Round | None, list[int]]:
    """Build the round after the last completed one, or None when the final is done."""
    layout = tournament.layout
    if not isinstance(layout, BattleRoyaleLayout):
        raise TypeError("next_battle_royale_round needs a battle royale tournament")
    last = tournament.rounds[-1]
    if is_final_round(last):
        return None, []
    return append_battle_royale_round(
        tournament.matches,
        tournament.rounds,
        qualifiers_of(tournament, last),
        layout.players_per_match,
    )
