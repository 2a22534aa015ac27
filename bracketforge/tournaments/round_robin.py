"""
Round robin — everyone plays everyone once, scheduled with the circle method.

With an odd field a virtual BYE joins so the count is even; whoever draws the
BYE in a round simply sits out (no match object is created for it).
"""

from __future__ import annotations

from bracketforge.tournaments.base import Match, Round, RoundRobinLayout
from bracketforge.tournaments.bracket import new_match, settle_roots
from bracketforge.tournaments.single_elimination import GeneratedBracket


def circle_pairings(count: int) -> list[list[tuple[int, int]]]:
    """
    Index pairs for each round of an even-sized circle schedule.

    The last position stays fixed and meets the rotating position `round`;
    the remaining positions pair off around the circle.
    """
    if count % 2:
        raise ValueError("circle_pairings needs an even count")
    pivot = count - 1
    schedule: list[list[tuple[int, int]]] = []
    for rnd in range(pivot):
        pairs = [(rnd % pivot, pivot)]
        for i in range(1, count // 2):
            pairs.append(((rnd + i) % pivot, (pivot - i + rnd) % pivot))
        schedule.append(pairs)
    return schedule


def generate_round_robin(seeds: list[str]) -> tuple[GeneratedBracket, RoundRobinLayout]:
    padded = len(seeds) % 2 == 1
    lineup: list[str | None] = list(seeds) + ([None] if padded else [])

    matches: list[Match] = []
    rounds: list[Round] = []
    for number, pairs in enumerate(circle_pairings(len(lineup)), 1):
        rnd = Round(number=number, name=f"Round {number}")
        for home, away in pairs:
            a, b = lineup[home], lineup[away]
            if a is None or b is None:
                continue
            match = new_match(matches, number, len(rnd.match_ids), [a, b])
            rnd.match_ids.append(match.id)
        rounds.append(rnd)

    ready = settle_roots(matches)
    layout = RoundRobinLayout(padded=padded, total_rounds=len(rounds))
    return GeneratedBracket(rounds=rounds, matches=matches, ready_ids=ready), layout
