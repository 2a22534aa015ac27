"""
Single-elimination bracket generator.

Rules:
- bracket_size is the smallest power of two >= n; byes = bracket_size - n.
- Round 1 pairs seed i against seed bracket_size - 1 - i (0-based), so the
  missing seeds at the bottom hand byes to the top seeds.
- Round-1 matches are laid out in standard bracket order (1v8, 4v5, 2v7, 3v6
  for eight slots) so seeds 1 and 2 can only meet in the final.
- Each pair of adjacent matches feeds one match in the next round.
- Byes resolve and propagate before the generator returns.
"""

from __future__ import annotations

from dataclasses import dataclass

from bracketforge.tournaments.base import (
    BracketSide,
    EliminationLayout,
    Match,
    Round,
)
from bracketforge.tournaments.bracket import new_match, settle_roots


@dataclass
class GeneratedBracket:
    """What every generator hands back to the caller."""

    rounds: list[Round]
    matches: list[Match]
    ready_ids: list[int]


def next_power_of_two(n: int) -> int:
    return 1 << max(n - 1, 1).bit_length()


def num_rounds_for(n: int) -> int:
    """ceil(log2(n)) for n >= 2."""
    return max(n - 1, 1).bit_length()


def bracket_order(size: int) -> list[int]:
    """
    Upper seed (1-based) of each round-1 match, in bracket position order.

    bracket_order(8) == [1, 4, 2, 3], i.e. the matches 1v8, 4v5, 2v7, 3v6.
    """
    order = [1]
    while len(order) < size // 2:
        span = len(order) * 2 + 1
        order = [s for top in order for s in (top, span - top)]
    return order


def round_name(round_num: int, num_rounds: int, bracket_size: int) -> str:
    if round_num == num_rounds:
        return "Final"
    if round_num == 1:
        return f"Round of {bracket_size}"
    if round_num == num_rounds - 1:
        return "Semi-Finals"
    if round_num == num_rounds - 2:
        return "Quarter-Finals"
    return f"Round {round_num}"


def build_winners_tree(
    seeds: list[str],
    side: BracketSide = "main",
) -> tuple[list[list[Match]], list[Match], EliminationLayout]:
    """
    Build the unsettled elimination tree.

    Returns (matches grouped per round, flat arena, layout).  Match.round is
    the tree depth (1-based); callers that interleave other rounds renumber.
    """
    n = len(seeds)
    num_rounds = num_rounds_for(n)
    size = 1 << num_rounds
    matches: list[Match] = []
    tree: list[list[Match]] = []

    first: list[Match] = []
    for position, top in enumerate(bracket_order(size)):
        i = top - 1
        j = size - 1 - i
        slots = [seeds[i] if i < n else None, seeds[j] if j < n else None]
        first.append(new_match(matches, 1, position, slots, bracket=side))
    tree.append(first)

    previous = first
    for round_num in range(2, num_rounds + 1):
        current: list[Match] = []
        for position in range(len(previous) // 2):
            a, b = previous[position * 2], previous[position * 2 + 1]
            match = new_match(
                matches, round_num, position, [None, None],
                bracket=side, previous_match_ids=[a.id, b.id],
            )
            a.next_match_id = match.id
            b.next_match_id = match.id
            current.append(match)
        tree.append(current)
        previous = current

    layout = EliminationLayout(bracket_size=size, byes=size - n, num_rounds=num_rounds)
    return tree, matches, layout


def generate_single_elimination(seeds: list[str]) -> tuple[GeneratedBracket, EliminationLayout]:
    tree, matches, layout = build_winners_tree(seeds)
    rounds = [
        Round(
            number=r,
            name=round_name(r, layout.num_rounds, layout.bracket_size),
            match_ids=[m.id for m in tree[r - 1]],
        )
        for r in range(1, layout.num_rounds + 1)
    ]
    ready = settle_roots(matches)
    return GeneratedBracket(rounds=rounds, matches=matches, ready_ids=ready), layout
