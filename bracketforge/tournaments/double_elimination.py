"""
Double-elimination bracket generator.

The winners bracket is the single-elimination tree.  Every winners-bracket
loser drops into the losers bracket, which has 2 * (winners_rounds - 1)
rounds alternating between two shapes:

  odd  losers rounds — survivors of the previous losers round play each other
                       (losers round 1 pairs the winners round 1 losers)
  even losers rounds — those winners meet the players dropping from the next
                       winners round; the drop order is reversed every other
                       round to push rematches as late as possible

Losers-bracket matches are created up front with empty slots and fill up as
players drop.  The winners champion meets the losers champion in Grand Finals;
if the losers champion wins, a reset match is spawned (see results.py).
"""

from __future__ import annotations

from bracketforge.tournaments.base import DoubleEliminationLayout, Match, Round
from bracketforge.tournaments.bracket import new_match, settle_roots
from bracketforge.tournaments.single_elimination import (
    GeneratedBracket,
    build_winners_tree,
    round_name,
)

GRAND_FINALS = "Grand Finals"
GRAND_FINALS_RESET = "Grand Finals Reset"


def generate_double_elimination(
    seeds: list[str],
) -> tuple[GeneratedBracket, DoubleEliminationLayout]:
    winners, matches, tree_layout = build_winners_tree(seeds, side="winners")
    k = tree_layout.num_rounds
    size = tree_layout.bracket_size

    losers: list[list[Match]] = []
    for j in range(1, k):
        count = size >> (j + 1)

        # Odd losers round: pair up winners-round-1 losers, or survivors
        odd: list[Match] = []
        feeders = winners[0] if j == 1 else losers[-1]
        for m in range(count):
            a, b = feeders[2 * m], feeders[2 * m + 1]
            match = new_match(
                matches, 0, m, [None, None],
                bracket="losers", previous_match_ids=[a.id, b.id],
            )
            if j == 1:
                a.loser_next_match_id = match.id
                b.loser_next_match_id = match.id
            else:
                a.next_match_id = match.id
                b.next_match_id = match.id
            odd.append(match)
        losers.append(odd)

        # Even losers round: odd-round winners vs. drops from winners round j+1
        even: list[Match] = []
        dropping = winners[j]
        for m in range(count):
            survivor = odd[m]
            drop = dropping[count - 1 - m] if j % 2 == 1 else dropping[m]
            match = new_match(
                matches, 0, m, [None, None],
                bracket="losers", previous_match_ids=[survivor.id, drop.id],
            )
            survivor.next_match_id = match.id
            drop.loser_next_match_id = match.id
            even.append(match)
        losers.append(even)

    winners_final = winners[-1][0]
    losers_final = losers[-1][0] if losers else None

    grand_finals = new_match(
        matches, 0, 0, [None, None], bracket="grand_finals",
        previous_match_ids=[winners_final.id] + ([losers_final.id] if losers_final else []),
    )
    winners_final.next_match_id = grand_finals.id
    if losers_final is not None:
        losers_final.next_match_id = grand_finals.id
    else:
        # Two-player field: the winners-final loser goes straight to grand finals
        winners_final.loser_next_match_id = grand_finals.id

    # Play order: W1, then for each later winners round Wj, L(2j-3), L(2j-2)
    ordered: list[tuple[str, str, list[Match]]] = [
        (f"Winners {round_name(1, k, size)}", "winners", winners[0]),
    ]
    for j in range(2, k + 1):
        ordered.append((f"Winners {round_name(j, k, size)}", "winners", winners[j - 1]))
        for idx in (2 * j - 4, 2 * j - 3):
            label = "Losers Final" if idx == len(losers) - 1 else f"Losers Round {idx + 1}"
            ordered.append((label, "losers", losers[idx]))
    ordered.append((GRAND_FINALS, "grand_finals", [grand_finals]))

    rounds: list[Round] = []
    for number, (name, side, members) in enumerate(ordered, 1):
        for match in members:
            match.round = number
        rounds.append(
            Round(number=number, name=name, match_ids=[m.id for m in members], bracket=side)
        )

    ready = settle_roots(matches)
    layout = DoubleEliminationLayout(
        bracket_size=size,
        byes=tree_layout.byes,
        num_rounds=k,
        losers_rounds=len(losers),
        winners_final_id=winners_final.id,
        losers_final_id=losers_final.id if losers_final else None,
        grand_finals_id=grand_finals.id,
    )
    return GeneratedBracket(rounds=rounds, matches=matches, ready_ids=ready), layout
