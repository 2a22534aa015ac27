"""
Tests for the single-elimination generator and result processing — bracket
shape, bye propagation, advancement, standings and prizes.

Everything runs against the synchronous core functions; the registry is
covered in test_registry.py.
"""

from __future__ import annotations

import math
import unittest
from datetime import datetime

import pytest

from bracketforge.errors import BracketIntegrityError
from bracketforge.tournaments import start_tournament
from bracketforge.tournaments.base import (
    EliminationLayout,
    Participant,
    PrizeShare,
    SingleEliminationSettings,
    Tournament,
)
from bracketforge.tournaments.bracket import validate_bracket
from bracketforge.tournaments.events import (
    MatchReadyEvent,
    RoundCompleteEvent,
    TournamentCompletedEvent,
)
from bracketforge.tournaments.results import report_forfeit, report_match_result, start_match
from bracketforge.tournaments.single_elimination import (
    bracket_order,
    generate_single_elimination,
    next_power_of_two,
    num_rounds_for,
    round_name,
)
from bracketforge.tournaments.standings import complete_tournament

NOW = datetime(2026, 3, 1, 18, 0)


# --------------------------------------------------------------------------- #
# Helpers                                                                      #
# --------------------------------------------------------------------------- #

def make_tournament(n: int, **kwargs) -> Tournament:
    """Registration-open tournament with n checked-in players, p1 rated highest."""
    t = Tournament(
        id="t-se",
        name="Spring Cup",
        settings=SingleEliminationSettings(),
        status="registration",
        min_players=2,
        max_players=64,
        **kwargs,
    )
    for i in range(n):
        t.participants.append(
            Participant(
                id=f"p{i + 1}",
                name=f"Player {i + 1}",
                rating=2000 - i * 10,
                registered_at=NOW,
                checked_in=True,
            )
        )
    return t


def started(n: int, **kwargs) -> tuple[Tournament, list]:
    t = make_tournament(n, **kwargs)
    events: list = []
    start_tournament(t, events, NOW).unwrap()
    return t, events


def favourite(t: Tournament):
    """Winner picker: the better (lower) seed always wins."""
    return lambda match: min(match.participant_ids, key=lambda pid: t.participant(pid).seed)


def play_out(t: Tournament, events: list, pick=None) -> None:
    pick = pick or favourite(t)
    while t.status == "in_progress":
        playable = [m for m in t.matches if m.status in ("ready", "in_progress")]
        assert playable, "bracket stalled with nothing to play"
        match = playable[0]
        winner = pick(match)
        loser = next(pid for pid in match.participant_ids if pid != winner)
        report_match_result(t, match.id, winner, loser, events, NOW).unwrap()


# --------------------------------------------------------------------------- #
# Bracket shape                                                                #
# --------------------------------------------------------------------------- #

class TestBracketMath:
    def test_next_power_of_two(self):
        assert next_power_of_two(2) == 2
        assert next_power_of_two(3) == 4
        assert next_power_of_two(5) == 8
        assert next_power_of_two(8) == 8
        assert next_power_of_two(9) == 16

    def test_num_rounds_matches_ceil_log2(self):
        for n in range(2, 70):
            assert num_rounds_for(n) == math.ceil(math.log2(n))

    def test_bracket_order_keeps_top_seeds_apart(self):
        assert bracket_order(2) == [1]
        assert bracket_order(4) == [1, 2]
        assert bracket_order(8) == [1, 4, 2, 3]
        assert bracket_order(16) == [1, 8, 4, 5, 2, 7, 3, 6]

    def test_round_names(self):
        assert round_name(1, 3, 8) == "Round of 8"
        assert round_name(2, 3, 8) == "Semi-Finals"
        assert round_name(3, 3, 8) == "Final"
        assert round_name(2, 4, 16) == "Quarter-Finals"
        assert round_name(2, 5, 32) == "Round 2"
        assert round_name(1, 1, 2) == "Final"


class TestGeneration:
    @pytest.mark.parametrize("n", list(range(2, 33)))
    def test_round_count_and_played_matches(self, n):
        generated, layout = generate_single_elimination([f"p{i}" for i in range(n)])
        assert len(generated.rounds) == math.ceil(math.log2(n))
        played = [m for m in generated.matches if m.status != "bye"]
        assert len(played) == n - 1
        assert layout.byes == layout.bracket_size - n

    def test_first_round_pairs_high_against_low(self):
        seeds = [f"s{i}" for i in range(1, 9)]
        generated, _ = generate_single_elimination(seeds)
        first = [generated.matches[mid].slots for mid in generated.rounds[0].match_ids]
        assert first == [["s1", "s8"], ["s4", "s5"], ["s2", "s7"], ["s3", "s6"]]

    def test_each_pair_feeds_one_next_match(self):
        generated, _ = generate_single_elimination([f"p{i}" for i in range(8)])
        r1 = [generated.matches[mid] for mid in generated.rounds[0].match_ids]
        r2 = generated.rounds[1].match_ids
        assert r1[0].next_match_id == r1[1].next_match_id == r2[0]
        assert r1[2].next_match_id == r1[3].next_match_id == r2[1]
        assert generated.matches[r2[0]].previous_match_ids == [r1[0].id, r1[1].id]


# --------------------------------------------------------------------------- #
# Byes                                                                         #
# --------------------------------------------------------------------------- #

class TestByes(unittest.TestCase):
    def test_five_players_three_byes_auto_advance(self):
        t, events = started(5)
        layout = t.layout
        assert isinstance(layout, EliminationLayout)
        self.assertEqual(layout.bracket_size, 8)
        self.assertEqual(layout.byes, 3)

        round1 = [t.matches[mid] for mid in t.rounds[0].match_ids]
        byes = [m for m in round1 if m.status == "bye"]
        self.assertEqual(len(byes), 3)
        self.assertEqual({m.winner_id for m in byes}, {"p1", "p2", "p3"})

        # Every bye winner already sits in its semi-final
        semis = [t.matches[mid] for mid in t.rounds[1].match_ids]
        seated = {pid for m in semis for pid in m.participant_ids}
        self.assertEqual(seated, {"p1", "p2", "p3"})
        self.assertEqual([m.status for m in semis], ["pending", "ready"])

        # Round 1 is not complete until 4 v 5 is played
        self.assertFalse(t.rounds[0].completed)
        self.assertFalse(any(isinstance(e, RoundCompleteEvent) for e in events))

        match = next(m for m in round1 if m.status == "ready")
        report_match_result(t, match.id, "p4", "p5", events, NOW).unwrap()
        self.assertTrue(t.rounds[0].completed)
        completed = [e for e in events if isinstance(e, RoundCompleteEvent)]
        self.assertEqual([e.round_name for e in completed], ["Round of 8"])
        self.assertEqual(t.current_round, 2)
        self.assertEqual(semis[0].status, "ready")

    def test_ready_events_only_for_playable_matches(self):
        t, events = started(6)
        ready = {e.match_id for e in events if isinstance(e, MatchReadyEvent)}
        self.assertEqual(ready, {m.id for m in t.matches if m.status == "ready"})
        self.assertEqual(len(ready), 2)


# --------------------------------------------------------------------------- #
# Results                                                                      #
# --------------------------------------------------------------------------- #

class TestResults(unittest.TestCase):
    def test_loser_eliminated_and_winner_slotted(self):
        t, events = started(4)
        m = t.matches[t.rounds[0].match_ids[0]]
        report_match_result(t, m.id, "p1", "p4", events, NOW, scores={"p1": 3, "p4": 1}).unwrap()
        self.assertEqual(m.status, "completed")
        self.assertEqual(m.scores, {"p1": 3, "p4": 1})
        self.assertTrue(t.participant("p4").eliminated)
        self.assertEqual(t.participant("p1").stats.wins, 1)
        self.assertIn("p1", t.matches[m.next_match_id].slots)

    def test_unknown_match_is_not_found(self):
        t, events = started(4)
        result = report_match_result(t, 99, "p1", "p4", events, NOW)
        self.assertEqual(result.error.kind, "not_found")

    def test_foreign_participant_rejected(self):
        t, events = started(4)
        m = t.matches[t.rounds[0].match_ids[0]]
        result = report_match_result(t, m.id, "p1", "p2", events, NOW)
        self.assertEqual(result.error.kind, "invalid_state")
        self.assertEqual(m.status, "ready")

    def test_completed_match_cannot_be_reported_again(self):
        t, events = started(4)
        m = t.matches[t.rounds[0].match_ids[0]]
        report_match_result(t, m.id, "p1", "p4", events, NOW).unwrap()
        again = report_match_result(t, m.id, "p4", "p1", events, NOW)
        self.assertEqual(again.error.kind, "invalid_state")
        self.assertEqual(m.winner_id, "p1")

    def test_draw_not_allowed(self):
        t, events = started(4)
        m = t.matches[t.rounds[0].match_ids[0]]
        result = report_match_result(t, m.id, "p1", "p4", events, NOW, draw=True)
        self.assertEqual(result.error.kind, "invalid_state")

    def test_unknown_match_before_start_is_not_found(self):
        t = make_tournament(4)
        result = report_match_result(t, 0, "p1", "p4", [], NOW)
        self.assertEqual(result.error.kind, "not_found")
        self.assertEqual(start_match(t, 7).error.kind, "not_found")

    def test_existing_match_after_cancel_is_invalid_state(self):
        t, events = started(4)
        m = t.matches[t.rounds[0].match_ids[0]]
        t.status = "cancelled"
        result = report_match_result(t, m.id, "p1", "p4", events, NOW)
        self.assertEqual(result.error.kind, "invalid_state")
        self.assertEqual(start_match(t, m.id).error.kind, "invalid_state")
        self.assertEqual(report_match_result(t, 99, "p1", "p4", events, NOW).error.kind, "not_found")

    def test_slot_holding_unknown_participant_raises(self):
        t, events = started(4)
        m = t.matches[t.rounds[0].match_ids[0]]
        m.slots[1] = "ghost"
        with self.assertRaises(BracketIntegrityError):
            report_match_result(t, m.id, m.slots[0], "ghost", events, NOW)
        self.assertEqual(m.status, "ready")
        with self.assertRaises(BracketIntegrityError):
            report_forfeit(t, m.id, m.slots[0], events, NOW)

    def test_top_two_seeds_meet_in_final(self):
        t, events = started(8)
        play_out(t, events)
        final = t.matches[t.rounds[-1].match_ids[0]]
        self.assertEqual(sorted(final.participant_ids), ["p1", "p2"])
        validate_bracket(t)


# --------------------------------------------------------------------------- #
# Standings and prizes                                                         #
# --------------------------------------------------------------------------- #

class TestCompletion(unittest.TestCase):
    def test_four_player_prize_split(self):
        t, events = started(
            4,
            prize_pool=100,
            prize_distribution=[PrizeShare(1, 50), PrizeShare(2, 30), PrizeShare(3, 20)],
        )
        play_out(t, events)

        self.assertEqual(t.status, "completed")
        standings = t.completion.standings
        self.assertEqual([s.participant_id for s in standings], ["p1", "p2", "p3", "p4"])
        prizes = {p.participant_id: p.amount for p in t.completion.prizes}
        self.assertEqual(prizes, {"p1": 50, "p2": 30, "p3": 20})
        self.assertNotIn("p4", prizes)

    def test_completion_is_idempotent(self):
        t, events = started(4, prize_pool=100, prize_distribution=[PrizeShare(1, 100)])
        play_out(t, events)
        first = t.completion
        completed_events = [e for e in events if isinstance(e, TournamentCompletedEvent)]
        self.assertEqual(len(completed_events), 1)

        again = complete_tournament(t, events, NOW).unwrap()
        self.assertEqual(again, first)
        self.assertEqual(again.prizes, first.prizes)
        self.assertEqual(
            len([e for e in events if isinstance(e, TournamentCompletedEvent)]), 1
        )

    def test_every_participant_gets_a_placement(self):
        t, events = started(6)
        play_out(t, events)
        placements = [p.placement for p in sorted(t.participants, key=lambda p: p.placement)]
        self.assertEqual(placements, [1, 2, 3, 4, 5, 6])
        self.assertEqual(t.participant("p1").placement, 1)

    def test_cannot_complete_with_matches_outstanding(self):
        t, events = started(4)
        result = complete_tournament(t, events, NOW)
        self.assertEqual(result.error.kind, "invalid_state")
