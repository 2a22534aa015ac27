"""
Tests for Swiss pairing — round count, no repeat pairings, byes for odd
fields and lazily generated rounds.
"""

from __future__ import annotations

import random
import unittest
from collections import Counter
from datetime import datetime

from bracketforge.tournaments import start_tournament
from bracketforge.tournaments.base import Participant, SwissLayout, SwissSettings, Tournament
from bracketforge.tournaments.results import report_match_result
from bracketforge.tournaments.swiss import _choose_bye, pair_players, swiss_total_rounds

NOW = datetime(2026, 3, 1, 18, 0)


def started(n: int, rounds: int | None = None) -> tuple[Tournament, list]:
    t = Tournament(
        id="t-sw",
        name="Swiss Open",
        settings=SwissSettings(rounds=rounds),
        status="registration",
        min_players=2,
        max_players=64,
    )
    for i in range(n):
        t.participants.append(
            Participant(id=f"p{i + 1}", name=f"P{i + 1}", rating=1800 - i * 5, checked_in=True)
        )
    events: list = []
    start_tournament(t, events, NOW).unwrap()
    return t, events


def play_out(t: Tournament, events: list) -> None:
    while t.status == "in_progress":
        playable = [m for m in t.matches if m.status == "ready"]
        assert playable, "no playable Swiss match"
        match = playable[0]
        a, b = match.participant_ids
        winner = min((a, b), key=lambda pid: t.participant(pid).seed)
        loser = b if winner == a else a
        report_match_result(t, match.id, winner, loser, events, NOW).unwrap()


class TestRoundCount:
    def test_default_is_ceil_log2(self):
        assert swiss_total_rounds(8, None) == 3
        assert swiss_total_rounds(9, None) == 4
        assert swiss_total_rounds(16, None) == 4

    def test_requested_rounds_capped_to_repeat_free_limit(self):
        assert swiss_total_rounds(4, 10) == 3
        assert swiss_total_rounds(5, 10) == 5
        assert swiss_total_rounds(8, 5) == 5


class TestPairing:
    def test_prefers_adjacent_unplayed_opponent(self):
        played = {frozenset(("a", "b"))}
        assert pair_players(["a", "b", "c", "d"], played) == [("a", "c"), ("b", "d")]

    def test_backtracks_out_of_a_dead_end(self):
        # Greedy a-b would leave c-d, which has already been played
        played = {frozenset(("c", "d"))}
        pairs = pair_players(["a", "b", "c", "d"], played)
        assert pairs is not None
        assert frozenset(("c", "d")) not in {frozenset(p) for p in pairs}

    def test_none_when_every_pairing_repeats(self):
        players = ["a", "b", "c", "d"]
        played = {frozenset((x, y)) for x in players for y in players if x != y}
        assert pair_players(players, played) is None


class TestByeChoice:
    def test_second_bye_beats_a_rematch(self):
        # c already had a bye, but giving it to a or b forces a rematch with c
        layout = SwissLayout(total_rounds=3, bye_history=["c"])
        played = {frozenset(("a", "c")), frozenset(("b", "c"))}
        bye, pairs = _choose_bye(["a", "b", "c"], layout, played)
        assert bye == "c"
        assert pairs == [("a", "b")]

    def test_fresh_player_preferred_when_it_pairs_cleanly(self):
        layout = SwissLayout(total_rounds=3, bye_history=["c"])
        bye, pairs = _choose_bye(["a", "b", "c"], layout, set())
        assert bye == "b"
        assert pairs == [("a", "c")]


class TestSwissPlay(unittest.TestCase):
    def test_only_first_round_generated_at_start(self):
        t, _ = started(8)
        self.assertEqual(len(t.rounds), 1)
        self.assertIsInstance(t.layout, SwissLayout)
        self.assertEqual(t.layout.total_rounds, 3)
        self.assertEqual(len(t.rounds[0].match_ids), 4)

    def test_no_rematches_across_rounds(self):
        for n in (6, 8, 10, 16):
            with self.subTest(n=n):
                t, events = started(n)
                play_out(t, events)
                pairs = [frozenset(m.participant_ids) for m in t.matches if m.status == "completed"]
                self.assertEqual(len(pairs), len(set(pairs)))
                self.assertEqual(len(t.rounds), swiss_total_rounds(n, None))

    def test_four_players_play_a_full_cycle(self):
        t, events = started(4, rounds=3)
        play_out(t, events)
        pairs = {frozenset(m.participant_ids) for m in t.matches}
        self.assertEqual(len(pairs), 6)

    def test_odd_field_gives_each_bye_to_a_different_player(self):
        t, events = started(5)
        play_out(t, events)
        self.assertEqual(t.status, "completed")
        byes = [m for m in t.matches if m.status == "bye"]
        self.assertEqual(len(byes), len(t.rounds))
        receivers = [m.winner_id for m in byes]
        self.assertEqual(len(receivers), len(set(receivers)))
        # A bye counts as a win
        for pid in receivers:
            self.assertGreaterEqual(t.participant(pid).stats.wins, 1)

    def test_long_odd_schedule_only_rematches_when_forced(self):
        """A rematch is allowed only if no choice of bye, repeated or not, avoids one."""
        for n, seed in ((9, 1), (9, 7), (11, 3)):
            with self.subTest(n=n, seed=seed):
                rng = random.Random(seed)
                t, events = started(n, rounds=n)
                while t.status == "in_progress":
                    match = next(m for m in t.matches if m.status == "ready")
                    a, b = match.participant_ids
                    winner = rng.choice((a, b))
                    report_match_result(
                        t, match.id, winner, b if winner == a else a, events, NOW
                    ).unwrap()

                ids = [p.id for p in t.participants]
                for rnd in t.rounds:
                    before = {
                        frozenset(m.participant_ids)
                        for m in t.matches
                        if m.round < rnd.number and len(m.participant_ids) == 2
                    }
                    pairs = [
                        frozenset(t.matches[mid].participant_ids)
                        for mid in rnd.match_ids
                        if len(t.matches[mid].participant_ids) == 2
                    ]
                    if not any(p in before for p in pairs):
                        continue
                    for pid in ids:
                        others = [x for x in ids if x != pid]
                        self.assertIsNone(
                            pair_players(others, before),
                            f"round {rnd.number}: bye to {pid} pairs without rematches",
                        )

    def test_next_round_pairs_by_score(self):
        t, events = started(8)
        for mid in list(t.rounds[0].match_ids):
            match = t.matches[mid]
            a, b = match.participant_ids
            winner = min((a, b), key=lambda pid: t.participant(pid).seed)
            report_match_result(
                t, mid, winner, b if winner == a else a, events, NOW
            ).unwrap()

        self.assertEqual(len(t.rounds), 2)
        self.assertEqual(t.current_round, 2)
        for mid in t.rounds[1].match_ids:
            a, b = (t.participant(pid) for pid in t.matches[mid].participant_ids)
            self.assertEqual(a.stats.wins, b.stats.wins)

    def test_draws_allowed(self):
        t, events = started(4)
        mid = t.rounds[0].match_ids[0]
        a, b = t.matches[mid].participant_ids
        report_match_result(t, mid, a, b, events, NOW, draw=True).unwrap()
        counts = Counter(p.stats.draws for p in t.participants)
        self.assertEqual(counts[1], 2)
