"""Tests for the registration lifecycle, the waitlist and seeding policies."""

from __future__ import annotations

import random
import unittest
from datetime import datetime

import pytest

from bracketforge.tournaments import start_tournament
from bracketforge.tournaments.base import (
    Participant,
    PlayerIdentity,
    SingleEliminationSettings,
    Tournament,
)
from bracketforge.tournaments.events import (
    PlayerPromotedEvent,
    PlayerRegisteredEvent,
    RegistrationOpenedEvent,
    TournamentCancelledEvent,
    TournamentStartedEvent,
)
from bracketforge.tournaments.registration import (
    cancel_tournament,
    check_in,
    close_registration,
    open_registration,
    register_player,
    unregister_player,
)
from bracketforge.tournaments.seeding import seed_participants

NOW = datetime(2026, 3, 1, 18, 0)


def identity(n: int, rating: int = 1000) -> PlayerIdentity:
    return PlayerIdentity(id=f"p{n}", name=f"Player {n}", rating=rating)


class TestRegistration(unittest.TestCase):
    def setUp(self) -> None:
        self.t = Tournament(
            id="t-reg",
            name="Friday Night Brawl",
            settings=SingleEliminationSettings(),
            min_players=2,
            max_players=4,
        )
        self.events: list = []

    def _open(self) -> None:
        open_registration(self.t, self.events, NOW).unwrap()

    def test_open_registration_only_from_draft(self):
        self._open()
        self.assertEqual(self.t.status, "registration")
        self.assertEqual(self.t.registration_start, NOW)
        self.assertIsInstance(self.events[-1], RegistrationOpenedEvent)

        again = open_registration(self.t, self.events, NOW)
        self.assertEqual(again.error.kind, "invalid_state")

    def test_register_before_open_is_rejected(self):
        result = register_player(self.t, identity(1), False, self.events, NOW)
        self.assertEqual(result.error.kind, "invalid_state")
        self.assertEqual(self.t.participants, [])

    def test_register_assigns_positions(self):
        self._open()
        first = register_player(self.t, identity(1), False, self.events, NOW).unwrap()
        second = register_player(self.t, identity(2), False, self.events, NOW).unwrap()
        self.assertTrue(first.accepted)
        self.assertEqual((first.position, second.position), (1, 2))
        registered = [e for e in self.events if isinstance(e, PlayerRegisteredEvent)]
        self.assertEqual([e.participant_id for e in registered], ["p1", "p2"])

    def test_duplicate_registration(self):
        self._open()
        register_player(self.t, identity(1), False, self.events, NOW).unwrap()
        result = register_player(self.t, identity(1), False, self.events, NOW)
        self.assertEqual(result.error.kind, "already_registered")
        self.assertEqual(len(self.t.participants), 1)

    def test_entry_fee_must_be_paid(self):
        self.t.entry_fee = 50
        self._open()
        result = register_player(self.t, identity(1), False, self.events, NOW)
        self.assertEqual(result.error.kind, "payment_required")
        self.assertTrue(register_player(self.t, identity(1), True, self.events, NOW).ok)

    def test_full_tournament_waitlists(self):
        self._open()
        for n in range(1, 5):
            register_player(self.t, identity(n), False, self.events, NOW).unwrap()
        fifth = register_player(self.t, identity(5), False, self.events, NOW).unwrap()
        sixth = register_player(self.t, identity(6), False, self.events, NOW).unwrap()
        self.assertFalse(fifth.accepted)
        self.assertEqual(fifth.waitlist_position, 1)
        self.assertEqual(sixth.waitlist_position, 2)
        self.assertEqual(len(self.t.participants), 4)
        # Waitlisted players count as registered for duplicates
        again = register_player(self.t, identity(5), False, self.events, NOW)
        self.assertEqual(again.error.kind, "already_registered")

    def test_unregister_promotes_waitlist_in_order(self):
        self.t.entry_fee = 25
        self._open()
        for n in range(1, 7):
            register_player(self.t, identity(n), True, self.events, NOW).unwrap()

        outcome = unregister_player(self.t, "p2", self.events).unwrap()
        self.assertEqual(outcome.refund, 25)
        self.assertEqual(outcome.promoted_id, "p5")
        self.assertEqual([p.id for p in self.t.participants], ["p1", "p3", "p4", "p5"])
        self.assertEqual([p.id for p in self.t.waitlist], ["p6"])
        promoted = [e for e in self.events if isinstance(e, PlayerPromotedEvent)]
        self.assertEqual([e.participant_id for e in promoted], ["p5"])

    def test_unregister_from_waitlist(self):
        self._open()
        for n in range(1, 6):
            register_player(self.t, identity(n), False, self.events, NOW).unwrap()
        outcome = unregister_player(self.t, "p5", self.events).unwrap()
        self.assertIsNone(outcome.promoted_id)
        self.assertEqual(self.t.waitlist, [])
        self.assertEqual(len(self.t.participants), 4)

    def test_unregister_unknown_player(self):
        self._open()
        self.assertEqual(unregister_player(self.t, "ghost", self.events).error.kind, "not_found")

    def test_unregister_after_close_is_rejected(self):
        self._open()
        register_player(self.t, identity(1), False, self.events, NOW).unwrap()
        close_registration(self.t, self.events, NOW).unwrap()
        self.assertEqual(self.t.status, "ready")
        result = unregister_player(self.t, "p1", self.events)
        self.assertEqual(result.error.kind, "invalid_state")

    def test_check_in(self):
        self._open()
        register_player(self.t, identity(1), False, self.events, NOW).unwrap()
        self.assertTrue(check_in(self.t, "p1").unwrap().checked_in)
        self.assertEqual(check_in(self.t, "ghost").error.kind, "not_found")

    def test_start_drops_no_shows(self):
        self._open()
        for n in range(1, 5):
            register_player(self.t, identity(n), False, self.events, NOW).unwrap()
        for pid in ("p1", "p2", "p4"):
            check_in(self.t, pid).unwrap()

        start_tournament(self.t, self.events, NOW).unwrap()
        self.assertEqual([p.id for p in self.t.participants], ["p1", "p2", "p4"])
        started = [e for e in self.events if isinstance(e, TournamentStartedEvent)]
        self.assertEqual(started[0].participant_ids, ["p1", "p2", "p4"])

    def test_start_needs_min_players_checked_in(self):
        self.t.min_players = 3
        self._open()
        for n in range(1, 5):
            register_player(self.t, identity(n), False, self.events, NOW).unwrap()
        check_in(self.t, "p1").unwrap()
        check_in(self.t, "p2").unwrap()

        result = start_tournament(self.t, self.events, NOW)
        self.assertEqual(result.error.kind, "insufficient_players")
        self.assertEqual(self.t.status, "registration")

    def test_start_from_draft_is_rejected(self):
        self.assertEqual(start_tournament(self.t, self.events, NOW).error.kind, "invalid_state")

    def test_cancel(self):
        self._open()
        cancel_tournament(self.t, self.events, NOW).unwrap()
        self.assertEqual(self.t.status, "cancelled")
        self.assertIsInstance(self.events[-1], TournamentCancelledEvent)
        again = cancel_tournament(self.t, self.events, NOW)
        self.assertEqual(again.error.kind, "invalid_state")


# --------------------------------------------------------------------------- #
# Seeding                                                                      #
# --------------------------------------------------------------------------- #

def field_of(*ratings: int) -> list[Participant]:
    return [
        Participant(id=f"p{i + 1}", name=f"P{i + 1}", rating=r)
        for i, r in enumerate(ratings)
    ]


class TestSeeding:
    def test_rating_descending(self):
        seeded = seed_participants(field_of(1200, 1800, 1500), "rating")
        assert [p.id for p in seeded] == ["p2", "p3", "p1"]
        assert [p.seed for p in seeded] == [1, 2, 3]

    def test_rating_ties_keep_registration_order(self):
        seeded = seed_participants(field_of(1500, 1600, 1500, 1500), "rating")
        assert [p.id for p in seeded] == ["p2", "p1", "p3", "p4"]

    def test_registration_order(self):
        seeded = seed_participants(field_of(1200, 1800, 1500), "registration")
        assert [p.id for p in seeded] == ["p1", "p2", "p3"]
        assert [p.seed for p in seeded] == [1, 2, 3]

    def test_random_is_reproducible_with_a_seeded_rng(self):
        first = seed_participants(field_of(*range(10)), "random", random.Random(42))
        second = seed_participants(field_of(*range(10)), "random", random.Random(42))
        assert [p.id for p in first] == [p.id for p in second]
        assert sorted(p.seed for p in first) == list(range(1, 11))

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            seed_participants(field_of(1000), "alphabetical")  # type: ignore[arg-type]
