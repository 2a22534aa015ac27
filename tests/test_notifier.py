"""Tests for EventNotifier — filtering, unsubscribe, async subscribers, history."""

from __future__ import annotations

import unittest

from bracketforge.notifier import EventNotifier
from bracketforge.tournaments.events import (
    RegistrationOpenedEvent,
    RoundCompleteEvent,
    TournamentCancelledEvent,
)


def opened(tid: str = "t1") -> RegistrationOpenedEvent:
    return RegistrationOpenedEvent(tournament_id=tid, tournament_name="Cup")


class EventNotifierTests(unittest.IsolatedAsyncioTestCase):

    async def test_filters_by_event_name(self):
        notifier = EventNotifier()
        everything, rounds_only = [], []
        notifier.subscribe(everything.append)
        notifier.subscribe(rounds_only.append, events=["round_complete"])

        notifier.publish(opened())
        notifier.publish(RoundCompleteEvent(tournament_id="t1", round_num=1, round_name="Final"))
        await notifier.drain()

        self.assertEqual(len(everything), 2)
        self.assertEqual([e.name for e in rounds_only], ["round_complete"])

    async def test_unknown_event_name_rejected(self):
        notifier = EventNotifier()
        with self.assertRaises(ValueError):
            notifier.subscribe(print, events=["match_exploded"])

    async def test_unsubscribe(self):
        notifier = EventNotifier()
        received = []
        unsubscribe = notifier.subscribe(received.append)
        notifier.publish(opened())
        await notifier.drain()
        unsubscribe()
        unsubscribe()
        notifier.publish(TournamentCancelledEvent(tournament_id="t1"))
        await notifier.drain()
        self.assertEqual(len(received), 1)

    async def test_async_subscriber_awaited(self):
        notifier = EventNotifier()
        received = []

        async def collect(event):
            received.append(event.tournament_id)

        notifier.subscribe(collect)
        notifier.publish(opened("a"))
        notifier.publish(opened("b"))
        await notifier.drain()
        self.assertEqual(received, ["a", "b"])

    async def test_history_is_bounded(self):
        notifier = EventNotifier(history_size=3)
        for tid in ("a", "b", "a", "c", "a"):
            notifier.publish(opened(tid))
        self.assertEqual([e.tournament_id for e in notifier.history()], ["a", "c", "a"])
        self.assertEqual(len(notifier.history("a")), 2)
        self.assertEqual(notifier.history("b"), [])
