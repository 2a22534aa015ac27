"""
Event notifier — typed, fire-and-forget publish/subscribe.

publish() never waits on a subscriber: every delivery runs as its own task,
and a subscriber that raises is logged and otherwise ignored.  Subscribers
may be plain functions or coroutine functions.

The notifier also keeps a bounded history of published events so late
consumers (a reconnecting WebSocket client) can replay what they missed.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable

from bracketforge.tournaments.events import EVENT_NAMES, TournamentEvent

logger = logging.getLogger(__name__)

Subscriber = Callable[[TournamentEvent], Awaitable[None] | None]


class EventNotifier:
    def __init__(self, history_size: int = 500) -> None:
        self._subscribers: list[tuple[Subscriber, frozenset[str] | None]] = []
        self._history: deque[TournamentEvent] = deque(maxlen=history_size)
        self._tasks: set[asyncio.Task[None]] = set()

    def subscribe(
        self, callback: Subscriber, events: Iterable[str] | None = None
    ) -> Callable[[], None]:
        """
        Register `callback` for every event, or only for the event names in
        `events`.  Returns a function that removes the subscription.
        """
        names = frozenset(events) if events is not None else None
        if names is not None and not names <= set(EVENT_NAMES):
            raise ValueError(f"Unknown event name(s): {sorted(names - set(EVENT_NAMES))}")
        entry = (callback, names)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, event: TournamentEvent) -> None:
        self._history.append(event)
        loop = asyncio.get_running_loop()
        for callback, names in list(self._subscribers):
            if names is not None and event.name not in names:
                continue
            task = loop.create_task(self._deliver(callback, event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def history(self, tournament_id: str | None = None) -> list[TournamentEvent]:
        if tournament_id is None:
            return list(self._history)
        return [e for e in self._history if e.tournament_id == tournament_id]

    async def drain(self) -> None:
        """Wait for in-flight deliveries.  Tests and shutdown use this."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @staticmethod
    async def _deliver(callback: Subscriber, event: TournamentEvent) -> None:
        try:
            result = callback(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Subscriber %r failed on %s", callback, event.name)
