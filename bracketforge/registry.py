"""
Tournament registry — the public API of the engine.

The registry owns every Tournament aggregate by id.  Mutations on one
tournament are serialised by a per-id asyncio.Lock; different tournaments
never wait on each other.

Every mutation follows the same sequence:

    authorise → lock → deep-copy → mutate copy → validate graph → swap in
              → queue save → unlock → publish events

A failed Result or a BracketIntegrityError leaves the committed aggregate
untouched.  Reads return deep copies of the committed state, so callers can
never observe (or cause) a half-applied change.

Saves run on a worker thread after the lock is released.  Saves for one
tournament are chained so they land in commit order; flush() waits for
whatever is still queued.
"""

from __future__ import annotations

import asyncio
import copy
import functools
import logging
import random
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from bracketforge.config import (
    TournamentConfig,
    TournamentDefaults,
    tournament_config_from_dict,
    validate_tournament_config,
)
from bracketforge.errors import Result
from bracketforge.notifier import EventNotifier
from bracketforge.storage import MemoryTournamentStore, TournamentStore
from bracketforge.tournaments import start_tournament
from bracketforge.tournaments import registration, results
from bracketforge.tournaments.base import (
    BracketLayout,
    CompletionResult,
    Match,
    PlacementEntry,
    PlayerIdentity,
    Round,
    SeedingPolicy,
    StandingEntry,
    StatDelta,
    Tournament,
    TournamentFormat,
    TournamentStatus,
)
from bracketforge.tournaments.bracket import validate_bracket
from bracketforge.tournaments.events import TournamentEvent
from bracketforge.tournaments.registration import RegistrationOutcome, UnregisterOutcome
from bracketforge.tournaments.standings import complete_tournament, compute_standings

logger = logging.getLogger(__name__)

# (actor_id, operation, tournament_id) -> allowed
Authorizer = Callable[[str | None, str, str | None], bool]

_ACTIVE_STATUSES: tuple[TournamentStatus, ...] = ("registration", "in_progress")


@dataclass(frozen=True)
class BracketView:
    tournament_id: str
    format: TournamentFormat
    status: TournamentStatus
    current_round: int
    layout: BracketLayout | None
    rounds: list[Round]
    matches: list[Match]


class TournamentRegistry:
    def __init__(
        self,
        store: TournamentStore | None = None,
        notifier: EventNotifier | None = None,
        *,
        rng: random.Random | None = None,
        authorizer: Authorizer | None = None,
        defaults: TournamentDefaults | None = None,
        default_seeding: SeedingPolicy = "rating",
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store: TournamentStore = store or MemoryTournamentStore()
        self.notifier = notifier or EventNotifier()
        self._rng = rng or random.Random()
        self._authorizer = authorizer
        self._defaults = defaults or TournamentDefaults()
        self._default_seeding: SeedingPolicy = default_seeding
        self._clock = clock
        self._tournaments: dict[str, Tournament] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        # Most recent queued save per tournament, and every save not yet done
        self._last_save: dict[str, asyncio.Task] = {}
        self._pending_saves: set[asyncio.Task] = set()

    async def load(self) -> int:
        """Load every stored tournament.  Returns how many were loaded."""
        loaded = await asyncio.to_thread(self.store.load_all)
        for tournament in loaded:
            self._tournaments[tournament.id] = tournament
            self._locks.setdefault(tournament.id, asyncio.Lock())
        return len(loaded)

    # ------------------------------------------------------------------ #
    # Creation                                                             #
    # ------------------------------------------------------------------ #

    async def create_tournament(
        self, config: TournamentConfig | dict[str, Any], actor_id: str | None = None
    ) -> Result[str]:
        denied = self._authorize(actor_id, "create_tournament", None)
        if denied is not None:
            return denied
        try:
            if isinstance(config, dict):
                config = tournament_config_from_dict(
                    config, self._defaults, self._default_seeding
                )
            else:
                validate_tournament_config(config)
        except ValueError as exc:
            return Result.failure("invalid_config", str(exc))

        tournament = Tournament(
            id=f"tourn_{uuid.uuid4().hex[:12]}",
            name=config.name,
            settings=copy.deepcopy(config.settings),
            description=config.description,
            game_mode=config.game_mode,
            created_by=config.created_by or actor_id,
            created_at=self._clock(),
            featured=config.featured,
            tags=list(config.tags),
            allow_spectators=config.allow_spectators,
            registration_start=config.registration_start,
            registration_end=config.registration_end,
            start_time=config.start_time,
            min_players=config.min_players,
            max_players=config.max_players,
            entry_fee=config.entry_fee,
            entry_fee_type=config.entry_fee_type,
            seeding=config.seeding,
            prize_pool=config.prize_pool,
            prize_distribution=list(config.prize_distribution),
            special_prizes=list(config.special_prizes),
        )
        lock = self._locks.setdefault(tournament.id, asyncio.Lock())
        async with lock:
            self._tournaments[tournament.id] = tournament
            self._persist(tournament)
        logger.info("Created %s tournament %s (%s)", tournament.format, tournament.id, tournament.name)
        return Result.success(tournament.id)

    # ------------------------------------------------------------------ #
    # Registration                                                         #
    # ------------------------------------------------------------------ #

    async def open_registration(
        self, tournament_id: str, actor_id: str | None = None
    ) -> Result[Tournament]:
        return await self._mutate(
            tournament_id, "open_registration", actor_id, registration.open_registration
        )

    async def close_registration(
        self, tournament_id: str, actor_id: str | None = None
    ) -> Result[Tournament]:
        return await self._mutate(
            tournament_id, "close_registration", actor_id, registration.close_registration
        )

    async def register_player(
        self,
        tournament_id: str,
        identity: PlayerIdentity,
        fee_paid: bool = False,
        actor_id: str | None = None,
    ) -> Result[RegistrationOutcome]:
        return await self._mutate(
            tournament_id,
            "register_player",
            actor_id,
            lambda t, events, now: registration.register_player(t, identity, fee_paid, events, now),
        )

    async def unregister_player(
        self, tournament_id: str, participant_id: str, actor_id: str | None = None
    ) -> Result[UnregisterOutcome]:
        return await self._mutate(
            tournament_id,
            "unregister_player",
            actor_id,
            lambda t, events, now: registration.unregister_player(t, participant_id, events),
        )

    async def check_in(
        self, tournament_id: str, participant_id: str, actor_id: str | None = None
    ) -> Result:
        return await self._mutate(
            tournament_id,
            "check_in",
            actor_id,
            lambda t, events, now: registration.check_in(t, participant_id),
        )

    async def cancel_tournament(
        self, tournament_id: str, actor_id: str | None = None
    ) -> Result[Tournament]:
        return await self._mutate(
            tournament_id, "cancel_tournament", actor_id, registration.cancel_tournament
        )

    # ------------------------------------------------------------------ #
    # Play                                                                 #
    # ------------------------------------------------------------------ #

    async def start_tournament(
        self, tournament_id: str, actor_id: str | None = None
    ) -> Result[Tournament]:
        return await self._mutate(
            tournament_id,
            "start_tournament",
            actor_id,
            lambda t, events, now: start_tournament(t, events, now, self._rng),
        )

    async def start_match(
        self, tournament_id: str, match_id: int, actor_id: str | None = None
    ) -> Result[Match]:
        return await self._mutate(
            tournament_id,
            "start_match",
            actor_id,
            lambda t, events, now: results.start_match(t, match_id),
        )

    async def report_match_result(
        self,
        tournament_id: str,
        match_id: int,
        winner_id: str,
        loser_id: str,
        scores: dict[str, int] | None = None,
        stats: dict[str, StatDelta] | None = None,
        draw: bool = False,
        actor_id: str | None = None,
    ) -> Result[Match]:
        return await self._mutate(
            tournament_id,
            "report_match_result",
            actor_id,
            lambda t, events, now: results.report_match_result(
                t, match_id, winner_id, loser_id, events, now,
                scores=scores, stats=stats, draw=draw,
            ),
        )

    async def report_battle_royale_result(
        self,
        tournament_id: str,
        match_id: int,
        placements: list[PlacementEntry],
        actor_id: str | None = None,
    ) -> Result[Match]:
        return await self._mutate(
            tournament_id,
            "report_battle_royale_result",
            actor_id,
            lambda t, events, now: results.report_battle_royale_result(
                t, match_id, placements, events, now
            ),
        )

    async def report_forfeit(
        self,
        tournament_id: str,
        match_id: int,
        forfeiting_id: str,
        actor_id: str | None = None,
    ) -> Result[Match]:
        return await self._mutate(
            tournament_id,
            "report_forfeit",
            actor_id,
            lambda t, events, now: results.report_forfeit(t, match_id, forfeiting_id, events, now),
        )

    async def complete_tournament(
        self, tournament_id: str, actor_id: str | None = None
    ) -> Result[CompletionResult]:
        return await self._mutate(
            tournament_id, "complete_tournament", actor_id, complete_tournament
        )

    # ------------------------------------------------------------------ #
    # Queries (snapshots)                                                  #
    # ------------------------------------------------------------------ #

    def get_tournament(self, tournament_id: str) -> Result[Tournament]:
        tournament = self._tournaments.get(tournament_id)
        if tournament is None:
            return Result.failure("not_found", f"Tournament {tournament_id} not found")
        return Result.success(copy.deepcopy(tournament))

    def get_bracket(self, tournament_id: str) -> Result[BracketView]:
        found = self.get_tournament(tournament_id)
        if not found.ok:
            return Result(error=found.error)
        t = found.unwrap()
        return Result.success(
            BracketView(
                tournament_id=t.id,
                format=t.format,
                status=t.status,
                current_round=t.current_round,
                layout=t.layout,
                rounds=t.rounds,
                matches=t.matches,
            )
        )

    def get_standings(self, tournament_id: str) -> Result[list[StandingEntry]]:
        found = self.get_tournament(tournament_id)
        if not found.ok:
            return Result(error=found.error)
        t = found.unwrap()
        if t.completion is not None:
            return Result.success(list(t.completion.standings))
        return Result.success(compute_standings(t))

    def get_player_matches(
        self, tournament_id: str, participant_id: str, include_completed: bool = False
    ) -> Result[list[Match]]:
        found = self.get_tournament(tournament_id)
        if not found.ok:
            return Result(error=found.error)
        t = found.unwrap()
        if t.participant(participant_id) is None:
            return Result.failure(
                "not_found", f"{participant_id} is not in tournament {tournament_id}"
            )
        return Result.success([
            m for m in t.matches
            if participant_id in m.participant_ids
            and (include_completed or not m.is_terminal)
        ])

    def list_tournaments(self, status: TournamentStatus | None = None) -> list[Tournament]:
        found = [
            copy.deepcopy(t) for t in self._tournaments.values()
            if status is None or t.status == status
        ]
        return sorted(found, key=lambda t: t.created_at)

    def get_active_tournaments(self) -> list[Tournament]:
        return [t for t in self.list_tournaments() if t.status in _ACTIVE_STATUSES]

    def get_player_tournaments(self, participant_id: str) -> list[Tournament]:
        return [
            t for t in self.list_tournaments()
            if t.participant(participant_id) or t.waitlisted(participant_id)
        ]

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    def _authorize(
        self, actor_id: str | None, operation: str, tournament_id: str | None
    ) -> Result | None:
        if self._authorizer is None or self._authorizer(actor_id, operation, tournament_id):
            return None
        logger.warning("Denied %s on %s for %s", operation, tournament_id, actor_id)
        return Result.failure("unauthorized", f"{actor_id or 'anonymous'} may not {operation}")

    async def _mutate(
        self,
        tournament_id: str,
        operation: str,
        actor_id: str | None,
        apply: Callable[[Tournament, list[TournamentEvent], datetime], Result],
    ) -> Result:
        denied = self._authorize(actor_id, operation, tournament_id)
        if denied is not None:
            return denied
        lock = self._locks.get(tournament_id)
        if lock is None:
            return Result.failure("not_found", f"Tournament {tournament_id} not found")

        events: list[TournamentEvent] = []
        async with lock:
            working = copy.deepcopy(self._tournaments[tournament_id])
            result = apply(working, events, self._clock())
            if not result.ok:
                logger.debug(
                    "%s on %s rejected: %s", operation, tournament_id, result.error
                )
                return result
            # Raises BracketIntegrityError; nothing has been committed yet
            validate_bracket(working)
            self._tournaments[tournament_id] = working
            self._persist(working)
            value = copy.deepcopy(result.value)

        for event in events:
            self.notifier.publish(event)
        return Result.success(value)

    def _persist(self, tournament: Tournament) -> None:
        """Queue a save of the committed state behind any earlier save of it."""
        snapshot = copy.deepcopy(tournament)
        previous = self._last_save.get(tournament.id)
        task = asyncio.create_task(self._save(snapshot, previous))
        self._last_save[tournament.id] = task
        self._pending_saves.add(task)
        task.add_done_callback(functools.partial(self._save_done, tournament.id))

    async def _save(self, snapshot: Tournament, previous: asyncio.Task | None) -> None:
        if previous is not None:
            # _save never raises, so this only waits
            await previous
        try:
            await asyncio.to_thread(self.store.save, snapshot)
        except Exception:
            logger.exception("Failed to persist tournament %s", snapshot.id)

    def _save_done(self, tournament_id: str, task: asyncio.Task) -> None:
        self._pending_saves.discard(task)
        if self._last_save.get(tournament_id) is task:
            del self._last_save[tournament_id]

    async def flush(self) -> None:
        """Wait until every queued save has reached the store."""
        while self._pending_saves:
            await asyncio.gather(*self._pending_saves)
