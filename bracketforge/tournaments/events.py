"""
Tournament event dataclasses — the shared language between the engine and any
consumer (CLI display, WebSocket stream, tests).

All events are frozen so they're safe to hand to subscribers running on other
tasks, and dataclasses.asdict() serialises them to JSON-compatible dicts.
Each class carries its wire name in the `name` ClassVar.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Union

from bracketforge.tournaments.base import MatchStatus, PrizeAward, TournamentFormat


@dataclass(frozen=True)
class RegistrationOpenedEvent:
    name: ClassVar[str] = "registration_opened"

    tournament_id: str
    tournament_name: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class PlayerRegisteredEvent:
    name: ClassVar[str] = "player_registered"

    tournament_id: str
    participant_id: str
    participant_name: str
    position: int
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class PlayerPromotedEvent:
    """A waitlisted player took a freed slot."""

    name: ClassVar[str] = "player_promoted"

    tournament_id: str
    participant_id: str
    participant_name: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class TournamentStartedEvent:
    name: ClassVar[str] = "tournament_started"

    tournament_id: str
    format: TournamentFormat
    participant_ids: list[str]      # seed order
    total_rounds: int               # rounds known at start; lazy formats may add more
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class MatchReadyEvent:
    name: ClassVar[str] = "match_ready"

    tournament_id: str
    match_id: int
    round_num: int
    participant_ids: list[str]


@dataclass(frozen=True)
class MatchCompletedEvent:
    name: ClassVar[str] = "match_completed"

    tournament_id: str
    match_id: int
    round_num: int
    status: MatchStatus
    winner_id: str | None
    loser_id: str | None
    is_draw: bool = False
    qualifier_ids: list[str] = field(default_factory=list)   # battle royale
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class RoundCompleteEvent:
    name: ClassVar[str] = "round_complete"

    tournament_id: str
    round_num: int
    round_name: str


@dataclass(frozen=True)
class TournamentCompletedEvent:
    name: ClassVar[str] = "tournament_completed"

    tournament_id: str
    standing_ids: list[str]         # final order, champion first
    prizes: list[PrizeAward]
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class TournamentCancelledEvent:
    name: ClassVar[str] = "tournament_cancelled"

    tournament_id: str
    timestamp: datetime = field(default_factory=datetime.now)


# Union type for type-safe pattern matching in consumers
TournamentEvent = Union[
    RegistrationOpenedEvent,
    PlayerRegisteredEvent,
    PlayerPromotedEvent,
    TournamentStartedEvent,
    MatchReadyEvent,
    MatchCompletedEvent,
    RoundCompleteEvent,
    TournamentCompletedEvent,
    TournamentCancelledEvent,
]

EVENT_NAMES: tuple[str, ...] = (
    RegistrationOpenedEvent.name,
    PlayerRegisteredEvent.name,
    PlayerPromotedEvent.name,
    TournamentStartedEvent.name,
    MatchReadyEvent.name,
    MatchCompletedEvent.name,
    RoundCompleteEvent.name,
    TournamentCompletedEvent.name,
    TournamentCancelledEvent.name,
)
