"""
Tournament data model — the aggregate and everything it owns.

Format-specific data lives in two tagged unions instead of optional fields on
the aggregate:

  FormatSettings  — what the organiser configured (one class per format)
  BracketLayout   — what the bracket generator derived at start time

Matches are stored in an arena: Tournament.matches[i].id == i, and every
link between matches is an integer index into that list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Literal, Union

TournamentFormat = Literal[
    "single_elimination",
    "double_elimination",
    "round_robin",
    "swiss",
    "battle_royale",
]
TournamentStatus = Literal[
    "draft", "registration", "ready", "in_progress", "completed", "cancelled"
]
MatchStatus = Literal["pending", "ready", "in_progress", "completed", "bye", "forfeit"]
SeedingPolicy = Literal["rating", "random", "registration"]
EntryFeeType = Literal["coins", "tickets", "free"]
SpecialCriteria = Literal["most_tags", "longest_survival", "underdog"]
BracketSide = Literal["main", "winners", "losers", "grand_finals"]

FORMATS: tuple[TournamentFormat, ...] = (
    "single_elimination",
    "double_elimination",
    "round_robin",
    "swiss",
    "battle_royale",
)
TERMINAL_MATCH_STATUSES: frozenset[str] = frozenset({"completed", "bye", "forfeit"})
DEFAULT_RATING = 1000


# --------------------------------------------------------------------------- #
# Format settings (tagged union)                                               #
# --------------------------------------------------------------------------- #

@dataclass
class SingleEliminationSettings:
    format: ClassVar[TournamentFormat] = "single_elimination"
    match_duration: int = 300   # seconds
    best_of: int = 1


@dataclass
class DoubleEliminationSettings:
    format: ClassVar[TournamentFormat] = "double_elimination"
    match_duration: int = 300
    best_of: int = 1


@dataclass
class RoundRobinSettings:
    format: ClassVar[TournamentFormat] = "round_robin"
    match_duration: int = 300
    best_of: int = 1


@dataclass
class SwissSettings:
    format: ClassVar[TournamentFormat] = "swiss"
    match_duration: int = 300
    best_of: int = 1
    rounds: int | None = None   # None = ceil(log2(n))


@dataclass
class BattleRoyaleSettings:
    format: ClassVar[TournamentFormat] = "battle_royale"
    match_duration: int = 300
    players_per_match: int = 10


FormatSettings = Union[
    SingleEliminationSettings,
    DoubleEliminationSettings,
    RoundRobinSettings,
    SwissSettings,
    BattleRoyaleSettings,
]


# --------------------------------------------------------------------------- #
# Bracket layouts (tagged union, filled in by the generators)                  #
# --------------------------------------------------------------------------- #

@dataclass
class EliminationLayout:
    bracket_size: int
    byes: int
    num_rounds: int


@dataclass
class DoubleEliminationLayout:
    bracket_size: int
    byes: int
    num_rounds: int                 # winners-bracket rounds
    losers_rounds: int
    winners_final_id: int
    losers_final_id: int | None     # None for a two-player field
    grand_finals_id: int
    reset_match_id: int | None = None
    requires_reset: bool = False


@dataclass
class RoundRobinLayout:
    padded: bool                    # a virtual BYE was inserted
    total_rounds: int


@dataclass
class SwissLayout:
    total_rounds: int
    bye_history: list[str] = field(default_factory=list)


@dataclass
class BattleRoyaleLayout:
    players_per_match: int


BracketLayout = Union[
    EliminationLayout,
    DoubleEliminationLayout,
    RoundRobinLayout,
    SwissLayout,
    BattleRoyaleLayout,
]


# --------------------------------------------------------------------------- #
# Participants                                                                 #
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class PlayerIdentity:
    """What the identity service hands us at registration time."""

    id: str
    name: str
    avatar: str | None = None
    rating: int = DEFAULT_RATING


@dataclass
class ParticipantStats:
    wins: int = 0
    losses: int = 0
    draws: int = 0
    tags: int = 0
    survival_time: float = 0.0

    @property
    def points(self) -> int:
        return self.wins * 3 + self.draws


@dataclass
class Participant:
    id: str
    name: str
    avatar: str | None = None
    rating: int = DEFAULT_RATING
    registered_at: datetime = field(default_factory=datetime.now)
    seed: int | None = None          # assigned at start, immutable thereafter
    checked_in: bool = False
    eliminated: bool = False
    placement: int | None = None
    stats: ParticipantStats = field(default_factory=ParticipantStats)

    @classmethod
    def from_identity(cls, identity: PlayerIdentity, registered_at: datetime) -> Participant:
        return cls(
            id=identity.id,
            name=identity.name,
            avatar=identity.avatar,
            rating=identity.rating,
            registered_at=registered_at,
        )


@dataclass(frozen=True)
class StatDelta:
    """Per-player stat increments reported alongside a result."""

    tags: int = 0
    survival_time: float = 0.0


@dataclass(frozen=True)
class PlacementEntry:
    """One finisher in a battle-royale group, best first."""

    participant_id: str
    tags: int = 0
    survival_time: float = 0.0


# --------------------------------------------------------------------------- #
# Matches and rounds                                                           #
# --------------------------------------------------------------------------- #

@dataclass
class Match:
    id: int
    round: int                       # 1-based Round.number
    position: int                    # index within its round
    slots: list[str | None]          # participant ids; None = to be determined
    status: MatchStatus = "pending"
    bracket: BracketSide = "main"
    scores: dict[str, int] = field(default_factory=dict)
    winner_id: str | None = None
    loser_id: str | None = None
    is_draw: bool = False
    next_match_id: int | None = None         # where the winner goes
    loser_next_match_id: int | None = None   # where the loser drops (double elim)
    previous_match_ids: list[int] = field(default_factory=list)
    completed_at: datetime | None = None
    # Battle royale only
    qualify_count: int | None = None
    placements: list[str] = field(default_factory=list)

    @property
    def participant_ids(self) -> list[str]:
        return [p for p in self.slots if p is not None]

    @property
    def is_battle_royale(self) -> bool:
        return self.qualify_count is not None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_MATCH_STATUSES

    @property
    def is_filled(self) -> bool:
        return all(p is not None for p in self.slots)


@dataclass
class Round:
    number: int
    name: str
    match_ids: list[int] = field(default_factory=list)
    bracket: BracketSide = "main"
    completed: bool = False


# --------------------------------------------------------------------------- #
# Prizes                                                                       #
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class PrizeShare:
    place: int
    percentage: float


@dataclass(frozen=True)
class Reward:
    amount: int = 0
    cosmetic_id: str | None = None
    title: str | None = None


@dataclass(frozen=True)
class SpecialPrize:
    name: str
    criteria: SpecialCriteria
    reward: Reward = field(default_factory=Reward)


@dataclass(frozen=True)
class PrizeAward:
    """Computed once at completion; never mutated."""

    participant_id: str
    participant_name: str
    place: int | None = None            # set for placement prizes
    special: str | None = None          # special-prize name
    criteria: SpecialCriteria | None = None
    amount: int = 0
    currency: EntryFeeType = "coins"
    reward: Reward | None = None


@dataclass(frozen=True)
class StandingEntry:
    rank: int
    participant_id: str
    name: str
    seed: int | None
    points: int
    wins: int
    losses: int
    draws: int
    tags: int
    survival_time: float
    eliminated: bool
    placement: int | None


@dataclass(frozen=True)
class CompletionResult:
    standings: list[StandingEntry]
    prizes: list[PrizeAward]


# --------------------------------------------------------------------------- #
# Aggregate                                                                    #
# --------------------------------------------------------------------------- #

@dataclass
class Tournament:
    id: str
    name: str
    settings: FormatSettings
    status: TournamentStatus = "draft"
    description: str = ""
    game_mode: str = "classic"
    created_by: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    featured: bool = False
    tags: list[str] = field(default_factory=list)
    allow_spectators: bool = True

    # Scheduling window
    registration_start: datetime | None = None
    registration_end: datetime | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None

    # Capacity and entry
    min_players: int = 4
    max_players: int = 32
    entry_fee: int = 0
    entry_fee_type: EntryFeeType = "coins"
    seeding: SeedingPolicy = "rating"

    # Prizes
    prize_pool: int = 0
    prize_distribution: list[PrizeShare] = field(default_factory=list)
    special_prizes: list[SpecialPrize] = field(default_factory=list)

    participants: list[Participant] = field(default_factory=list)
    waitlist: list[Participant] = field(default_factory=list)

    # Bracket
    layout: BracketLayout | None = None
    rounds: list[Round] = field(default_factory=list)
    matches: list[Match] = field(default_factory=list)
    current_round: int = 0

    completion: CompletionResult | None = None

    @property
    def format(self) -> TournamentFormat:
        return self.settings.format

    @property
    def is_elimination(self) -> bool:
        return self.format in ("single_elimination", "double_elimination")

    def participant(self, participant_id: str) -> Participant | None:
        return next((p for p in self.participants if p.id == participant_id), None)

    def waitlisted(self, participant_id: str) -> Participant | None:
        return next((p for p in self.waitlist if p.id == participant_id), None)

    def match(self, match_id: int) -> Match | None:
        if 0 <= match_id < len(self.matches):
            return self.matches[match_id]
        return None
