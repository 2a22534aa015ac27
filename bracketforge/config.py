"""
Configuration loading from config.yaml, plus parsing of tournament creation
requests.

Uses typed dataclasses throughout so the rest of the app gets IDE
completion and type-checker support without touching raw dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from bracketforge.tournaments.base import (
    FORMATS,
    BattleRoyaleSettings,
    DoubleEliminationSettings,
    EntryFeeType,
    FormatSettings,
    PrizeShare,
    Reward,
    RoundRobinSettings,
    SeedingPolicy,
    SingleEliminationSettings,
    SpecialPrize,
    SwissSettings,
    TournamentFormat,
)

_SEEDING_POLICIES = ("rating", "random", "registration")
_FEE_TYPES = ("coins", "tickets", "free")
_CRITERIA = ("most_tags", "longest_survival", "underdog")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _default_distribution() -> list[PrizeShare]:
    return [PrizeShare(1, 50), PrizeShare(2, 30), PrizeShare(3, 20)]


@dataclass
class EngineConfig:
    storage_dir: str | None = None     # None keeps tournaments in memory only
    log_dir: str = "./logs"
    log_level: str = "INFO"
    event_history: int = 500           # events kept for WebSocket replay
    default_seeding: SeedingPolicy = "rating"
    rng_seed: int | None = None


@dataclass
class TournamentDefaults:
    min_players: int = 4
    max_players: int = 32
    entry_fee: int = 0
    entry_fee_type: EntryFeeType = "coins"
    prize_pool: int = 0
    prize_distribution: list[PrizeShare] = field(default_factory=_default_distribution)
    match_duration: int = 300          # seconds
    best_of: int = 1
    players_per_match: int = 10


@dataclass
class Config:
    engine: EngineConfig = field(default_factory=EngineConfig)
    defaults: TournamentDefaults = field(default_factory=TournamentDefaults)

    @property
    def log_dir_path(self) -> Path:
        return Path(self.engine.log_dir)

    @property
    def storage_dir_path(self) -> Path | None:
        return Path(self.engine.storage_dir) if self.engine.storage_dir else None


@dataclass
class TournamentConfig:
    """Everything needed to create a tournament."""

    name: str
    settings: FormatSettings = field(default_factory=SingleEliminationSettings)
    description: str = ""
    game_mode: str = "classic"
    created_by: str | None = None
    featured: bool = False
    tags: list[str] = field(default_factory=list)
    allow_spectators: bool = True
    registration_start: datetime | None = None
    registration_end: datetime | None = None
    start_time: datetime | None = None
    min_players: int = 4
    max_players: int = 32
    entry_fee: int = 0
    entry_fee_type: EntryFeeType = "coins"
    seeding: SeedingPolicy = "rating"
    prize_pool: int = 0
    prize_distribution: list[PrizeShare] = field(default_factory=_default_distribution)
    special_prizes: list[SpecialPrize] = field(default_factory=list)

    @property
    def format(self) -> TournamentFormat:
        return self.settings.format


# --------------------------------------------------------------------------- #
# config.yaml                                                                  #
# --------------------------------------------------------------------------- #

def load_config(path: str | Path = "config.yaml", *, missing_ok: bool = False) -> Config:
    """
    Load and validate config.yaml.

    Raises:
        FileNotFoundError: config.yaml is missing (unless missing_ok).
        ValueError: fields are absent or invalid.
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        if missing_ok:
            return Config()
        raise FileNotFoundError(
            f"Config file not found: {cfg_path.resolve()}\n"
            "Copy config.example.yaml to config.yaml and adjust it."
        )

    with cfg_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        engine_raw = raw.get("engine") or {}
        engine = EngineConfig(
            storage_dir=engine_raw.get("storage_dir") or None,
            log_dir=str(engine_raw.get("log_dir", "./logs")),
            log_level=str(engine_raw.get("log_level", "INFO")).upper(),
            event_history=int(engine_raw.get("event_history", 500)),
            default_seeding=engine_raw.get("default_seeding", "rating"),
            rng_seed=_optional_int(engine_raw.get("rng_seed")),
        )

        defaults_raw = raw.get("tournament_defaults") or {}
        distribution_raw = defaults_raw.get("prize_distribution")
        defaults = TournamentDefaults(
            min_players=int(defaults_raw.get("min_players", 4)),
            max_players=int(defaults_raw.get("max_players", 32)),
            entry_fee=int(defaults_raw.get("entry_fee", 0)),
            entry_fee_type=defaults_raw.get("entry_fee_type", "coins"),
            prize_pool=int(defaults_raw.get("prize_pool", 0)),
            prize_distribution=(
                _parse_distribution(distribution_raw)
                if distribution_raw is not None
                else _default_distribution()
            ),
            match_duration=int(defaults_raw.get("match_duration", 300)),
            best_of=int(defaults_raw.get("best_of", 1)),
            players_per_match=int(defaults_raw.get("players_per_match", 10)),
        )

        config = Config(engine=engine, defaults=defaults)
        _validate(config)
        return config

    except (AttributeError, KeyError, TypeError) as exc:
        raise ValueError(f"Invalid config.yaml structure: {exc}") from exc


def _validate(config: Config) -> None:
    engine = config.engine
    if engine.default_seeding not in _SEEDING_POLICIES:
        raise ValueError(
            f"engine.default_seeding must be one of {_SEEDING_POLICIES}, "
            f"got '{engine.default_seeding}'"
        )
    if engine.log_level not in _LOG_LEVELS:
        raise ValueError(f"engine.log_level must be one of {_LOG_LEVELS}")
    if engine.event_history < 0:
        raise ValueError("engine.event_history must be >= 0")

    d = config.defaults
    _check_capacity(d.min_players, d.max_players)
    if d.entry_fee_type not in _FEE_TYPES:
        raise ValueError(f"tournament_defaults.entry_fee_type must be one of {_FEE_TYPES}")
    _check_distribution(d.prize_distribution)
    if d.players_per_match < 2:
        raise ValueError("tournament_defaults.players_per_match must be >= 2")
    _check_best_of(d.best_of)


# --------------------------------------------------------------------------- #
# Tournament creation requests                                                 #
# --------------------------------------------------------------------------- #

def tournament_config_from_dict(
    raw: dict[str, Any],
    defaults: TournamentDefaults | None = None,
    default_seeding: SeedingPolicy = "rating",
) -> TournamentConfig:
    """
    Build a TournamentConfig from a request body, falling back to `defaults`
    for anything omitted.

    Raises:
        ValueError: missing name, unknown format, or invalid values.
    """
    d = defaults or TournamentDefaults()
    try:
        name = str(raw["name"]).strip()
        fmt = raw.get("format") or raw.get("type") or "single_elimination"
        settings_raw = raw.get("settings") or {}
        settings = settings_for(
            fmt,
            match_duration=int(settings_raw.get("match_duration", d.match_duration)),
            best_of=int(settings_raw.get("best_of", d.best_of)),
            players_per_match=int(settings_raw.get("players_per_match", d.players_per_match)),
            rounds=_optional_int(settings_raw.get("rounds")),
        )
        distribution_raw = raw.get("prize_distribution")
        cfg = TournamentConfig(
            name=name,
            settings=settings,
            description=str(raw.get("description", "")),
            game_mode=str(raw.get("game_mode", "classic")),
            created_by=raw.get("created_by"),
            featured=bool(raw.get("featured", False)),
            tags=[str(t) for t in raw.get("tags", [])],
            allow_spectators=bool(raw.get("allow_spectators", True)),
            registration_start=_optional_datetime(raw.get("registration_start")),
            registration_end=_optional_datetime(raw.get("registration_end")),
            start_time=_optional_datetime(raw.get("start_time")),
            min_players=int(raw.get("min_players", d.min_players)),
            max_players=int(raw.get("max_players", d.max_players)),
            entry_fee=int(raw.get("entry_fee", d.entry_fee)),
            entry_fee_type=raw.get("entry_fee_type", d.entry_fee_type),
            seeding=raw.get("seeding", default_seeding),
            prize_pool=int(raw.get("prize_pool", d.prize_pool)),
            prize_distribution=(
                _parse_distribution(distribution_raw)
                if distribution_raw is not None
                else list(d.prize_distribution)
            ),
            special_prizes=[_parse_special(s) for s in raw.get("special_prizes", [])],
        )
    except (AttributeError, KeyError, TypeError) as exc:
        raise ValueError(f"Invalid tournament request: {exc}") from exc

    validate_tournament_config(cfg)
    return cfg


def settings_for(
    fmt: str,
    *,
    match_duration: int = 300,
    best_of: int = 1,
    players_per_match: int = 10,
    rounds: int | None = None,
) -> FormatSettings:
    match fmt:
        case "single_elimination":
            return SingleEliminationSettings(match_duration=match_duration, best_of=best_of)
        case "double_elimination":
            return DoubleEliminationSettings(match_duration=match_duration, best_of=best_of)
        case "round_robin":
            return RoundRobinSettings(match_duration=match_duration, best_of=best_of)
        case "swiss":
            return SwissSettings(match_duration=match_duration, best_of=best_of, rounds=rounds)
        case "battle_royale":
            return BattleRoyaleSettings(
                match_duration=match_duration, players_per_match=players_per_match
            )
        case _:
            raise ValueError(f"Unknown tournament format: {fmt!r}. Valid formats: {', '.join(FORMATS)}")


def validate_tournament_config(cfg: TournamentConfig) -> None:
    if not cfg.name:
        raise ValueError("Tournament name is required")
    _check_capacity(cfg.min_players, cfg.max_players)
    if cfg.entry_fee < 0:
        raise ValueError("entry_fee must be >= 0")
    if cfg.entry_fee_type not in _FEE_TYPES:
        raise ValueError(f"entry_fee_type must be one of {_FEE_TYPES}")
    if cfg.seeding not in _SEEDING_POLICIES:
        raise ValueError(f"seeding must be one of {_SEEDING_POLICIES}")
    if cfg.prize_pool < 0:
        raise ValueError("prize_pool must be >= 0")
    _check_distribution(cfg.prize_distribution)
    for special in cfg.special_prizes:
        if special.criteria not in _CRITERIA:
            raise ValueError(f"special prize criteria must be one of {_CRITERIA}")

    s = cfg.settings
    if s.match_duration <= 0:
        raise ValueError("match_duration must be > 0")
    match s:
        case BattleRoyaleSettings(players_per_match=per_match) if per_match < 2:
            raise ValueError("players_per_match must be >= 2")
        case SwissSettings(rounds=rounds) if rounds is not None and rounds < 1:
            raise ValueError("Swiss rounds must be >= 1")
        case SingleEliminationSettings() | DoubleEliminationSettings() | RoundRobinSettings() | SwissSettings():
            _check_best_of(s.best_of)


def _check_capacity(min_players: int, max_players: int) -> None:
    if min_players < 2:
        raise ValueError("min_players must be >= 2")
    if max_players < min_players:
        raise ValueError("max_players must be >= min_players")


def _check_best_of(best_of: int) -> None:
    if best_of < 1 or best_of % 2 == 0:
        raise ValueError("best_of must be a positive odd number")


def _check_distribution(distribution: list[PrizeShare]) -> None:
    places = [s.place for s in distribution]
    if len(places) != len(set(places)):
        raise ValueError("prize_distribution places must be unique")
    if any(p < 1 for p in places):
        raise ValueError("prize_distribution places start at 1")
    if any(not 0 < s.percentage <= 100 for s in distribution):
        raise ValueError("prize_distribution percentages must be in (0, 100]")
    if sum(s.percentage for s in distribution) > 100:
        raise ValueError("prize_distribution percentages add up to more than 100")


def _parse_distribution(raw: list[dict[str, Any]]) -> list[PrizeShare]:
    return [PrizeShare(place=int(d["place"]), percentage=float(d["percentage"])) for d in raw]


def _parse_special(raw: dict[str, Any]) -> SpecialPrize:
    reward_raw = raw.get("reward") or {}
    if isinstance(reward_raw, (int, float)):
        reward = Reward(amount=int(reward_raw))
    else:
        reward = Reward(
            amount=int(reward_raw.get("amount", 0)),
            cosmetic_id=reward_raw.get("cosmetic_id"),
            title=reward_raw.get("title"),
        )
    return SpecialPrize(name=str(raw["name"]), criteria=raw["criteria"], reward=reward)


def _optional_int(value: object) -> int | None:
    if value is None or value == "":
        return None
    return int(value)  # type: ignore[arg-type]


def _optional_datetime(value: object) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
