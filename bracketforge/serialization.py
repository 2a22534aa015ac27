"""
JSON serialisation for tournaments and events.

to_json_dict() converts any dataclass to a JSON-safe dict and injects a
"type" key (the class name) at every level of nesting, so a consumer can
dispatch on nested payloads (e.g. the PrizeAward list inside a
TournamentCompletedEvent) as well as on the outer object.

tournament_from_dict() is the inverse for stored Tournament snapshots: the
"type" tags pick the class, which is how the settings and layout unions are
restored.
"""

from __future__ import annotations

import dataclasses
import json
from datetime import date, datetime
from typing import Any

from bracketforge.tournaments.base import (
    BattleRoyaleLayout,
    BattleRoyaleSettings,
    CompletionResult,
    DoubleEliminationLayout,
    DoubleEliminationSettings,
    EliminationLayout,
    Match,
    Participant,
    ParticipantStats,
    PrizeAward,
    PrizeShare,
    Reward,
    Round,
    RoundRobinLayout,
    RoundRobinSettings,
    SingleEliminationSettings,
    SpecialPrize,
    StandingEntry,
    SwissLayout,
    SwissSettings,
    Tournament,
)

_TYPES: dict[str, type] = {
    cls.__name__: cls
    for cls in (
        BattleRoyaleLayout,
        BattleRoyaleSettings,
        CompletionResult,
        DoubleEliminationLayout,
        DoubleEliminationSettings,
        EliminationLayout,
        Match,
        Participant,
        ParticipantStats,
        PrizeAward,
        PrizeShare,
        Reward,
        Round,
        RoundRobinLayout,
        RoundRobinSettings,
        SingleEliminationSettings,
        SpecialPrize,
        StandingEntry,
        SwissLayout,
        SwissSettings,
        Tournament,
    )
}

# Fields stored as ISO-8601 strings
_DATETIME_FIELDS = frozenset({
    "created_at",
    "registered_at",
    "registration_start",
    "registration_end",
    "start_time",
    "end_time",
    "completed_at",
    "timestamp",
})


def to_json_dict(obj: Any) -> Any:
    """Recursively convert dataclasses to dicts, tagging each with "type"."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            "type": type(obj).__name__,
            **{f.name: to_json_dict(getattr(obj, f.name)) for f in dataclasses.fields(obj)},
        }
    if isinstance(obj, (list, tuple)):
        return [to_json_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): to_json_dict(v) for k, v in obj.items()}
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return obj


def to_json(obj: Any, **kwargs: Any) -> str:
    return json.dumps(to_json_dict(obj), **kwargs)


def tournament_from_dict(data: dict[str, Any]) -> Tournament:
    """
    Rebuild a Tournament from to_json_dict() output.

    Raises:
        ValueError: the payload is not a tagged Tournament or holds an
            unknown type tag.
    """
    if not isinstance(data, dict) or data.get("type") != "Tournament":
        raise ValueError("Not a serialised Tournament")
    tournament = _from_json(data)
    if not isinstance(tournament, Tournament):
        raise ValueError(f"Payload decoded to {type(tournament).__name__}, not Tournament")
    return tournament


def _from_json(value: Any, key: str | None = None) -> Any:
    if isinstance(value, list):
        return [_from_json(item) for item in value]
    if isinstance(value, dict):
        tag = value.get("type")
        if tag is None:
            return {k: _from_json(v) for k, v in value.items()}
        cls = _TYPES.get(tag)
        if cls is None:
            raise ValueError(f"Unknown type tag {tag!r}")
        names = {f.name for f in dataclasses.fields(cls)}
        kwargs = {k: _from_json(v, k) for k, v in value.items() if k in names}
        return cls(**kwargs)
    if key in _DATETIME_FIELDS and isinstance(value, str):
        return datetime.fromisoformat(value)
    return value
