"""
Tournament persistence.

The registry only needs two calls from a store: load_all() once at start and
save() after every committed mutation.  save() runs in a worker thread, so
implementations may block on disk I/O.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Protocol

from bracketforge.serialization import to_json_dict, tournament_from_dict
from bracketforge.tournaments.base import Tournament

logger = logging.getLogger(__name__)


class TournamentStore(Protocol):
    def load_all(self) -> list[Tournament]: ...

    def save(self, tournament: Tournament) -> None: ...


class MemoryTournamentStore:
    """Keeps snapshots in a dict.  Used when no storage_dir is configured."""

    def __init__(self) -> None:
        self._snapshots: dict[str, Tournament] = {}

    def load_all(self) -> list[Tournament]:
        return [copy.deepcopy(t) for t in self._snapshots.values()]

    def save(self, tournament: Tournament) -> None:
        self._snapshots[tournament.id] = copy.deepcopy(tournament)


class JsonTournamentStore:
    """One <id>.json file per tournament in `directory`."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, tournament_id: str) -> Path:
        return self._dir / f"{tournament_id}.json"

    def load_all(self) -> list[Tournament]:
        tournaments: list[Tournament] = []
        for path in sorted(self._dir.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                tournaments.append(tournament_from_dict(data))
            except (json.JSONDecodeError, ValueError, TypeError) as exc:
                logger.warning("Skipping unreadable tournament file %s: %s", path, exc)
        logger.info("Loaded %d tournament(s) from %s", len(tournaments), self._dir)
        return tournaments

    def save(self, tournament: Tournament) -> None:
        path = self.path_for(tournament.id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(to_json_dict(tournament), indent=2), encoding="utf-8")
        # Atomic on POSIX and Windows; readers never see a half-written file
        os.replace(tmp, path)
