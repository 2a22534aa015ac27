"""Tests for config.yaml loading and tournament request parsing."""

from __future__ import annotations

import tempfile
import textwrap
import unittest
from datetime import datetime
from pathlib import Path

from bracketforge.config import (
    TournamentConfig,
    TournamentDefaults,
    load_config,
    tournament_config_from_dict,
    validate_tournament_config,
)
from bracketforge.tournaments.base import (
    BattleRoyaleSettings,
    PrizeShare,
    SingleEliminationSettings,
    SwissSettings,
)


class LoadConfigTests(unittest.TestCase):

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.dir = Path(self._tmp.name)

    def _write(self, body: str) -> Path:
        path = self.dir / "config.yaml"
        path.write_text(textwrap.dedent(body), encoding="utf-8")
        return path

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_config(self.dir / "config.yaml")
        cfg = load_config(self.dir / "config.yaml", missing_ok=True)
        self.assertIsNone(cfg.storage_dir_path)
        self.assertEqual(cfg.defaults.max_players, 32)

    def test_empty_file_uses_defaults(self):
        cfg = load_config(self._write(""))
        self.assertEqual(cfg.engine.log_level, "INFO")
        self.assertEqual(cfg.engine.default_seeding, "rating")
        self.assertEqual(
            [(s.place, s.percentage) for s in cfg.defaults.prize_distribution],
            [(1, 50), (2, 30), (3, 20)],
        )

    def test_full_file(self):
        cfg = load_config(self._write("""
            engine:
              storage_dir: ./data
              log_dir: ./var/log
              log_level: debug
              event_history: 50
              default_seeding: random
              rng_seed: 7
            tournament_defaults:
              min_players: 2
              max_players: 16
              entry_fee: 10
              entry_fee_type: tickets
              prize_distribution:
                - { place: 1, percentage: 70 }
                - { place: 2, percentage: 30 }
              best_of: 3
              players_per_match: 8
        """))
        self.assertEqual(cfg.engine.log_level, "DEBUG")
        self.assertEqual(cfg.engine.rng_seed, 7)
        self.assertEqual(cfg.storage_dir_path, Path("./data"))
        self.assertEqual(cfg.log_dir_path, Path("./var/log"))
        self.assertEqual(cfg.defaults.entry_fee_type, "tickets")
        self.assertEqual(cfg.defaults.prize_distribution, [PrizeShare(1, 70.0), PrizeShare(2, 30.0)])
        self.assertEqual(cfg.defaults.best_of, 3)

    def test_invalid_values(self):
        cases = [
            "engine:\n  default_seeding: alphabetical\n",
            "engine:\n  log_level: LOUD\n",
            "tournament_defaults:\n  min_players: 1\n",
            "tournament_defaults:\n  best_of: 2\n",
            "tournament_defaults:\n  prize_distribution:\n    - {place: 1, percentage: 80}\n"
            "    - {place: 2, percentage: 40}\n",
            "tournament_defaults:\n  prize_distribution:\n    - {percentage: 80}\n",
            "engine: [1, 2]\n",
        ]
        for body in cases:
            with self.subTest(body=body):
                with self.assertRaises(ValueError):
                    load_config(self._write(body))


class TournamentRequestTests(unittest.TestCase):

    def test_defaults_fill_gaps(self):
        defaults = TournamentDefaults(max_players=12, entry_fee=5, best_of=3)
        cfg = tournament_config_from_dict({"name": "  Cup  "}, defaults)
        self.assertEqual(cfg.name, "Cup")
        self.assertEqual(cfg.max_players, 12)
        self.assertEqual(cfg.entry_fee, 5)
        self.assertEqual(cfg.settings, SingleEliminationSettings(best_of=3))

    def test_format_settings(self):
        swiss = tournament_config_from_dict(
            {"name": "S", "type": "swiss", "settings": {"rounds": 4, "match_duration": 600}}
        )
        self.assertEqual(swiss.settings, SwissSettings(match_duration=600, rounds=4))

        royale = tournament_config_from_dict(
            {"name": "BR", "format": "battle_royale", "settings": {"players_per_match": 6}}
        )
        self.assertIsInstance(royale.settings, BattleRoyaleSettings)
        self.assertEqual(royale.format, "battle_royale")
        self.assertEqual(royale.settings.players_per_match, 6)

    def test_special_prizes_and_dates(self):
        cfg = tournament_config_from_dict({
            "name": "Cup",
            "start_time": "2026-03-01T18:00:00",
            "special_prizes": [
                {"name": "Sharpshooter", "criteria": "most_tags", "reward": 25},
                {
                    "name": "Giant Killer",
                    "criteria": "underdog",
                    "reward": {"amount": 10, "title": "Giant Killer"},
                },
            ],
        })
        self.assertEqual(cfg.start_time, datetime(2026, 3, 1, 18, 0))
        self.assertEqual(cfg.special_prizes[0].reward.amount, 25)
        self.assertEqual(cfg.special_prizes[1].reward.title, "Giant Killer")

    def test_invalid_requests(self):
        cases = [
            {},
            {"name": ""},
            {"name": "X", "format": "ladder"},
            {"name": "X", "entry_fee": -1},
            {"name": "X", "seeding": "alphabetical"},
            {"name": "X", "format": "battle_royale", "settings": {"players_per_match": 1}},
            {"name": "X", "format": "swiss", "settings": {"rounds": 0}},
            {"name": "X", "special_prizes": [{"name": "Y", "criteria": "fastest"}]},
            {"name": "X", "start_time": "next tuesday"},
        ]
        for raw in cases:
            with self.subTest(raw=raw):
                with self.assertRaises(ValueError):
                    tournament_config_from_dict(raw)

    def test_validate_dataclass_directly(self):
        validate_tournament_config(TournamentConfig(name="Fine"))
        with self.assertRaises(ValueError):
            validate_tournament_config(
                TournamentConfig(name="Bad", settings=SingleEliminationSettings(match_duration=0))
            )
