"""Seeding policies: order confirmed participants and stamp seed = index + 1."""

from __future__ import annotations

import logging
import random

from bracketforge.tournaments.base import Participant, SeedingPolicy

logger = logging.getLogger(__name__)


def seed_participants(
    participants: list[Participant],
    policy: SeedingPolicy,
    rng: random.Random | None = None,
) -> list[Participant]:
    """
    Return participants in seed order with .seed assigned.

    "rating"       — rating descending; ties keep registration order
    "random"       — uniform shuffle from `rng` (pass a seeded Random for tests)
    "registration" — unchanged
    """
    match policy:
        case "rating":
            # sorted() is stable, so equal ratings keep registration order
            seeded = sorted(participants, key=lambda p: -p.rating)
        case "random":
            seeded = list(participants)
            (rng or random.Random()).shuffle(seeded)
        case "registration":
            seeded = list(participants)
        case _:
            raise ValueError(f"Unknown seeding policy: {policy!r}")

    for index, participant in enumerate(seeded):
        participant.seed = index + 1

    logger.debug("Seeded %d participants by %s", len(seeded), policy)
    return seeded
