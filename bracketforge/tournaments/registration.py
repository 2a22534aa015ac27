"""
Registration lifecycle: open/close registration, (un)register, check-in, cancel.

Every function mutates the tournament it is given and appends the events it
produces to `events`; the registry hands in a private working copy and only
commits it when the returned Result is a success.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from bracketforge.errors import Result
from bracketforge.tournaments.base import Participant, PlayerIdentity, Tournament
from bracketforge.tournaments.events import (
    PlayerPromotedEvent,
    PlayerRegisteredEvent,
    RegistrationOpenedEvent,
    TournamentCancelledEvent,
    TournamentEvent,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrationOutcome:
    """Waitlisting is an outcome, not an error: accepted=False, waitlist_position=k."""

    accepted: bool
    position: int | None = None
    waitlist_position: int | None = None


@dataclass(frozen=True)
class UnregisterOutcome:
    refund: int
    promoted_id: str | None = None


def open_registration(
    tournament: Tournament, events: list[TournamentEvent], now: datetime
) -> Result[Tournament]:
    if tournament.status != "draft":
        return Result.failure(
            "invalid_state", f"Tournament is {tournament.status}, not draft"
        )
    tournament.status = "registration"
    if tournament.registration_start is None:
        tournament.registration_start = now
    events.append(
        RegistrationOpenedEvent(tournament_id=tournament.id, tournament_name=tournament.name)
    )
    logger.info("Tournament %s: registration opened", tournament.id)
    return Result.success(tournament)


def close_registration(
    tournament: Tournament, events: list[TournamentEvent], now: datetime
) -> Result[Tournament]:
    if tournament.status != "registration":
        return Result.failure("invalid_state", "Registration is not open")
    tournament.status = "ready"
    tournament.registration_end = now
    logger.info("Tournament %s: registration closed", tournament.id)
    return Result.success(tournament)


def register_player(
    tournament: Tournament,
    identity: PlayerIdentity,
    fee_paid: bool,
    events: list[TournamentEvent],
    now: datetime,
) -> Result[RegistrationOutcome]:
    if tournament.status != "registration":
        return Result.failure("invalid_state", "Registration is not open")
    if tournament.participant(identity.id) or tournament.waitlisted(identity.id):
        return Result.failure("already_registered", f"{identity.id} is already registered")
    if tournament.entry_fee > 0 and not fee_paid:
        return Result.failure(
            "payment_required",
            f"Entry fee of {tournament.entry_fee} {tournament.entry_fee_type} required",
        )

    participant = Participant.from_identity(identity, registered_at=now)
    if len(tournament.participants) < tournament.max_players:
        tournament.participants.append(participant)
        position = len(tournament.participants)
        events.append(
            PlayerRegisteredEvent(
                tournament_id=tournament.id,
                participant_id=participant.id,
                participant_name=participant.name,
                position=position,
            )
        )
        logger.info("Tournament %s: registered %s (#%d)", tournament.id, participant.id, position)
        return Result.success(RegistrationOutcome(accepted=True, position=position))

    tournament.waitlist.append(participant)
    waitlist_position = len(tournament.waitlist)
    logger.info(
        "Tournament %s: %s waitlisted at position %d",
        tournament.id, participant.id, waitlist_position,
    )
    return Result.success(
        RegistrationOutcome(accepted=False, waitlist_position=waitlist_position)
    )


def unregister_player(
    tournament: Tournament,
    participant_id: str,
    events: list[TournamentEvent],
) -> Result[UnregisterOutcome]:
    if tournament.status != "registration":
        return Result.failure("invalid_state", "Cannot unregister after registration closes")

    waiting = tournament.waitlisted(participant_id)
    if waiting is not None:
        tournament.waitlist.remove(waiting)
        return Result.success(UnregisterOutcome(refund=tournament.entry_fee))

    participant = tournament.participant(participant_id)
    if participant is None:
        return Result.failure("not_found", f"{participant_id} is not registered")

    tournament.participants.remove(participant)
    promoted_id = None
    if tournament.waitlist:
        promoted = tournament.waitlist.pop(0)
        tournament.participants.append(promoted)
        promoted_id = promoted.id
        events.append(
            PlayerPromotedEvent(
                tournament_id=tournament.id,
                participant_id=promoted.id,
                participant_name=promoted.name,
            )
        )
        logger.info("Tournament %s: promoted %s from waitlist", tournament.id, promoted.id)

    return Result.success(
        UnregisterOutcome(refund=tournament.entry_fee, promoted_id=promoted_id)
    )


def check_in(tournament: Tournament, participant_id: str) -> Result[Participant]:
    participant = tournament.participant(participant_id)
    if participant is None:
        return Result.failure("not_found", f"{participant_id} is not registered")
    participant.checked_in = True
    return Result.success(participant)


def cancel_tournament(
    tournament: Tournament, events: list[TournamentEvent], now: datetime
) -> Result[Tournament]:
    if tournament.status in ("completed", "cancelled"):
        return Result.failure("invalid_state", f"Tournament is already {tournament.status}")
    tournament.status = "cancelled"
    tournament.end_time = now
    events.append(TournamentCancelledEvent(tournament_id=tournament.id))
    logger.info("Tournament %s: cancelled", tournament.id)
    return Result.success(tournament)
