"""
FastAPI application — HTTP and WebSocket front-end for the tournament registry.

Exposes:
  GET    /api/tournaments                                  List (optional ?status=)
  GET    /api/tournaments/active                           Registration or in progress
  POST   /api/tournaments                                  Create from a config body
  GET    /api/tournaments/{tid}                            Full snapshot
  POST   /api/tournaments/{tid}/registration/open|close
  POST   /api/tournaments/{tid}/players                    Register
  DELETE /api/tournaments/{tid}/players/{pid}              Unregister
  POST   /api/tournaments/{tid}/players/{pid}/check-in
  GET    /api/tournaments/{tid}/players/{pid}/matches
  POST   /api/tournaments/{tid}/start|complete|cancel
  GET    /api/tournaments/{tid}/bracket
  GET    /api/tournaments/{tid}/standings
  POST   /api/tournaments/{tid}/matches/{mid}/start|result|placements|forfeit
  GET    /api/players/{pid}/tournaments
  WS     /ws/tournaments/{tid}                             Replay + live events

The acting user id, when present, is read from the X-Actor-Id header and
passed to the registry's authorizer.
"""

from __future__ import annotations

import asyncio
import logging
import logging.handlers
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import Any

from fastapi import FastAPI, Header, HTTPException, WebSocket, WebSocketDisconnect

from bracketforge.config import Config, load_config
from bracketforge.errors import ErrorKind, Result
from bracketforge.notifier import EventNotifier
from bracketforge.registry import TournamentRegistry
from bracketforge.serialization import to_json_dict
from bracketforge.storage import JsonTournamentStore, MemoryTournamentStore
from bracketforge.tournaments.base import PlacementEntry, PlayerIdentity, StatDelta, Tournament
from bracketforge.tournaments.events import TournamentEvent

config = load_config(missing_ok=True)

# --------------------------------------------------------------------------- #
# Logging                                                                      #
# --------------------------------------------------------------------------- #

_LOG_FILE = config.log_dir_path / "bracketforge.log"
_LOG_FILE.parent.mkdir(parents=True, exist_ok=True)

logging.basicConfig(
    level=config.engine.log_level,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    handlers=[
        logging.StreamHandler(),                                   # server console
        logging.handlers.RotatingFileHandler(
            _LOG_FILE, maxBytes=2 * 1024 * 1024, backupCount=3,  # 2 MB × 3 files
            encoding="utf-8",
        ),
    ],
)
logger = logging.getLogger("bracketforge")

_HTTP_STATUS: dict[ErrorKind, int] = {
    "not_found": 404,
    "invalid_state": 409,
    "already_registered": 409,
    "insufficient_players": 409,
    "payment_required": 402,
    "unauthorized": 403,
    "invalid_config": 422,
}


def _unwrap(result: Result) -> Any:
    """Return the JSON-ready value of a successful Result or raise HTTPException."""
    if result.error is not None:
        raise HTTPException(
            status_code=_HTTP_STATUS[result.error.kind],
            detail={"kind": result.error.kind, "reason": result.error.reason},
        )
    return to_json_dict(result.value)


def _summary(t: Tournament) -> dict[str, Any]:
    return {
        "id": t.id,
        "name": t.name,
        "format": t.format,
        "status": t.status,
        "game_mode": t.game_mode,
        "featured": t.featured,
        "tags": t.tags,
        "participants": len(t.participants),
        "max_players": t.max_players,
        "entry_fee": t.entry_fee,
        "entry_fee_type": t.entry_fee_type,
        "prize_pool": t.prize_pool,
        "created_at": t.created_at.isoformat(),
        "start_time": t.start_time.isoformat() if t.start_time else None,
    }


def _event_payload(event: TournamentEvent) -> dict[str, Any]:
    return {"event": event.name, **to_json_dict(event)}


def _require(payload: dict, key: str) -> Any:
    if key not in payload:
        raise HTTPException(status_code=422, detail=f"{key} is required")
    return payload[key]


@contextmanager
def _malformed_body() -> Iterator[None]:
    """Report a body field of the wrong shape or type as a 422."""
    try:
        yield
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise HTTPException(status_code=422, detail=f"Malformed request body: {exc!r}") from exc


def build_registry(cfg: Config) -> TournamentRegistry:
    storage_dir = cfg.storage_dir_path
    store = JsonTournamentStore(storage_dir) if storage_dir else MemoryTournamentStore()
    return TournamentRegistry(
        store,
        EventNotifier(history_size=cfg.engine.event_history),
        defaults=cfg.defaults,
        default_seeding=cfg.engine.default_seeding,
    )


def create_app(registry: TournamentRegistry) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        count = await registry.load()
        logger.info("Registry ready with %d stored tournament(s)", count)
        yield
        await registry.notifier.drain()
        await registry.flush()

    app = FastAPI(title="BracketForge", lifespan=lifespan)
    app.state.registry = registry

    # ----------------------------------------------------------------------- #
    # Listing                                                                  #
    # ----------------------------------------------------------------------- #

    @app.get("/api/tournaments")
    def list_tournaments(status: str | None = None):
        return [_summary(t) for t in registry.list_tournaments(status)]  # type: ignore[arg-type]

    @app.get("/api/tournaments/active")
    def active_tournaments():
        return [_summary(t) for t in registry.get_active_tournaments()]

    @app.get("/api/players/{player_id}/tournaments")
    def player_tournaments(player_id: str):
        return [_summary(t) for t in registry.get_player_tournaments(player_id)]

    # ----------------------------------------------------------------------- #
    # Lifecycle                                                                #
    # ----------------------------------------------------------------------- #

    @app.post("/api/tournaments", status_code=201)
    async def create_tournament(payload: dict, x_actor_id: str | None = Header(default=None)):
        tid = _unwrap(await registry.create_tournament(payload, actor_id=x_actor_id))
        return {"id": tid}

    @app.get("/api/tournaments/{tournament_id}")
    def get_tournament(tournament_id: str):
        return _unwrap(registry.get_tournament(tournament_id))

    @app.post("/api/tournaments/{tournament_id}/registration/open")
    async def open_registration(tournament_id: str, x_actor_id: str | None = Header(default=None)):
        _unwrap(await registry.open_registration(tournament_id, actor_id=x_actor_id))
        return {"status": "registration"}

    @app.post("/api/tournaments/{tournament_id}/registration/close")
    async def close_registration(tournament_id: str, x_actor_id: str | None = Header(default=None)):
        _unwrap(await registry.close_registration(tournament_id, actor_id=x_actor_id))
        return {"status": "ready"}

    @app.post("/api/tournaments/{tournament_id}/start")
    async def start_tournament(tournament_id: str, x_actor_id: str | None = Header(default=None)):
        return _unwrap(await registry.start_tournament(tournament_id, actor_id=x_actor_id))

    @app.post("/api/tournaments/{tournament_id}/complete")
    async def complete_tournament(tournament_id: str, x_actor_id: str | None = Header(default=None)):
        return _unwrap(await registry.complete_tournament(tournament_id, actor_id=x_actor_id))

    @app.post("/api/tournaments/{tournament_id}/cancel")
    async def cancel_tournament(tournament_id: str, x_actor_id: str | None = Header(default=None)):
        _unwrap(await registry.cancel_tournament(tournament_id, actor_id=x_actor_id))
        return {"status": "cancelled"}

    # ----------------------------------------------------------------------- #
    # Players                                                                  #
    # ----------------------------------------------------------------------- #

    @app.post("/api/tournaments/{tournament_id}/players")
    async def register_player(
        tournament_id: str, payload: dict, x_actor_id: str | None = Header(default=None)
    ):
        with _malformed_body():
            identity = PlayerIdentity(
                id=str(_require(payload, "id")),
                name=str(payload.get("name") or payload["id"]),
                avatar=payload.get("avatar"),
                rating=int(payload.get("rating", 1000)),
            )
        return _unwrap(
            await registry.register_player(
                tournament_id, identity, bool(payload.get("fee_paid", False)), actor_id=x_actor_id
            )
        )

    @app.delete("/api/tournaments/{tournament_id}/players/{player_id}")
    async def unregister_player(
        tournament_id: str, player_id: str, x_actor_id: str | None = Header(default=None)
    ):
        return _unwrap(
            await registry.unregister_player(tournament_id, player_id, actor_id=x_actor_id)
        )

    @app.post("/api/tournaments/{tournament_id}/players/{player_id}/check-in")
    async def check_in(
        tournament_id: str, player_id: str, x_actor_id: str | None = Header(default=None)
    ):
        return _unwrap(await registry.check_in(tournament_id, player_id, actor_id=x_actor_id))

    @app.get("/api/tournaments/{tournament_id}/players/{player_id}/matches")
    def player_matches(tournament_id: str, player_id: str, include_completed: bool = False):
        return _unwrap(
            registry.get_player_matches(tournament_id, player_id, include_completed)
        )

    # ----------------------------------------------------------------------- #
    # Bracket and results                                                      #
    # ----------------------------------------------------------------------- #

    @app.get("/api/tournaments/{tournament_id}/bracket")
    def get_bracket(tournament_id: str):
        return _unwrap(registry.get_bracket(tournament_id))

    @app.get("/api/tournaments/{tournament_id}/standings")
    def get_standings(tournament_id: str):
        return _unwrap(registry.get_standings(tournament_id))

    @app.post("/api/tournaments/{tournament_id}/matches/{match_id}/start")
    async def start_match(
        tournament_id: str, match_id: int, x_actor_id: str | None = Header(default=None)
    ):
        return _unwrap(await registry.start_match(tournament_id, match_id, actor_id=x_actor_id))

    @app.post("/api/tournaments/{tournament_id}/matches/{match_id}/result")
    async def report_result(
        tournament_id: str,
        match_id: int,
        payload: dict,
        x_actor_id: str | None = Header(default=None),
    ):
        with _malformed_body():
            stats = {
                pid: StatDelta(
                    tags=int(delta.get("tags", 0)),
                    survival_time=float(delta.get("survival_time", 0.0)),
                )
                for pid, delta in (payload.get("stats") or {}).items()
            }
            scores = {str(k): int(v) for k, v in (payload.get("scores") or {}).items()}
        return _unwrap(
            await registry.report_match_result(
                tournament_id,
                match_id,
                str(_require(payload, "winner_id")),
                str(_require(payload, "loser_id")),
                scores=scores,
                stats=stats,
                draw=bool(payload.get("draw", False)),
                actor_id=x_actor_id,
            )
        )

    @app.post("/api/tournaments/{tournament_id}/matches/{match_id}/placements")
    async def report_placements(
        tournament_id: str,
        match_id: int,
        payload: dict,
        x_actor_id: str | None = Header(default=None),
    ):
        placements = []
        with _malformed_body():
            for entry in _require(payload, "placements"):
                if isinstance(entry, str):
                    placements.append(PlacementEntry(participant_id=entry))
                else:
                    placements.append(
                        PlacementEntry(
                            participant_id=str(entry["participant_id"]),
                            tags=int(entry.get("tags", 0)),
                            survival_time=float(entry.get("survival_time", 0.0)),
                        )
                    )
        return _unwrap(
            await registry.report_battle_royale_result(
                tournament_id, match_id, placements, actor_id=x_actor_id
            )
        )

    @app.post("/api/tournaments/{tournament_id}/matches/{match_id}/forfeit")
    async def report_forfeit(
        tournament_id: str,
        match_id: int,
        payload: dict,
        x_actor_id: str | None = Header(default=None),
    ):
        return _unwrap(
            await registry.report_forfeit(
                tournament_id,
                match_id,
                str(_require(payload, "forfeiting_id")),
                actor_id=x_actor_id,
            )
        )

    # ----------------------------------------------------------------------- #
    # WebSocket event stream                                                   #
    # ----------------------------------------------------------------------- #

    @app.websocket("/ws/tournaments/{tournament_id}")
    async def tournament_ws(ws: WebSocket, tournament_id: str) -> None:
        await ws.accept()
        if not registry.get_tournament(tournament_id).ok:
            await ws.send_json({"type": "error", "message": f"Tournament {tournament_id} not found"})
            await ws.close()
            return

        queue: asyncio.Queue[TournamentEvent] = asyncio.Queue()

        def _enqueue(event: TournamentEvent) -> None:
            if event.tournament_id == tournament_id:
                queue.put_nowait(event)

        # Subscribe before snapshotting history so nothing falls between them
        unsubscribe = registry.notifier.subscribe(_enqueue)
        replay = registry.notifier.history(tournament_id)

        async def _send_loop() -> None:
            for event in replay:
                await ws.send_json(_event_payload(event))
            while True:
                event = await queue.get()
                await ws.send_json(_event_payload(event))

        async def _receive_loop() -> None:
            try:
                while True:
                    msg = await ws.receive_json()
                    if msg.get("type") == "stop":
                        break
            except (WebSocketDisconnect, RuntimeError):
                pass

        send_task = asyncio.create_task(_send_loop())
        recv_task = asyncio.create_task(_receive_loop())
        try:
            done, pending = await asyncio.wait(
                {send_task, recv_task}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
                try:
                    await task
                except (asyncio.CancelledError, WebSocketDisconnect):
                    pass
            for task in done:
                exc = task.exception()
                if exc is not None and not isinstance(exc, WebSocketDisconnect):
                    logger.warning("WebSocket for %s closed with error: %s", tournament_id, exc)
        finally:
            unsubscribe()

    return app


app = create_app(build_registry(config))
