from __future__ import annotations

import contextlib
import json
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from party.logic.content import ContentLibrary, default_library
from party.logic.enums import ErrorCode, TurnActionType
from party.logic.exceptions import (
    AssignmentSourceEmptyError,
    GameRuleError,
    InvalidActionError,
    SeatingFullError,
    SessionLimitError,
    SessionNotFoundError,
)
from party.logic.state import TurnAction
from party.server.settings import PartyServerSettings
from party.server.types import ActionRequest, ClaimSeatRequest, CreateSessionRequest, NewRoundRequest
from party.server.websocket import websocket_endpoint
from party.session.engine import GameEngine
from party.session.links import join_url
from shared.dal import InMemorySessionStore
from shared.db import Database, SqliteSessionStore
from shared.logging import bind_session_context, setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request
    from starlette.websockets import WebSocket

    from party.logic.state import Session
    from shared.dal import SessionStore

T = TypeVar("T", bound=BaseModel)

_MAX_REQUEST_BODY_SIZE = 4096


class RequestBodyError(Exception):
    def __init__(self, message: str, status_code: int = 400) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


async def _parse_body(request: Request, model: type[T]) -> T:
    raw_body = await request.body()
    if len(raw_body) > _MAX_REQUEST_BODY_SIZE:
        raise RequestBodyError("Request body too large", status_code=413)
    try:
        body = json.loads(raw_body) if raw_body else {}
        return model.model_validate(body)
    except (ValueError, TypeError, json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        raise RequestBodyError("Invalid request body") from e


def _engine(request: Request) -> GameEngine:
    return request.app.state.engine


def _code(request: Request) -> str:
    code = request.path_params["code"].upper()
    bind_session_context(code, request.path_params.get("seat"))
    return code


async def _summary(engine: GameEngine, session: Session) -> dict[str, Any]:
    """Public state of a session. Round content stays on the seat endpoints."""
    claimed = await engine.claimed_seats(session.code)
    observed = await engine.observed_seats(session)
    return {
        "code": session.code,
        "variant": session.variant.value,
        "capacity": session.capacity,
        "status": session.status.value,
        "phase": session.phase.value,
        "round_number": session.turn.round_number,
        "version": session.turn.version,
        "revealed": session.turn.revealed,
        "guesser_seat": session.turn.guesser_seat,
        "guesses_in_round": session.turn.guesses_in_round,
        "combination": list(session.turn.combination),
        "guess_seconds": session.config.guess_seconds,
        "turn_seat": engine.rule_for(session.variant).turn_pointer(session),
        "claimed_seats": sorted(claimed),
        "observed_seats": sorted(observed),
    }


async def _reveal_when_ready(engine: GameEngine, code: str) -> Session:
    """Reveal a gated round once its last seat has observed it over HTTP."""
    session = await engine.load_session(code)
    if not session.settings.observation_gated or session.turn.revealed:
        return session
    if len(await engine.observed_seats(session)) < session.capacity:
        return session
    try:
        return await engine.reveal(code)
    except InvalidActionError:
        logger.debug("reveal raced with a round reset", code=code)
        return await engine.load_session(code)


async def health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "subscribers": _engine(request).store.subscriber_count})


async def create_session(request: Request) -> JSONResponse:
    engine = _engine(request)
    settings: PartyServerSettings = request.app.state.settings
    body = await _parse_body(request, CreateSessionRequest)
    session = await engine.create_session(
        body.variant,
        body.capacity,
        team_size=body.team_size,
        redraw_on_miss=body.redraw_on_miss,
        guess_seconds=body.guess_seconds if body.guess_seconds is not None else settings.guess_timer_seconds,
    )
    payload = await _summary(engine, session)
    payload["join_url"] = join_url(settings.public_base_url, session.variant, session.code)
    return JSONResponse(payload, status_code=201)


async def get_session(request: Request) -> JSONResponse:
    engine = _engine(request)
    session = await engine.load_session(_code(request))
    return JSONResponse(await _summary(engine, session))


async def claim_seat(request: Request) -> JSONResponse:
    engine = _engine(request)
    settings: PartyServerSettings = request.app.state.settings
    session = await engine.load_session(_code(request))
    body = await _parse_body(request, ClaimSeatRequest)
    seat = await engine.claim_seat(session, body.seat, host=body.host)
    return JSONResponse(
        {"seat": seat, "join_url": join_url(settings.public_base_url, session.variant, session.code, seat)}
    )


async def get_seat(request: Request) -> JSONResponse:
    engine = _engine(request)
    code = _code(request)
    seat = request.path_params["seat"]
    await engine.view_seat(code, seat)
    view = engine.seat_view(await _reveal_when_ready(engine, code), seat)
    return JSONResponse(view.model_dump(mode="json"))


async def observe_seat(request: Request) -> JSONResponse:
    engine = _engine(request)
    session = await engine.load_session(_code(request))
    recorded = await engine.record_observation(session, request.path_params["seat"])
    await _reveal_when_ready(engine, session.code)
    observed = await engine.observed_seats(session)
    return JSONResponse({"recorded": recorded, "observed_seats": sorted(observed)})


async def apply_action(request: Request) -> JSONResponse:
    engine = _engine(request)
    code = _code(request)
    body = await _parse_body(request, ActionRequest)
    action = TurnAction(type=body.type, seat=body.seat, expected_version=body.expected_version)
    session = await engine.apply(code, action)
    return JSONResponse(await _summary(engine, session))


async def new_round(request: Request) -> JSONResponse:
    engine = _engine(request)
    code = _code(request)
    body = await _parse_body(request, NewRoundRequest)
    action = TurnAction(type=TurnActionType.NEW_ROUND, expected_version=body.expected_version)
    session = await engine.apply(code, action)
    return JSONResponse(await _summary(engine, session))


def _error(code: ErrorCode, message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": code.value, "message": message}, status_code=status_code)


async def _on_not_found(_request: Request, exc: Exception) -> JSONResponse:
    return _error(ErrorCode.SESSION_NOT_FOUND, str(exc), 404)


async def _on_seating_full(_request: Request, exc: Exception) -> JSONResponse:
    logger.info("seating full", error=str(exc))
    return _error(ErrorCode.SEATING_FULL, str(exc), 409)


async def _on_content_unavailable(_request: Request, exc: Exception) -> JSONResponse:
    logger.warning("session creation refused", error=str(exc))
    return _error(ErrorCode.CONTENT_UNAVAILABLE, str(exc), 503)


async def _on_session_limit(_request: Request, exc: Exception) -> JSONResponse:
    logger.warning("session creation refused", error=str(exc))
    return _error(ErrorCode.SESSION_LIMIT, str(exc), 503)


async def _on_rule_error(_request: Request, exc: Exception) -> JSONResponse:
    return _error(ErrorCode.INVALID_ACTION, str(exc), 400)


async def _on_body_error(_request: Request, exc: Exception) -> JSONResponse:
    status_code = exc.status_code if isinstance(exc, RequestBodyError) else 400
    return _error(ErrorCode.VALIDATION_ERROR, str(exc), status_code)


def _build_engine(settings: PartyServerSettings) -> tuple[GameEngine, Database | None]:
    db: Database | None = None
    store: SessionStore
    if settings.database_path:
        db = Database(settings.database_path)
        db.connect()
        store = SqliteSessionStore(db)
    else:
        store = InMemorySessionStore()
    content = ContentLibrary.from_json_file(settings.content_path) if settings.content_path else default_library()
    engine = GameEngine(
        store,
        content,
        max_sessions=settings.max_sessions,
        session_ttl_seconds=settings.session_ttl_seconds,
    )
    return engine, db


def create_app(
    settings: PartyServerSettings | None = None,
    store: SessionStore | None = None,
    engine: GameEngine | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = PartyServerSettings()

    # When the app builds its own engine, it owns the store and DB lifecycle.
    owned_db: Database | None = None
    if engine is None:
        if store is None:
            engine, owned_db = _build_engine(settings)
        else:
            engine = GameEngine(
                store, max_sessions=settings.max_sessions, session_ttl_seconds=settings.session_ttl_seconds
            )

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, engine)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/sessions", create_session, methods=["POST"]),
        Route("/sessions/{code}", get_session, methods=["GET"]),
        Route("/sessions/{code}/seats", claim_seat, methods=["POST"]),
        Route("/sessions/{code}/seats/{seat:int}", get_seat, methods=["GET"]),
        Route("/sessions/{code}/seats/{seat:int}/observe", observe_seat, methods=["POST"]),
        Route("/sessions/{code}/actions", apply_action, methods=["POST"]),
        Route("/sessions/{code}/rounds", new_round, methods=["POST"]),
        WebSocketRoute("/ws/{code}", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        engine.start_session_reaper()
        yield
        await engine.stop_session_reaper()
        await engine.store.close()
        if owned_db is not None:
            owned_db.close()

    exception_handlers = {
        SessionNotFoundError: _on_not_found,
        SeatingFullError: _on_seating_full,
        AssignmentSourceEmptyError: _on_content_unavailable,
        SessionLimitError: _on_session_limit,
        GameRuleError: _on_rule_error,
        RequestBodyError: _on_body_error,
    }
    app = Starlette(routes=routes, lifespan=lifespan, exception_handlers=exception_handlers)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.engine = engine

    logger.info("party server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    _settings = PartyServerSettings()
    setup_logging(_settings.log_dir)
    return create_app(settings=_settings)
