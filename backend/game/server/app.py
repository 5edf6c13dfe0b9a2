from __future__ import annotations

import contextlib
import json
import random
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from game.logic.engine import RoundEngine
from game.logic.exceptions import (
    CorruptStateError,
    GameAlreadyFinishedError,
    GameBusyError,
    GameError,
    GameNotFoundError,
    GameNotStartedError,
    InsufficientTermsError,
    InvalidCustomTermError,
    InvalidScoreError,
)
from game.logic.high_scores import HighScoreTracker
from game.logic.sample_terms import load_sample_terms
from game.logic.term_supply import TermSupply
from game.server.settings import GameServerSettings
from game.server.types import GuessRequest, StartGameRequest
from game.session.manager import GameSessionManager
from shared.db import Database, SqliteGameStore, SqliteScoreStore, SqliteTermSource
from shared.logging import setup_logging
from shared.remote.term_source import HttpTermSource
from shared.validators import normalize_category

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request

    from game.logic.state import GameState
    from shared.dal.term_source import TermSource


_MAX_REQUEST_BODY_SIZE = 4096
_MAX_PLAYER_ID_LENGTH = 100
PLAYER_ID_HEADER = "X-Player-Id"

_ERROR_STATUS: dict[type[GameError], int] = {
    InsufficientTermsError: 422,
    InvalidCustomTermError: 400,
    InvalidScoreError: 400,
    GameAlreadyFinishedError: 409,
    GameNotStartedError: 409,
    GameBusyError: 429,
    GameNotFoundError: 404,
    CorruptStateError: 500,
}


class BadRequestError(Exception):
    pass


def state_payload(state: GameState) -> dict:
    """Client view of a game. The hidden term's score stays secret until the game is over."""
    hidden = state.hidden_term.model_dump(mode="json") if state.hidden_term is not None else None
    if hidden is not None and not state.finished:
        del hidden["score"]
    return {
        "game_id": state.game_id,
        "player_id": state.player_id,
        "category": state.category,
        "round": state.round,
        "score": state.score,
        "phase": state.phase.value,
        "known_term": state.known_term.model_dump(mode="json") if state.known_term is not None else None,
        "hidden_term": hidden,
        "custom_seed": state.custom_seed,
        "repaired": state.repaired,
    }


async def _read_json(request: Request) -> dict:
    raw_body = await request.body()
    if len(raw_body) > _MAX_REQUEST_BODY_SIZE:
        raise BadRequestError("Request body too large")
    if not raw_body:
        return {}
    try:
        body = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as e:
        raise BadRequestError("Invalid request body") from e
    if not isinstance(body, dict):
        raise BadRequestError("Invalid request body")
    return body


def _player_id(request: Request) -> str | None:
    player_id = request.headers.get(PLAYER_ID_HEADER)
    if player_id is None:
        return None
    player_id = player_id.strip()
    if len(player_id) > _MAX_PLAYER_ID_LENGTH:
        raise BadRequestError("Player id too long")
    return player_id


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok"})


async def start_game(request: Request) -> JSONResponse:
    manager: GameSessionManager = request.app.state.session_manager
    body = await _read_json(request)
    try:
        game_request = StartGameRequest(**body)
    except (ValidationError, TypeError) as e:
        raise BadRequestError("Invalid request body") from e

    state = await manager.start_game(
        game_request.category,
        player_id=_player_id(request),
        custom_seed=game_request.custom_seed,
    )
    return JSONResponse(state_payload(state), status_code=201)


async def get_game(request: Request) -> JSONResponse:
    manager: GameSessionManager = request.app.state.session_manager
    game_id = request.path_params["game_id"]
    state = await manager.refresh(game_id)
    if state is None:
        raise GameNotFoundError(game_id)
    return JSONResponse(state_payload(state))


async def guess(request: Request) -> JSONResponse:
    manager: GameSessionManager = request.app.state.session_manager
    body = await _read_json(request)
    try:
        guess_request = GuessRequest(**body)
    except (ValidationError, TypeError) as e:
        raise BadRequestError("Invalid request body") from e

    outcome = await manager.guess(request.path_params["game_id"], guess_request.direction.guessed_higher)
    return JSONResponse({"correct": outcome.correct, "state": state_payload(outcome.state)})


async def end_game(request: Request) -> Response:
    manager: GameSessionManager = request.app.state.session_manager
    await manager.end_game(request.path_params["game_id"])
    return Response(status_code=204)


async def leaderboard(request: Request) -> JSONResponse:
    manager: GameSessionManager = request.app.state.session_manager
    try:
        category = normalize_category(request.path_params["category"])
        limit = int(request.query_params.get("limit", "10"))
    except ValueError as e:
        raise BadRequestError(str(e)) from e
    entries = await manager.get_leaderboard_top(category, limit)
    return JSONResponse([entry.model_dump() for entry in entries])


async def _handle_game_error(_request: Request, exc: Exception) -> JSONResponse:
    status_code = next((code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)), 400)
    if status_code >= 500:
        logger.error("game request failed", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse({"error": str(exc), "type": type(exc).__name__}, status_code=status_code)


async def _handle_bad_request(_request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=400)


def _build_term_source(settings: GameServerSettings, db: Database) -> TermSource:
    if settings.term_source_url:
        return HttpTermSource(settings.term_source_url, timeout=settings.remote_timeout_seconds)
    return SqliteTermSource(db)


def create_app(
    settings: GameServerSettings | None = None,
    session_manager: GameSessionManager | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = GameServerSettings()

    # When the app creates its own GameSessionManager, it owns the DB and term source lifecycle.
    owned_db: Database | None = None
    owned_source: HttpTermSource | None = None

    if session_manager is None:
        db = Database(settings.database_path)
        db.connect()
        owned_db = db
        if settings.seed_sample_terms and db.term_count() == 0:
            db.import_terms(load_sample_terms())

        term_source = _build_term_source(settings, db)
        if isinstance(term_source, HttpTermSource):
            owned_source = term_source
        rng = random.Random(settings.rng_seed) if settings.rng_seed is not None else None  # noqa: S311

        term_supply = TermSupply(
            term_source,
            batch_size=settings.term_batch_size,
            fetch_timeout=settings.remote_timeout_seconds,
            rng=rng,
        )
        high_scores = HighScoreTracker(
            SqliteScoreStore(db),
            retry_attempts=settings.score_retry_attempts,
            retry_backoff=settings.score_retry_backoff_seconds,
            timeout=settings.remote_timeout_seconds,
            max_score=settings.max_score,
        )
        engine = RoundEngine(term_supply, high_scores=high_scores, initial_batch=settings.term_batch_size, rng=rng)
        session_manager = GameSessionManager(
            engine,
            high_scores,
            game_store=SqliteGameStore(db),
            confirm_attempts=settings.confirm_retry_attempts,
            confirm_backoff=settings.confirm_retry_backoff_seconds,
            store_timeout=settings.remote_timeout_seconds,
        )

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/games", start_game, methods=["POST"]),
        Route("/games/{game_id}", get_game, methods=["GET"]),
        Route("/games/{game_id}/guess", guess, methods=["POST"]),
        Route("/games/{game_id}/end", end_game, methods=["POST"]),
        Route("/leaderboard/{category}", leaderboard, methods=["GET"]),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        yield
        await session_manager.shutdown()
        if owned_source is not None:
            await owned_source.aclose()
        if owned_db is not None:
            owned_db.close()

    app = Starlette(
        routes=routes,
        lifespan=lifespan,
        exception_handlers={GameError: _handle_game_error, BadRequestError: _handle_bad_request},
    )
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", PLAYER_ID_HEADER],
    )
    app.state.settings = settings
    app.state.session_manager = session_manager

    logger.info("game server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover  # deadcode: ignore
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    _settings = GameServerSettings()
    setup_logging(log_dir=_settings.log_dir)
    return create_app(settings=_settings)
