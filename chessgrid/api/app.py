"""
FastAPI application: HTTP routes and frame endpoints on top of the ChessService.

Endpoints:
    GET    /                                  Frame view (game created on first reference)
    POST   /frame                             Frame button action
    POST   /api/games                         Create game
    POST   /api/games/{game_id}/join          Join as white / black / random
    POST   /api/games/{game_id}/solo          Play both sides with one token
    POST   /api/games/{game_id}/resign        Resign
    POST   /api/games/{game_id}/reset         New game under the same ID
    POST   /move                              Make a move
    GET    /game/{game_id}                    Public game state
    GET    /game/{game_id}/pgn                Move history as PGN
    GET    /game/{game_id}/moves/{square}     Valid target squares
    GET    /game/{game_id}/board.svg          Rendered board
    GET    /games                             All games
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response

from chessgrid.api.frame import frame_layout, render_frame_html
from chessgrid.api.models import (
    ErrorResponse,
    FrameActionRequest,
    GameCreatedResponse,
    GamesResponse,
    GameView,
    JoinGameRequest,
    JoinGameResponse,
    MoveRequest,
    MoveResponse,
    ResetRequest,
    ResignRequest,
    SoloGameRequest,
    SoloGameResponse,
    ValidMovesResponse,
)
from chessgrid.chess.oracle import RulesOracle
from chessgrid.chess.render import svg_to_data_url
from chessgrid.config import Settings, build_repository, configure_logging
from chessgrid.core.exceptions import ChessGridError
from chessgrid.db.session_store import SessionStore
from chessgrid.services.chess_service import ChessService

logger = logging.getLogger(__name__)


def build_service(settings: Settings) -> ChessService:
    """Wire store, repository and oracle from the settings, and load the stored games."""
    oracle = RulesOracle()
    store = SessionStore(
        build_repository(settings), oracle, background_flush=settings.background_flush
    )
    store.restore()
    return ChessService(store, oracle)


def create_app(
    service: Optional[ChessService] = None, settings: Optional[Settings] = None
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Optional ChessService instance (built from the settings if not provided)
        settings: Optional Settings (read from the environment if not provided)
    """
    settings = settings or Settings.from_env()
    if service is None:
        configure_logging(settings.log_level)
        service = build_service(settings)
    chess_service = service

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        chess_service.store.close()

    app = FastAPI(title="ChessGrid", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.service = chess_service

    @app.exception_handler(ChessGridError)
    async def handle_chessgrid_error(request: Request, exc: ChessGridError) -> JSONResponse:
        """Every domain error becomes a structured failure."""
        body = ErrorResponse(error=exc.kind, message=exc.message)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump(by_alias=True))

    def share_url(request: Request, game_id: str) -> str:
        return str(request.url_for("frame_view").include_query_params(gameId=game_id))

    def frame_response(request: Request, view: GameView, fid: Optional[str] = None) -> HTMLResponse:
        title, buttons, text_input = frame_layout(view, share_url(request, view.game_id), fid)
        image = svg_to_data_url(chess_service.render(view.game_id))
        html = render_frame_html(
            image_url=image,
            buttons=buttons,
            post_url=str(request.url_for("frame_action")),
            state=chess_service.encode_frame_state(view.game_id),
            text_input=text_input,
            title=title,
        )
        return HTMLResponse(html)

    # -- Frame protocol --
    @app.get("/", response_class=HTMLResponse, name="frame_view")
    def frame_view(request: Request, gameId: Optional[str] = None) -> HTMLResponse:
        game_id = gameId or str(uuid4())
        return frame_response(request, chess_service.frame_view(game_id))

    @app.post("/frame", response_class=HTMLResponse, name="frame_action")
    def frame_action(
        request: Request, payload: Optional[FrameActionRequest] = None, gameId: Optional[str] = None
    ) -> HTMLResponse:
        data = (payload or FrameActionRequest()).untrusted_data
        state = chess_service.decode_frame_state(data.state)
        fid = str(data.fid or "unknown")
        game_id = state.game_id or gameId or str(uuid4())
        view = chess_service.frame_action(game_id, fid, data.button_index, data.input_text)
        return frame_response(request, view, fid)

    # -- Game API --
    @app.post("/api/games", response_model=GameCreatedResponse)
    def create_game(request: Request) -> GameCreatedResponse:
        response = chess_service.create_session()
        response.share_url = share_url(request, response.game_id)
        return response

    @app.post("/api/games/{game_id}/join", response_model=JoinGameResponse)
    def join_game(game_id: str, payload: Optional[JoinGameRequest] = None) -> JoinGameResponse:
        payload = payload or JoinGameRequest()
        return chess_service.join_session(game_id, payload.color, payload.name)

    @app.post("/api/games/{game_id}/solo", response_model=SoloGameResponse)
    def start_solo(game_id: str, payload: Optional[SoloGameRequest] = None) -> SoloGameResponse:
        payload = payload or SoloGameRequest()
        return chess_service.start_solo(game_id, payload.name)

    @app.post("/api/games/{game_id}/resign", response_model=GameView)
    def resign(game_id: str, payload: Optional[ResignRequest] = None) -> GameView:
        payload = payload or ResignRequest()
        return chess_service.resign(game_id, payload.player_token)

    @app.post("/api/games/{game_id}/reset", response_model=GameView)
    def reset(game_id: str, payload: Optional[ResetRequest] = None) -> GameView:
        payload = payload or ResetRequest()
        return chess_service.new_game(game_id, payload.player_token)

    @app.post("/move", response_model=MoveResponse)
    def make_move(payload: MoveRequest) -> MoveResponse:
        return chess_service.make_move(
            payload.game_id,
            payload.from_square,
            payload.to_square,
            payload.promotion,
            payload.player_token,
        )

    @app.get("/game/{game_id}", response_model=GameView)
    def get_game(request: Request, game_id: str) -> GameView:
        view = chess_service.inspect(game_id)
        view.share_url = share_url(request, game_id)
        return view

    @app.get("/game/{game_id}/pgn", response_class=PlainTextResponse)
    def get_pgn(game_id: str) -> PlainTextResponse:
        return PlainTextResponse(chess_service.pgn(game_id))

    @app.get("/game/{game_id}/moves/{square}", response_model=ValidMovesResponse)
    def get_valid_moves(game_id: str, square: str) -> ValidMovesResponse:
        return chess_service.valid_moves(game_id, square)

    @app.get("/game/{game_id}/board.svg")
    def get_board(game_id: str, highlight: Optional[str] = None) -> Response:
        return Response(chess_service.render(game_id, highlight), media_type="image/svg+xml")

    @app.get("/games", response_model=GamesResponse)
    def list_games() -> GamesResponse:
        return chess_service.list_sessions()

    return app


def main() -> None:
    """Run the server with uvicorn."""
    import uvicorn

    settings = Settings.from_env()
    app = create_app(settings=settings)
    logger.info("ChessGrid server running on port %d", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)
