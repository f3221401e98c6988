"""Orchestration of communication from API router to business logic and persistence layers (and the reverse direction)."""

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, unquote
from uuid import uuid4

from chessgrid.api.models import (
    CapturedPiecesView,
    GameCreatedResponse,
    GamesResponse,
    GameSummaryView,
    GameView,
    JoinGameResponse,
    LastMoveView,
    MoveResponse,
    MoveView,
    PlayerView,
    SoloGameResponse,
    SoloPlayerView,
    ValidMovesResponse,
)
from chessgrid.chess import auth
from chessgrid.chess.game import Game
from chessgrid.chess.oracle import RulesOracle
from chessgrid.chess.players import Player, format_player_name
from chessgrid.chess.render import render_board_svg
from chessgrid.core.exceptions import ChessGridError, InvalidRequestError, NotFoundError
from chessgrid.core.shared_types import Color, Status
from chessgrid.db.session_store import SessionStore

logger = logging.getLogger(__name__)

FRAME_MOVE_PATTERN = re.compile(r"^([a-h][1-8])([a-h][1-8])([qrbn])?$", re.IGNORECASE)


@dataclass(frozen=True)
class FrameState:
    """The opaque state a frame client hands back on its next request."""

    game_id: Optional[str] = None
    action: str = "view"


class ChessService:
    """Orchestration of layers for chess games (sessions)."""

    def __init__(self, store: SessionStore, oracle: Optional[RulesOracle] = None) -> None:
        self.store = store
        self.oracle = oracle or store.oracle

    # -- API routes logic ---
    def create_session(self) -> GameCreatedResponse:
        """Eagerly create an empty game under a fresh ID."""
        game_id = str(uuid4())
        self.store.put(Game.new_game(game_id, self.oracle))
        self.store.snapshot(game_id)
        logger.info("Created game %s", game_id)
        return GameCreatedResponse(game_id=game_id)

    def join_session(
        self, game_id: str, color: Optional[str] = "random", name: Optional[str] = None
    ) -> JoinGameResponse:
        """Take a seat (white, black or whichever is open) and receive its token."""
        with self.store.lock(game_id):
            game = self._fetch_game(game_id)
            token, assigned = auth.issue_token(game, color, name)
            self.store.snapshot(game_id)
            return JoinGameResponse(
                game_id=game_id,
                color=assigned,
                token=token,
                player=self._player_view(game.players[assigned]),
            )

    def start_solo(self, game_id: str, name: Optional[str] = None) -> SoloGameResponse:
        """
        One player, both sides.
        ----
        Creates the game if the ID is unknown. An existing game is reset, whatever its state.
        """
        with self.store.lock(game_id):
            game = self.store.get_or_create(game_id)
            token = auth.issue_solo_token(game, self.oracle, name)
            self.store.snapshot(game_id)
        return SoloGameResponse(
            game_id=game_id,
            token=token,
            player=SoloPlayerView(name=format_player_name(name, auth.DEFAULT_SOLO_NAME)),
        )

    def make_move(
        self,
        game_id: str,
        from_square: str,
        to_square: str,
        promotion: Optional[str] = None,
        token: Optional[str] = None,
    ) -> MoveResponse:
        """Make a move attempt."""
        with self.store.lock(game_id):
            game = self._fetch_game(game_id)
            result = game.apply_move(self.oracle, from_square, to_square, promotion, token)
            self.store.snapshot(game_id)

        logger.debug("Game %s: %s played %s", game_id, result.color.value, result.san)
        return MoveResponse(
            move=MoveView(
                from_square=result.from_square,
                to_square=result.to_square,
                san=result.san,
                uci=result.uci,
                color=result.color,
                piece=result.piece,
                captured=result.captured,
                promotion=result.promotion,
            ),
            fen=result.fen,
            status=result.status,
            move_history=result.move_history,
        )

    def resign(self, game_id: str, token: Optional[str] = None) -> GameView:
        """End an active game. In a game with tokens, any seat held by the token may resign."""
        with self.store.lock(game_id):
            game = self._fetch_game(game_id)
            self._check_token(game, token)
            game.resign()
            self.store.snapshot(game_id)
            logger.info("Game %s: resigned", game_id)
            return self._view(game)

    def new_game(self, game_id: str, token: Optional[str] = None) -> GameView:
        """Replace a game with a fresh, empty one under the same ID. Same token gate as `resign`."""
        with self.store.lock(game_id):
            self._check_token(self._fetch_game(game_id), token)
            game = self.store.put(Game.new_game(game_id, self.oracle))
            self.store.snapshot(game_id)
            logger.info("Game %s: new game", game_id)
            return self._view(game)

    def inspect(self, game_id: str) -> GameView:
        """
        Retrieve current game state.
        ----
        Used in "polling" loop by frontend to check when it is the player's turn for instance.
        """
        with self.store.lock(game_id):
            return self._view(self._fetch_game(game_id))

    def list_sessions(self) -> GamesResponse:
        """Show all recorded games."""
        return GamesResponse(
            games=[
                GameSummaryView(
                    game_id=summary.game_id,
                    status=Status(summary.status),
                    current_player=Color(summary.turn),
                    move_count=summary.move_count,
                )
                for summary in self.store.list_games()
            ]
        )

    def pgn(self, game_id: str) -> str:
        """Move history as PGN."""
        with self.store.lock(game_id):
            game = self._fetch_game(game_id)
            headers = {
                "Event": "ChessGrid game",
                "Site": game_id,
                "Date": game.created_at.strftime("%Y.%m.%d"),
                "White": game.players[Color.WHITE].name if Color.WHITE in game.players else "?",
                "Black": game.players[Color.BLACK].name if Color.BLACK in game.players else "?",
            }
            return self.oracle.pgn(game.move_history, headers)

    def valid_moves(self, game_id: str, square: str) -> ValidMovesResponse:
        """Target squares for the piece standing on `square`."""
        with self.store.lock(game_id):
            game = self._fetch_game(game_id)
            return ValidMovesResponse(
                square=square, valid_moves=self.oracle.valid_move_targets(game.board, square)
            )

    def render(self, game_id: str, highlight_square: Optional[str] = None) -> str:
        """SVG of the board. A highlighted square also lights up its move targets."""
        with self.store.lock(game_id):
            game = self._fetch_game(game_id)
            highlighted: list[str] = []
            if highlight_square:
                highlighted = [
                    highlight_square,
                    *self.oracle.valid_move_targets(game.board, highlight_square),
                ]
            return render_board_svg(game.board.fen(), highlighted, game.last_move)

    # -- Frame protocol ---
    def frame_view(self, game_id: str) -> GameView:
        """Frame GET: the game is created on first reference."""
        with self.store.lock(game_id):
            return self._view(self.store.get_or_create(game_id))

    def frame_action(
        self,
        game_id: str,
        fid: str,
        button_index: Optional[int],
        input_text: Optional[str] = None,
    ) -> GameView:
        """
        Handle a frame button press.
        ----
        waiting:  1 join white, 2 join black, 3 play solo
        active:   1 make move (`input_text` like e2e4 or e7e8q), 2 history, 3 new game, 4 resign
        finished: 1 new game

        Frames carry no token: in a game with token bindings, moves, resign and new game are refused.

        Frames cannot show errors, so a rejected action is logged and the unchanged game is shown again.
        """
        with self.store.lock(game_id):
            game = self.store.get_or_create(game_id)
            if button_index:
                try:
                    self._apply_frame_button(game, str(fid), button_index, input_text)
                except ChessGridError as exc:
                    logger.info(
                        "Game %s: frame action %s by %s ignored: %s",
                        game_id,
                        button_index,
                        fid,
                        exc,
                    )
                self.store.snapshot(game_id)
            return self._view(self._fetch_game(game_id))

    @staticmethod
    def encode_frame_state(game_id: str, action: str = "view") -> str:
        return quote(json.dumps({"gameId": game_id, "action": action}, separators=(",", ":")))

    @staticmethod
    def decode_frame_state(raw: Optional[str]) -> FrameState:
        """Accepts URL-encoded or plain JSON. Anything unreadable is an empty state."""
        if not raw:
            return FrameState()
        for candidate in (unquote(raw), raw):
            try:
                data = json.loads(candidate)
            except ValueError:
                continue
            if isinstance(data, dict):
                game_id = data.get("gameId")
                return FrameState(
                    game_id=str(game_id) if game_id else None,
                    action=str(data.get("action") or "view"),
                )
        return FrameState()

    # -- Internal helpers --
    def _apply_frame_button(
        self, game: Game, fid: str, button_index: int, input_text: Optional[str]
    ) -> None:
        if game.status == Status.WAITING:
            if button_index == 1:
                auth.bind_frame_player(game, Color.WHITE, fid)
            elif button_index == 2:
                auth.bind_frame_player(game, Color.BLACK, fid)
            elif button_index == 3:
                auth.bind_frame_solo(game, self.oracle, fid)

        elif game.status == Status.ACTIVE:
            if button_index == 1 and input_text:
                match = FRAME_MOVE_PATTERN.match(input_text.strip())
                if match is None:
                    raise InvalidRequestError(f"Cannot read move {input_text!r}")
                from_square, to_square, promotion = match.groups()
                game.apply_move(
                    self.oracle, from_square.lower(), to_square.lower(), promotion
                )
            elif button_index == 3:
                self._check_token(game, None)
                self.store.put(Game.new_game(game.id, self.oracle))
            elif button_index == 4:
                self._check_token(game, None)
                game.resign()

        elif game.status == Status.FINISHED and button_index == 1:
            self._check_token(game, None)
            self.store.put(Game.new_game(game.id, self.oracle))

    def _view(self, game: Game) -> GameView:
        """Public view of a game: tokens stripped, check / mate / draw asked of the oracle."""
        captured = self.oracle.captured_pieces(game.move_history)
        return GameView(
            game_id=game.id,
            fen=game.board.fen(),
            current_player=game.turn,
            status=game.status,
            is_check=self.oracle.is_check(game.board),
            is_checkmate=self.oracle.is_checkmate(game.board),
            is_draw=self.oracle.is_draw(game.board),
            move_history=list(game.move_history),
            last_move=(
                LastMoveView(
                    from_square=game.last_move.from_square,
                    to_square=game.last_move.to_square,
                )
                if game.last_move
                else None
            ),
            captured_pieces=CapturedPiecesView(white=captured.white, black=captured.black),
            players={
                color: self._player_view(game.players[color]) if color in game.players else None
                for color in Color
            },
            available_colors={color: game.is_seat_open(color) for color in Color},
            created_at=game.created_at,
            updated_at=game.updated_at,
        )

    @staticmethod
    def _check_token(game: Game, token: Optional[str]) -> None:
        """Games with token bindings only accept a token holding one of their seats."""
        if auth.requires_token(game):
            auth.authorize(game, token)

    @staticmethod
    def _player_view(player: Player) -> PlayerView:
        return PlayerView(**player.public())

    def _fetch_game(self, game_id: str) -> Game:
        """Attempt to find the game in the store and raise error if it fails."""
        game = self.store.get(game_id)
        if game is None:
            raise NotFoundError(f"Game with {game_id=} not found.")
        return game
