"""
The Game class is the entrypoint into the domain layer for the service layer.
It owns one session: its position, seats, status and move history, and it is the only place
where those change. Chess rules themselves are asked of the RulesOracle.

Status transitions
----
waiting  -> active    both seats bound
active   -> finished  checkmate / draw reported by the oracle, or resignation
any      -> waiting   reset (new game)
any      -> active    reset + both seats bound at once (solo)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Self

import chess

from chessgrid.chess.auth import authorize, requires_token
from chessgrid.chess.oracle import RulesOracle, color_of
from chessgrid.chess.players import Player, parse_timestamp, utc_now
from chessgrid.core.exceptions import (
    GameNotActiveError,
    NotYourTurnError,
    SeatTakenError,
)
from chessgrid.core.models import GameModel, LastMove
from chessgrid.core.shared_types import Color, Status


@dataclass(frozen=True)
class MoveResult:
    """Digest of a committed move, returned to the service layer."""

    san: str
    uci: str
    from_square: str
    to_square: str
    color: Color
    piece: str
    captured: Optional[str]
    promotion: Optional[str]
    fen: str
    status: Status
    turn: Color
    move_history: list[str]
    is_check: bool
    is_checkmate: bool
    is_draw: bool


@dataclass
class Game:
    # --- DOMAIN LAYER API CALLED BY SERVICE---

    id: str
    board: chess.Board
    status: Status = Status.WAITING
    players: dict[Color, Player] = field(default_factory=dict)
    move_history: list[str] = field(default_factory=list)
    last_move: Optional[LastMove] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def new_game(cls, game_id: str, oracle: RulesOracle) -> Self:
        """A fresh session: initial position, nobody seated."""
        return cls(id=game_id, board=oracle.initial_position())

    @classmethod
    def from_model(cls, game_id: str, model: GameModel, oracle: RulesOracle) -> Self:
        """
        Rebuild a Game from its persisted form.
        ---
        Raises InvalidFENError when the stored position cannot be loaded; deciding what to do about that
        is up to the caller. The side to move always comes from the position, never from the stored `turn`.
        A stored `finished` is kept; any other status is derived again from the seats and the position.
        """
        board = oracle.load_position(model.fen)
        players = {
            color: Player.from_record(record)
            for color in Color
            if (record := model.players.get(color.value))
        }
        game = cls(
            id=game_id,
            board=board,
            players=players,
            move_history=list(model.move_history),
            last_move=LastMove.from_dict(model.last_move),
            created_at=parse_timestamp(model.created_at),
            updated_at=parse_timestamp(model.updated_at),
        )
        if model.status == Status.FINISHED.value:
            game.status = Status.FINISHED
        elif game.open_seats:
            game.status = Status.WAITING
        else:
            game.status = Status.FINISHED if oracle.is_terminal(board) else Status.ACTIVE
        return game

    def to_model(self) -> GameModel:
        """Encode back into the format the persistence layer uses"""
        return GameModel(
            fen=self.board.fen(),
            status=self.status.value,
            turn=self.turn.value,
            players={
                color.value: (
                    self.players[color].to_record() if color in self.players else None
                )
                for color in Color
            },
            move_history=list(self.move_history),
            last_move=self.last_move.to_dict() if self.last_move else None,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @property
    def turn(self) -> Color:
        """Side to move. Read from the position so the two can never disagree."""
        return color_of(self.board.turn)

    @property
    def open_seats(self) -> list[Color]:
        return [color for color in Color if color not in self.players]

    def is_seat_open(self, color: Color) -> bool:
        return color not in self.players

    def assign(self, color: Color, player: Player) -> None:
        """Seat a player. The game becomes active once both seats are taken (a finished game stays finished)."""
        if not self.is_seat_open(color):
            raise SeatTakenError(f"{color.value.capitalize()} is already taken")
        self.players[color] = player
        if self.status != Status.FINISHED:
            self.status = Status.ACTIVE if not self.open_seats else Status.WAITING
        self._touch()

    def reset(self, oracle: RulesOracle) -> None:
        """Back to a fresh session. History, last move and seats are all discarded."""
        self.board = oracle.initial_position()
        self.status = Status.WAITING
        self.players = {}
        self.move_history = []
        self.last_move = None
        self._touch()

    def resign(self) -> None:
        if self.status != Status.ACTIVE:
            raise GameNotActiveError(f"Game is not active. status: {self.status}")
        self.status = Status.FINISHED
        self._touch()

    def apply_move(
        self,
        oracle: RulesOracle,
        from_square: str,
        to_square: str,
        promotion: Optional[str] = None,
        token: Optional[str] = None,
    ) -> MoveResult:
        """
        Attempt a move
        -----
        1. the game must be active
        2. if any seat was bound with a token, the token must be valid and hold the side to move;
           the piece moved must belong to the side to move
        3. the oracle decides on legality (queen by default for promotions)
        4. commit position, history, last move; finish the game on mate or draw

        Any failure in 1-3 raises and leaves the game untouched.
        """
        # make sure the game is (still) in progress
        if self.status != Status.ACTIVE:
            raise GameNotActiveError(f"Game is not active. status: {self.status}")

        # make sure it is your turn
        if requires_token(self):
            sides = authorize(self, token)
            if self.turn not in sides:
                raise NotYourTurnError(
                    f"It is not your turn. Waiting for {self.turn.value} to make a move first."
                )

        # moving the opponent's pieces is never your turn either
        mover = oracle.piece_color_at(self.board, from_square)
        if mover is not None and mover != self.turn:
            raise NotYourTurnError(
                f"It is not your turn. Waiting for {self.turn.value} to make a move first."
            )

        # the oracle works on a copy: nothing changes here until it accepts the move
        outcome = oracle.apply_move(self.board, from_square, to_square, promotion)

        # commit
        self.board = outcome.position
        self.move_history.append(outcome.san)
        self.last_move = LastMove(from_square=outcome.from_square, to_square=outcome.to_square)
        if outcome.is_terminal:
            self.status = Status.FINISHED
        self._touch()

        return MoveResult(
            san=outcome.san,
            uci=outcome.uci,
            from_square=outcome.from_square,
            to_square=outcome.to_square,
            color=outcome.color,
            piece=outcome.piece,
            captured=outcome.captured,
            promotion=outcome.promotion,
            fen=self.board.fen(),
            status=self.status,
            turn=self.turn,
            move_history=list(self.move_history),
            is_check=outcome.is_check,
            is_checkmate=outcome.is_checkmate,
            is_draw=outcome.is_draw,
        )

    # -- PRIVATE HELPERS ---
    def _touch(self) -> None:
        self.updated_at = utc_now()
