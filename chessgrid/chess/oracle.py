"""
Adapter around python-chess. All chess rules (legality, SAN, check, mate, draws) are delegated to it.

The rest of the application only ever sees a `chess.Board` as an opaque position handle
and the FEN string used to persist it.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

import chess
import chess.pgn

from chessgrid.core.exceptions import IllegalMoveError, InvalidFENError, InvalidHistoryError
from chessgrid.core.models import CapturedPieces
from chessgrid.core.shared_types import Color

# Accepted spellings for a promotion hint
PROMOTION_PIECES: dict[str, chess.PieceType] = {
    "q": chess.QUEEN,
    "r": chess.ROOK,
    "b": chess.BISHOP,
    "n": chess.KNIGHT,
    "queen": chess.QUEEN,
    "rook": chess.ROOK,
    "bishop": chess.BISHOP,
    "knight": chess.KNIGHT,
}
DEFAULT_PROMOTION = chess.QUEEN


def color_of(side: chess.Color) -> Color:
    return Color.WHITE if side == chess.WHITE else Color.BLACK


@dataclass(frozen=True)
class OracleOutcome:
    """Everything the state machine needs to commit an accepted move."""

    position: chess.Board
    san: str
    uci: str
    from_square: str
    to_square: str
    color: Color
    piece: str
    captured: Optional[str]
    promotion: Optional[str]
    side_to_move: Color
    is_check: bool
    is_checkmate: bool
    is_draw: bool

    @property
    def is_terminal(self) -> bool:
        return self.is_checkmate or self.is_draw


class RulesOracle:
    """Legality and terminal-condition evaluation."""

    def initial_position(self) -> chess.Board:
        return chess.Board()

    def load_position(self, fen: str) -> chess.Board:
        """Parse a FEN string. Structurally broken or unplayable positions raise InvalidFENError."""
        if not isinstance(fen, str) or not fen.strip():
            raise InvalidFENError("Cannot load an empty position.")
        try:
            board = chess.Board(fen)
        except (IndexError, ValueError) as exc:
            raise InvalidFENError(f"Cannot load position {fen!r}: {exc}") from exc
        if not board.is_valid():
            raise InvalidFENError(f"Position {fen!r} is not a playable position.")
        return board

    def serialize(self, board: chess.Board) -> str:
        return board.fen()

    def apply_move(
        self,
        board: chess.Board,
        from_square: str,
        to_square: str,
        promotion: Optional[str] = None,
    ) -> OracleOutcome:
        """
        Try a move on a copy of the board.
        ---
        The given board is never touched: on success the new position is returned inside the outcome,
        on failure an IllegalMoveError is raised.
        """
        move = self._build_move(board, from_square, to_square, promotion)
        if move not in board.legal_moves:
            raise IllegalMoveError(
                f"Invalid move: {from_square}{to_square}{promotion or ''}"
            )

        moved_piece = board.piece_at(move.from_square)
        assert moved_piece is not None  # legal moves always start from a piece
        captured = self._captured_piece(board, move)
        san = board.san(move)

        new_board = board.copy()
        new_board.push(move)

        return OracleOutcome(
            position=new_board,
            san=san,
            uci=move.uci(),
            from_square=chess.square_name(move.from_square),
            to_square=chess.square_name(move.to_square),
            color=color_of(moved_piece.color),
            piece=chess.piece_symbol(moved_piece.piece_type),
            captured=captured,
            promotion=chess.piece_symbol(move.promotion) if move.promotion else None,
            side_to_move=color_of(new_board.turn),
            is_check=new_board.is_check(),
            is_checkmate=new_board.is_checkmate(),
            is_draw=self.is_draw(new_board),
        )

    def valid_move_targets(self, board: chess.Board, square: str) -> list[str]:
        """Squares the piece on `square` may move to. Unknown squares simply have no targets."""
        try:
            origin = chess.parse_square(square.strip().lower())
        except ValueError:
            return []
        targets = {
            chess.square_name(move.to_square)
            for move in board.legal_moves
            if move.from_square == origin
        }
        return sorted(targets)

    def side_to_move(self, board: chess.Board) -> Color:
        return color_of(board.turn)

    def piece_color_at(self, board: chess.Board, square: str) -> Optional[Color]:
        """Color of the piece on `square`; None for an empty or unreadable square."""
        try:
            piece = board.piece_at(chess.parse_square(square.strip().lower()))
        except (AttributeError, ValueError):
            return None
        return color_of(piece.color) if piece else None

    def is_check(self, board: chess.Board) -> bool:
        return board.is_check()

    def is_checkmate(self, board: chess.Board) -> bool:
        return board.is_checkmate()

    def is_draw(self, board: chess.Board) -> bool:
        """Stalemate, insufficient material, fifty-move rule or repetition."""
        return board.is_game_over(claim_draw=True) and not board.is_checkmate()

    def replay(self, history: Iterable[str]) -> list[chess.Move]:
        """Replay SAN notation from the initial position. Raises InvalidHistoryError on the first unplayable entry."""
        board = self.initial_position()
        moves = []
        for san in history:
            try:
                move = board.parse_san(san)
            except (AttributeError, TypeError, ValueError) as exc:
                raise InvalidHistoryError(
                    f"Cannot replay {san!r} as move {len(moves) + 1}."
                ) from exc
            board.push(move)
            moves.append(move)
        return moves

    def verify_history(self, board: chess.Board, history: Iterable[str]) -> None:
        """The history must replay and lead to `board` (placement and side to move)."""
        replayed = self.initial_position()
        for move in self.replay(history):
            replayed.push(move)
        if replayed.board_fen() != board.board_fen() or replayed.turn != board.turn:
            raise InvalidHistoryError(
                f"Move history does not lead to position {board.fen()!r}."
            )

    def is_terminal(self, board: chess.Board) -> bool:
        return self.is_checkmate(board) or self.is_draw(board)

    def captured_pieces(self, history: Iterable[str]) -> CapturedPieces:
        """Pieces taken by each side, reconstructed from the SAN history."""
        board = self.initial_position()
        captured = CapturedPieces()
        for move in self.replay(history):
            taken = self._captured_piece(board, move)
            if taken is not None:
                side = captured.white if board.turn == chess.WHITE else captured.black
                side.append(taken)
            board.push(move)
        return captured

    def pgn(self, history: Iterable[str], headers: Optional[dict[str, str]] = None) -> str:
        """Export the SAN history as PGN."""
        game = chess.pgn.Game()
        for key, value in (headers or {}).items():
            game.headers[key] = value

        node: chess.pgn.GameNode = game
        for move in self.replay(history):
            node = node.add_variation(move)

        final_board = node.board()
        if final_board.is_game_over(claim_draw=True):
            game.headers["Result"] = final_board.result(claim_draw=True)
        return str(game)

    # -- PRIVATE HELPERS ---
    def _build_move(
        self,
        board: chess.Board,
        from_square: str,
        to_square: str,
        promotion: Optional[str],
    ) -> chess.Move:
        try:
            origin = chess.parse_square(from_square.strip().lower())
            target = chess.parse_square(to_square.strip().lower())
        except (AttributeError, ValueError) as exc:
            raise IllegalMoveError(
                f"Cannot interpret squares {from_square!r} -> {to_square!r}."
            ) from exc

        piece = board.piece_at(origin)
        if piece is None:
            raise IllegalMoveError(f"No piece on {chess.square_name(origin)}.")

        promotes = piece.piece_type == chess.PAWN and chess.square_rank(target) in (0, 7)
        if not promotes:
            # a hint on a non-promoting move is ignored
            return chess.Move(origin, target)

        if promotion is None or not promotion.strip():
            return chess.Move(origin, target, promotion=DEFAULT_PROMOTION)
        promoted_to = PROMOTION_PIECES.get(promotion.strip().lower())
        if promoted_to is None:
            raise IllegalMoveError(f"Invalid promotion piece: {promotion!r}")
        return chess.Move(origin, target, promotion=promoted_to)

    @staticmethod
    def _captured_piece(board: chess.Board, move: chess.Move) -> Optional[str]:
        if board.is_en_passant(move):
            return "p"
        taken = board.piece_at(move.to_square)
        if taken is None or taken.color == board.turn:
            return None
        return chess.piece_symbol(taken.piece_type)
