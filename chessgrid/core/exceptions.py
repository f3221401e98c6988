"""
Exceptions raised by the domain and persistence layers.

Every error carries a stable ``kind`` code and an HTTP status, so the API boundary can turn it into a structured failure.
"""


class ChessGridError(Exception):
    """Top-level exception for anything the service layer reports back to a client."""

    kind = "chessgrid_error"
    status_code = 400

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__ or self.kind)
        self.message = str(self.args[0])


class NotFoundError(ChessGridError):
    """Game not found."""

    kind = "not_found"
    status_code = 404


class InvalidRequestError(ChessGridError):
    """Request could not be interpreted."""

    kind = "invalid_request"


class InvalidFENError(ChessGridError):
    """Position is not a valid FEN string."""

    kind = "invalid_fen"


class InvalidHistoryError(ChessGridError):
    """Move history cannot be replayed."""

    kind = "invalid_history"


# --- Turn state machine ---
class GameNotActiveError(ChessGridError):
    """Game is not active."""

    kind = "game_not_active"
    status_code = 409


class NotYourTurnError(ChessGridError):
    """Not your turn."""

    kind = "not_your_turn"
    status_code = 423


class IllegalMoveError(ChessGridError):
    """Invalid move."""

    kind = "illegal_move"


# --- Authorization ---
class MissingTokenError(ChessGridError):
    """Missing player token."""

    kind = "missing_token"
    status_code = 403


class InvalidTokenError(ChessGridError):
    """Invalid player token."""

    kind = "invalid_token"
    status_code = 403


class SeatTakenError(ChessGridError):
    """Seat is already taken."""

    kind = "seat_taken"
    status_code = 409


class SeatInvalidError(ChessGridError):
    """Invalid color choice."""

    kind = "seat_invalid"


class GameFullError(ChessGridError):
    """Game is full."""

    kind = "game_full"
    status_code = 409


# --- Persistence ---
class PersistenceWarning(UserWarning):
    """Snapshot could not be written or read. Logged, never raised to the caller of the triggering action."""
