"""
Boundary layer data model(s).

These objects are what the Session Store hands to, and receives from, a repository.
Everything is kept in plain, JSON-friendly types so any storage medium can hold them
(decouples the domain objects from the DB layer).
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

# Type aliases to make GameModel easier to read
PieceColor = str
PlayerRecord = dict[str, Any]


@dataclass
class GameModel:
    """Transport-safe representation of one game (session) as it gets persisted."""

    fen: str
    status: str
    turn: PieceColor
    players: dict[PieceColor, Optional[PlayerRecord]]
    move_history: list[str]
    last_move: Optional[dict[str, str]]
    created_at: datetime
    updated_at: datetime


@dataclass
class GameSummary:
    """One line of the session listing."""

    game_id: str
    status: str
    turn: PieceColor
    move_count: int = 0


@dataclass
class LastMove:
    from_square: str
    to_square: str

    def to_dict(self) -> dict[str, str]:
        return {"from": self.from_square, "to": self.to_square}

    @classmethod
    def from_dict(cls, data: Optional[dict[str, str]]) -> Optional["LastMove"]:
        if not data or "from" not in data or "to" not in data:
            return None
        return cls(from_square=data["from"], to_square=data["to"])


@dataclass
class CapturedPieces:
    """Piece letters (lower case) captured by each side."""

    white: list[str] = field(default_factory=list)
    black: list[str] = field(default_factory=list)
