"""Requests and Response models"""

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from chessgrid.core.exceptions import InvalidRequestError
from chessgrid.core.shared_types import Color, Status

SQUARE_PATTERN = re.compile(r"^[a-h][1-8]$")


class APIModel(BaseModel):
    """JSON bodies use camelCase keys; Python code uses the snake_case field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _validate_square(value: str) -> str:
    normalized = value.strip().lower()
    if not SQUARE_PATTERN.match(normalized):
        raise InvalidRequestError(
            f"Cannot interpret {value!r} as a valid square name."
        )
    return normalized


# --- REQUEST MODELS ---
class JoinGameRequest(APIModel):
    color: str = "random"
    name: Optional[str] = None


class SoloGameRequest(APIModel):
    name: Optional[str] = None


class MoveRequest(APIModel):
    game_id: str
    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")
    promotion: Optional[str] = None
    player_token: Optional[str] = None

    @field_validator("game_id")
    @classmethod
    def validate_game_id(cls, value: str) -> str:
        if not value.strip():
            raise InvalidRequestError("Missing gameId")
        return value

    @field_validator(*["from_square", "to_square"])
    @classmethod
    def validate_square(cls, value: str) -> str:
        return _validate_square(value)

    @field_validator("promotion")
    @classmethod
    def validate_promotion(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        normalized = value.strip().lower()
        if normalized not in ("q", "r", "b", "n", "queen", "rook", "bishop", "knight"):
            raise InvalidRequestError(f"Invalid promotion piece: {value!r}")
        return normalized


class ResignRequest(APIModel):
    player_token: Optional[str] = None


class ResetRequest(APIModel):
    player_token: Optional[str] = None


class FrameUntrustedData(APIModel):
    fid: Optional[Any] = None
    button_index: Optional[int] = None
    input_text: Optional[str] = None
    state: Optional[str] = None


class FrameActionRequest(APIModel):
    untrusted_data: FrameUntrustedData = Field(default_factory=FrameUntrustedData)


# --- RESPONSE MODELS ---
class PlayerView(APIModel):
    """A seat as others get to see it: never includes the token."""

    id: str
    name: str
    source: str
    joined_at: datetime


class LastMoveView(APIModel):
    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")


class CapturedPiecesView(APIModel):
    white: list[str] = Field(default_factory=list)
    black: list[str] = Field(default_factory=list)


class MoveView(APIModel):
    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")
    san: str
    uci: str
    color: Color
    piece: str
    captured: Optional[str] = None
    promotion: Optional[str] = None


class GameCreatedResponse(APIModel):
    success: bool = True
    game_id: str
    share_url: Optional[str] = None


class JoinGameResponse(APIModel):
    success: bool = True
    game_id: str
    color: Color
    token: str
    player: PlayerView


class SoloPlayerView(APIModel):
    name: str


class SoloGameResponse(APIModel):
    success: bool = True
    game_id: str
    token: str
    mode: str = "solo"
    player: SoloPlayerView


class MoveResponse(APIModel):
    success: bool = True
    move: MoveView
    fen: str
    status: Status
    move_history: list[str]


class GameView(APIModel):
    """Public view of one game."""

    game_id: str
    fen: str
    current_player: Color
    status: Status
    is_check: bool
    is_checkmate: bool
    is_draw: bool
    move_history: list[str]
    last_move: Optional[LastMoveView] = None
    captured_pieces: CapturedPiecesView
    players: dict[Color, Optional[PlayerView]]
    available_colors: dict[Color, bool]
    created_at: datetime
    updated_at: datetime
    share_url: Optional[str] = None


class GameSummaryView(APIModel):
    game_id: str
    status: Status
    current_player: Color
    move_count: int


class GamesResponse(APIModel):
    games: list[GameSummaryView]


class ValidMovesResponse(APIModel):
    square: str
    valid_moves: list[str]


class ErrorResponse(APIModel):
    """Structured failure: the error kind plus a human readable message."""

    success: bool = False
    error: str
    message: str
