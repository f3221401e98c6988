"""
Possession tokens: issuing seats and deciding which sides a token may act for.

Two kinds of bindings exist. Web joins mint a token and bind it to a seat; frame joins bind the frame actor
without a token (the frame channel is trusted implicitly). Callers only ever ask `authorize` and `requires_token`,
so the provenance of a binding never leaks into the turn logic.
"""

from __future__ import annotations

import hashlib
import logging
import random
from typing import TYPE_CHECKING, Optional
from uuid import uuid4

from chessgrid.chess.players import Player, format_player_name
from chessgrid.core.exceptions import (
    GameFullError,
    InvalidTokenError,
    MissingTokenError,
    SeatInvalidError,
    SeatTakenError,
)
from chessgrid.core.shared_types import RANDOM_SEAT, Color, PlayerSource

if TYPE_CHECKING:
    from chessgrid.chess.game import Game
    from chessgrid.chess.oracle import RulesOracle

logger = logging.getLogger(__name__)

DEFAULT_NAMES = {Color.WHITE: "White Player", Color.BLACK: "Black Player"}
DEFAULT_SOLO_NAME = "Solo Player"


def parse_seat(choice: Optional[str]) -> Optional[Color]:
    """Map a requested seat to a Color. `None` means: let the server pick."""
    normalized = str(choice if choice is not None else RANDOM_SEAT).strip().lower()
    if normalized == RANDOM_SEAT:
        return None
    try:
        return Color(normalized)
    except ValueError as exc:
        raise SeatInvalidError(f"Invalid color choice: {choice!r}") from exc


def issue_token(
    game: Game, choice: Optional[str] = RANDOM_SEAT, name: Optional[str] = None
) -> tuple[str, Color]:
    """Bind a freshly minted token to a seat. Returns the token and the seat it was bound to."""
    requested = parse_seat(choice)

    open_seats = game.open_seats
    if not open_seats:
        raise GameFullError()

    color = requested if requested is not None else random.choice(open_seats)
    if color not in open_seats:
        raise SeatTakenError(f"{color.value.capitalize()} is already taken")

    token = str(uuid4())
    player = Player(
        id=player_id(token, color),
        name=format_player_name(name, DEFAULT_NAMES[color]),
        token=token,
        source=PlayerSource.WEB,
    )
    game.assign(color, player)
    logger.info("Game %s: %s joined as %s", game.id, player.name, color.value)
    return token, color


def issue_solo_token(game: Game, oracle: RulesOracle, name: Optional[str] = None) -> str:
    """
    One token for both sides.
    ---
    Destructive: the game is reset first, whatever its state. Any game in progress is discarded.
    """
    solo_name = format_player_name(name, DEFAULT_SOLO_NAME)
    token = str(uuid4())

    game.reset(oracle)
    for color in Color:
        game.assign(
            color,
            Player(
                id=player_id(token, color),
                name=f"{solo_name} ({color.value.capitalize()})",
                token=token,
                source=PlayerSource.WEB,
            ),
        )
    logger.info("Game %s: solo game started by %s", game.id, solo_name)
    return token


def bind_frame_player(game: Game, color: Color, fid: str) -> Player:
    """Seat a frame actor. No token: frame identities are trusted as asserted."""
    if not game.is_seat_open(color):
        raise SeatTakenError(f"{color.value.capitalize()} is already taken")
    player = _frame_player(fid)
    game.assign(color, player)
    return player


def bind_frame_solo(game: Game, oracle: RulesOracle, fid: str) -> Player:
    player = _frame_player(fid)
    game.reset(oracle)
    for color in Color:
        game.assign(color, player)
    return player


def player_id(token: str, color: Color) -> str:
    """Stable seat identity derived from the token. Public views show it, so it must not reveal the token."""
    digest = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
    return f"{digest}-{color.value}"


def requires_token(game: Game) -> bool:
    """A game needs tokens as soon as one of its seats was bound with a token."""
    return any(player.token for player in game.players.values())


def authorize(game: Game, token: Optional[str]) -> set[Color]:
    """Sides the token may act for. Never returns an empty set: that is an InvalidTokenError."""
    if not token:
        raise MissingTokenError()
    sides = {
        color
        for color, player in game.players.items()
        if player.token is not None and player.token == token
    }
    if not sides:
        raise InvalidTokenError()
    return sides


def _frame_player(fid: str) -> Player:
    return Player(id=str(fid), name=f"FID {fid}", token=None, source=PlayerSource.FRAME)
