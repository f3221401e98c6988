"""
Board rendering. A pure function of the position: no game state is read or changed here.
"""

import base64
from string import ascii_lowercase
from typing import Iterable, Optional

import chess

from chessgrid.core.models import LastMove

SQUARE_SIZE = 75
BOARD_SIZE = SQUARE_SIZE * 8

LIGHT_SQUARE = "#f0d9b5"
DARK_SQUARE = "#b58863"
LAST_MOVE_SQUARE = "#cdd26a"
HIGHLIGHT_SQUARE = "#f6f769"

PIECE_GLYPHS = {
    "P": "♙",
    "p": "♟",
    "R": "♖",
    "r": "♜",
    "N": "♘",
    "n": "♞",
    "B": "♗",
    "b": "♝",
    "Q": "♕",
    "q": "♛",
    "K": "♔",
    "k": "♚",
}


def render_board_svg(
    fen: str,
    highlighted_squares: Iterable[str] = (),
    last_move: Optional[LastMove] = None,
) -> str:
    """Draw the position as an SVG document, white at the bottom."""
    board = chess.Board(fen)
    highlighted = set(highlighted_squares)
    last_move_squares = (
        {last_move.from_square, last_move.to_square} if last_move else set()
    )

    parts = [
        f'<svg width="{BOARD_SIZE}" height="{BOARD_SIZE}" xmlns="http://www.w3.org/2000/svg">',
        "<defs><style>.square-label { font-size: 12px; fill: rgba(0,0,0,0.4); font-weight: bold; }</style></defs>",
        f'<rect width="{BOARD_SIZE}" height="{BOARD_SIZE}" fill="{LIGHT_SQUARE}"/>',
    ]

    for row in range(8):
        for col in range(8):
            x = col * SQUARE_SIZE
            y = row * SQUARE_SIZE
            file_letter = ascii_lowercase[col]
            rank = 8 - row
            name = f"{file_letter}{rank}"

            fill = LIGHT_SQUARE if (row + col) % 2 == 0 else DARK_SQUARE
            if name in last_move_squares:
                fill = LAST_MOVE_SQUARE
            if name in highlighted:
                fill = HIGHLIGHT_SQUARE

            parts.append(
                f'<rect x="{x}" y="{y}" width="{SQUARE_SIZE}" height="{SQUARE_SIZE}" '
                f'fill="{fill}" stroke="#000" stroke-width="1"/>'
            )
            if row == 7:
                parts.append(
                    f'<text x="{x + SQUARE_SIZE - 10}" y="{y + SQUARE_SIZE - 5}" class="square-label">{file_letter}</text>'
                )
            if col == 0:
                parts.append(
                    f'<text x="{x + 5}" y="{y + 15}" class="square-label">{rank}</text>'
                )

            piece = board.piece_at(chess.parse_square(name))
            if piece is None:
                continue
            color = "#ffffff" if piece.color == chess.WHITE else "#000000"
            parts.append(
                f'<text x="{x + SQUARE_SIZE // 2}" y="{y + int(SQUARE_SIZE * 0.7)}" font-size="50" '
                f'text-anchor="middle" fill="{color}" stroke="{color}" stroke-width="1">'
                f"{PIECE_GLYPHS[piece.symbol()]}</text>"
            )

    parts.append("</svg>")
    return "".join(parts)


def svg_to_data_url(svg: str) -> str:
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"
