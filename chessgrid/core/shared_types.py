"""
Type definitions used across layers
"""

from enum import StrEnum


class Status(StrEnum):
    WAITING = "waiting"
    ACTIVE = "active"
    FINISHED = "finished"


class Color(StrEnum):
    WHITE = "white"
    BLACK = "black"

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self is Color.WHITE else Color.WHITE


class PlayerSource(StrEnum):
    """How a seat was bound: through the token-issuing web API or through the (implicitly trusted) frame protocol."""

    WEB = "web"
    FRAME = "frame"


# Join requests may also leave the choice of seat to the server
RANDOM_SEAT = "random"
