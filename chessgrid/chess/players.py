"""Seat bindings: who plays which side of a game."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Self

from chessgrid.core.shared_types import PlayerSource

MAX_NAME_LENGTH = 40


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_player_name(name: Optional[str], fallback: str = "Player") -> str:
    """Trimmed display name, cut to MAX_NAME_LENGTH. Blank names get the fallback."""
    if not name:
        return fallback
    trimmed = str(name).strip()
    if not trimmed:
        return fallback
    return trimmed[:MAX_NAME_LENGTH]


@dataclass
class Player:
    id: str
    name: str
    token: Optional[str] = None
    source: PlayerSource = PlayerSource.WEB
    joined_at: datetime = field(default_factory=utc_now)

    def public(self) -> dict[str, Any]:
        """Everything but the token."""
        return {
            "id": self.id,
            "name": self.name,
            "source": self.source.value,
            "joined_at": self.joined_at,
        }

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "token": self.token,
            "source": self.source.value,
            "joined_at": self.joined_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Self:
        try:
            source = PlayerSource(record.get("source", PlayerSource.WEB.value))
        except ValueError:
            source = PlayerSource.WEB
        return cls(
            id=str(record["id"]),
            name=format_player_name(record.get("name")),
            token=record.get("token"),
            source=source,
            joined_at=parse_timestamp(record.get("joined_at")),
        )


def parse_timestamp(value: Any) -> datetime:
    """Stored timestamps are ISO strings (or epoch milliseconds in older snapshots)."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    return utc_now()
