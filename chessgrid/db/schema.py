"""Database tables / schema"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class DBGame(Base):
    __tablename__ = "games"
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    fen: Mapped[str]
    status: Mapped[str]
    turn: Mapped[str]
    players: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    move_history: Mapped[list[str]] = mapped_column(JSON, default=list)
    last_move: Mapped[Optional[dict[str, str]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    # set by Game on every mutation
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
