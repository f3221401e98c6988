"""Implementation of (Game)Repository using SQLAlchemy"""

from datetime import datetime, timezone
from typing import Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from chessgrid.core.models import GameModel
from chessgrid.db.schema import DBGame


class SQLGameRepository:
    """
    Data stored using SQL / methods implemented using SQLAlchemy

    Every call opens its own session from the factory, so snapshots written from different threads never share one.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def load_games(self) -> dict[str, GameModel]:
        query = select(DBGame).order_by(DBGame.created_at, DBGame.id)
        with self.session_factory() as db:
            return {game_db.id: self._to_model(game_db) for game_db in db.scalars(query)}

    def save_games(self, games: Mapping[str, GameModel]) -> None:
        if not games:
            return
        with self.session_factory() as db:
            for game_id, game in games.items():
                game_db = db.get(DBGame, game_id)
                if game_db is None:
                    game_db = DBGame(id=game_id)
                    db.add(game_db)
                game_db.fen = game.fen
                game_db.status = game.status
                game_db.turn = game.turn
                game_db.players = game.players
                game_db.move_history = list(game.move_history)
                game_db.last_move = game.last_move
                game_db.created_at = game.created_at
                game_db.updated_at = game.updated_at
            db.commit()

    def delete_game(self, game_id: str) -> None:
        with self.session_factory() as db:
            game_db = db.get(DBGame, game_id)
            if game_db is None:
                return
            db.delete(game_db)
            db.commit()

    def _to_model(self, game_db: DBGame) -> GameModel:
        """Convert SQLAlchemy model to data transfer model."""
        return GameModel(
            fen=game_db.fen,
            status=game_db.status,
            turn=game_db.turn,
            players=dict(game_db.players or {}),
            move_history=list(game_db.move_history or []),
            last_move=game_db.last_move,
            created_at=_as_utc(game_db.created_at),
            updated_at=_as_utc(game_db.updated_at),
        )


def _as_utc(value: datetime) -> datetime:
    """SQLite hands timestamps back without tzinfo; they were written as UTC."""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
