"""Implementation of (Game)Repository as a single JSON document on disk (one entry per game ID)."""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Mapping

from chessgrid.chess.players import parse_timestamp
from chessgrid.core.models import GameModel


class JSONGameRepository:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def load_games(self) -> dict[str, GameModel]:
        with self._lock:
            payload = self._read()
        return {game_id: self._to_model(record) for game_id, record in payload.items()}

    def save_games(self, games: Mapping[str, GameModel]) -> None:
        with self._lock:
            payload = self._read()
            for game_id, game in games.items():
                payload[game_id] = self._to_record(game)
            self._write(payload)

    def delete_game(self, game_id: str) -> None:
        with self._lock:
            payload = self._read()
            if payload.pop(game_id, None) is not None:
                self._write(payload)

    # -- Internal helpers --
    def _read(self) -> dict[str, Any]:
        """Missing or blank file: nothing stored yet."""
        if not self.path.exists():
            return {}
        raw = self.path.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError(f"Expected a JSON object in {self.path}, got {type(payload).__name__}.")
        return payload

    def _write(self, payload: dict[str, Any]) -> None:
        """Write to a temporary file first, then swap it in, so readers never see half a snapshot."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                json.dump(payload, tmp, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @staticmethod
    def _to_record(game: GameModel) -> dict[str, Any]:
        return {
            "players": game.players,
            "turn": game.turn,
            "lastMove": game.last_move,
            "status": game.status,
            "moveHistory": list(game.move_history),
            "createdAt": game.created_at.isoformat(),
            "updatedAt": game.updated_at.isoformat(),
            "fen": game.fen,
        }

    @staticmethod
    def _to_model(record: dict[str, Any]) -> GameModel:
        """Missing fields fall back to the values of a fresh game."""
        move_history = record.get("moveHistory")
        return GameModel(
            fen=record.get("fen") or "",
            status=record.get("status") or "waiting",
            turn=record.get("turn") or "white",
            players=dict(record.get("players") or {}),
            move_history=list(move_history) if isinstance(move_history, list) else [],
            last_move=record.get("lastMove"),
            created_at=parse_timestamp(record.get("createdAt")),
            updated_at=parse_timestamp(record.get("updatedAt")),
        )
