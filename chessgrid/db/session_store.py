"""
The authoritative, in-memory map of game ID -> Game, mirrored to a repository.

Persistence here is best effort. A snapshot that cannot be written is logged and counted, never raised:
the in-memory game is the truth and a crash may lose at most the last unflushed mutation.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Iterator, Optional

from chessgrid.chess.game import Game
from chessgrid.chess.oracle import RulesOracle
from chessgrid.core.exceptions import InvalidFENError, InvalidHistoryError, PersistenceWarning
from chessgrid.core.models import GameModel, GameSummary
from chessgrid.db.repository import GameRepository

logger = logging.getLogger(__name__)


@dataclass
class _GameLock:
    lock: threading.RLock = field(default_factory=threading.RLock)
    users: int = 0


class SessionStore:
    """
    Owns every Game of the running process.
    ----
    Concurrency: callers wrap each read-modify-write of a game in `lock(game_id)`. There is one re-entrant lock
    per game ID, so two requests on the same game are strictly ordered while different games never wait on each other.
    The map itself is guarded by a separate lock that is only held for dictionary access. A game ID's lock lives as
    long as the game exists or somebody holds or waits for it.
    """

    def __init__(
        self,
        repository: GameRepository,
        oracle: RulesOracle,
        background_flush: bool = False,
    ) -> None:
        self.repository = repository
        self.oracle = oracle
        self._games: dict[str, Game] = {}
        self._map_lock = threading.Lock()
        self._game_locks: dict[str, _GameLock] = {}

        self._executor: Optional[ThreadPoolExecutor] = None
        if background_flush:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="chessgrid-snapshot"
            )
        self._pending: list[Future[None]] = []
        self._snapshot_lock = threading.Lock()

        # failure channel for snapshots, separate from any action's result
        self.persistence_failures = 0
        self.last_persistence_error: Optional[PersistenceWarning] = None

    def __contains__(self, game_id: object) -> bool:
        with self._map_lock:
            return game_id in self._games

    def __len__(self) -> int:
        with self._map_lock:
            return len(self._games)

    # --- map access ---
    def get(self, game_id: str) -> Optional[Game]:
        with self._map_lock:
            return self._games.get(game_id)

    def get_or_create(self, game_id: str) -> Game:
        """Lazy creation. An existing game is returned as is, never reset."""
        with self._map_lock:
            game = self._games.get(game_id)
            if game is not None:
                return game
            game = Game.new_game(game_id, self.oracle)
            self._games[game_id] = game
        logger.info("Created game %s", game_id)
        return game

    def put(self, game: Game) -> Game:
        """Insert, or replace the game stored under the same ID."""
        with self._map_lock:
            self._games[game.id] = game
        return game

    def list_games(self) -> list[GameSummary]:
        """Summaries in insertion order."""
        with self._map_lock:
            games = list(self._games.values())
        return [
            GameSummary(
                game_id=game.id,
                status=game.status.value,
                turn=game.turn.value,
                move_count=len(game.move_history),
            )
            for game in games
        ]

    @contextmanager
    def lock(self, game_id: str) -> Iterator[None]:
        """Exclusive section for one game ID."""
        with self._map_lock:
            entry = self._game_locks.get(game_id)
            if entry is None:
                entry = self._game_locks[game_id] = _GameLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._map_lock:
                entry.users -= 1
                if entry.users == 0 and game_id not in self._games:
                    del self._game_locks[game_id]

    # --- persistence ---
    def snapshot(self, *game_ids: str) -> None:
        """
        Mirror games to the repository (all of them when no ID is given).
        ---
        The games are serialized right away, so the caller's lock covers a consistent copy; the write itself happens
        inline, or on the background writer when one is configured. Failures never propagate.
        """
        with self._map_lock:
            if game_ids:
                games = [self._games[gid] for gid in game_ids if gid in self._games]
            else:
                games = list(self._games.values())
        models = {game.id: game.to_model() for game in games}
        if not models:
            return

        if self._executor is None:
            self._write(models)
            return
        future = self._executor.submit(self._write, models)
        with self._snapshot_lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)

    def flush(self) -> None:
        """Wait for background snapshots that are still queued."""
        with self._snapshot_lock:
            pending, self._pending = self._pending, []
        for future in pending:
            future.result()

    def close(self) -> None:
        self.flush()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def restore(self) -> int:
        """
        Load every stored game, replacing whatever is in memory under the same IDs.
        ---
        A missing medium is just an empty store. A game whose stored position is invalid restarts from the initial
        position (its history no longer matches, so it is dropped) instead of being rejected. A history that cannot be
        replayed, or does not lead to the stored position, is dropped and the position kept.
        """
        try:
            stored = self.repository.load_games()
        except Exception as exc:
            self._record_failure(f"Failed to load games from storage: {exc}")
            return 0

        restored = {game_id: self._restore_game(game_id, model) for game_id, model in stored.items()}
        with self._map_lock:
            self._games.update(restored)
        logger.info("Loaded %d games from storage.", len(restored))
        return len(restored)

    # -- Internal helpers --
    def _restore_game(self, game_id: str, model: GameModel) -> Game:
        try:
            game = Game.from_model(game_id, model, self.oracle)
        except InvalidFENError as exc:
            logger.warning("Game %s: %s Falling back to the initial position.", game_id, exc)
            degraded = replace(
                model,
                fen=self.oracle.serialize(self.oracle.initial_position()),
                move_history=[],
                last_move=None,
            )
            return self._restore_game(game_id, degraded)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Game %s: unreadable record (%s). Starting a fresh game.", game_id, exc)
            return Game.new_game(game_id, self.oracle)

        try:
            self.oracle.verify_history(game.board, game.move_history)
        except InvalidHistoryError as exc:
            logger.warning("Game %s: %s Keeping the position, dropping its history.", game_id, exc)
            game.move_history = []
            game.last_move = None
        return game

    def _write(self, models: dict[str, GameModel]) -> None:
        try:
            self.repository.save_games(models)
        except Exception as exc:
            self._record_failure(f"Failed to persist {len(models)} game(s): {exc}")

    def _record_failure(self, message: str) -> None:
        warning = PersistenceWarning(message)
        with self._snapshot_lock:
            self.persistence_failures += 1
            self.last_persistence_error = warning
        logger.warning("%s", warning, exc_info=True)
