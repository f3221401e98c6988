"""Protocol repository: anything that can hold a snapshot of all games (SQL database, JSON file, memory)."""

from typing import Mapping, Protocol

from chessgrid.core.models import GameModel


class GameRepository(Protocol):
    """Persistence layer orchestration"""

    def load_games(self) -> dict[str, GameModel]:
        """Every stored game, keyed by game ID, in insertion order. An absent medium is simply empty."""
        ...

    def save_games(self, games: Mapping[str, GameModel]) -> None:
        """Insert or replace the given games. Games not mentioned are left alone."""
        ...

    def delete_game(self, game_id: str) -> None:
        """Remove a game's record, if there is one."""
        ...


class InMemoryGameRepository:
    """Keeps the snapshot in a dictionary. Used when no durability is wanted (and in tests)."""

    def __init__(self) -> None:
        self._games: dict[str, GameModel] = {}

    def load_games(self) -> dict[str, GameModel]:
        return dict(self._games)

    def save_games(self, games: Mapping[str, GameModel]) -> None:
        self._games.update(games)

    def delete_game(self, game_id: str) -> None:
        self._games.pop(game_id, None)
