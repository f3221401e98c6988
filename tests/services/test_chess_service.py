"""Unit tests for chessgrid/services/chess_service.py"""

from pathlib import Path

import pytest

from chessgrid.api.models import GameView, JoinGameResponse
from chessgrid.chess.oracle import RulesOracle
from chessgrid.core.exceptions import (
    GameFullError,
    GameNotActiveError,
    IllegalMoveError,
    InvalidTokenError,
    MissingTokenError,
    NotFoundError,
    NotYourTurnError,
    SeatTakenError,
)
from chessgrid.core.shared_types import Color, PlayerSource, Status
from chessgrid.db.json_repository import JSONGameRepository
from chessgrid.db.repository import InMemoryGameRepository
from chessgrid.db.session_store import SessionStore
from chessgrid.services.chess_service import ChessService, FrameState

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


def two_player_game(service: ChessService) -> tuple[str, JoinGameResponse, JoinGameResponse]:
    game_id = service.create_session().game_id
    alice = service.join_session(game_id, "white", "Alice")
    bob = service.join_session(game_id, "black", "Bob")
    return game_id, alice, bob


# --- SERVICE - CREATE / JOIN ----
def test_create_session(service: ChessService, memory_repository: InMemoryGameRepository) -> None:
    """A new game is waiting, empty, and persisted right away."""
    created = service.create_session()
    assert created.success

    view = service.inspect(created.game_id)
    assert view.status == Status.WAITING
    assert view.fen == STARTING_FEN
    assert view.players == {Color.WHITE: None, Color.BLACK: None}
    assert view.available_colors == {Color.WHITE: True, Color.BLACK: True}
    assert created.game_id in memory_repository.load_games()


def test_scenario_two_players(service: ChessService) -> None:
    """Create, Alice joins white, Bob joins black, Alice plays e4."""
    game_id, alice, bob = two_player_game(service)
    assert alice.color == Color.WHITE
    assert bob.color == Color.BLACK

    view = service.inspect(game_id)
    assert view.status == Status.ACTIVE
    assert view.current_player == Color.WHITE

    moved = service.make_move(game_id, "e2", "e4", token=alice.token)
    assert moved.success
    assert moved.move.san == "e4"
    assert moved.move.from_square == "e2"
    assert moved.move.to_square == "e4"
    assert moved.move_history == ["e4"]

    view = service.inspect(game_id)
    assert view.current_player == Color.BLACK
    assert view.move_history == ["e4"]
    assert view.last_move is not None
    assert (view.last_move.from_square, view.last_move.to_square) == ("e2", "e4")


def test_join_unknown_game(service: ChessService) -> None:
    with pytest.raises(NotFoundError):
        service.join_session("unknown", "white", "Alice")


def test_join_errors(service: ChessService) -> None:
    game_id = service.create_session().game_id
    service.join_session(game_id, "white", "Alice")
    with pytest.raises(SeatTakenError):
        service.join_session(game_id, "white", "Mallory")
    service.join_session(game_id, "random", "Bob")
    with pytest.raises(GameFullError):
        service.join_session(game_id, "random", "Carol")


def test_views_never_expose_tokens(service: ChessService) -> None:
    game_id, alice, _ = two_player_game(service)
    view = service.inspect(game_id)
    dumped = view.model_dump_json(by_alias=True)
    assert alice.token not in dumped
    assert alice.token not in alice.player.model_dump_json(by_alias=True)


# --- SERVICE - SOLO ----
def test_scenario_solo(service: ChessService) -> None:
    """One token plays both sides."""
    game_id = service.create_session().game_id
    solo = service.start_solo(game_id, "Solo")
    assert solo.mode == "solo"
    assert solo.player.name == "Solo"

    service.make_move(game_id, "e2", "e4", token=solo.token)
    moved = service.make_move(game_id, "e7", "e5", token=solo.token)
    assert moved.move_history == ["e4", "e5"]


def test_solo_creates_unknown_game(service: ChessService) -> None:
    solo = service.start_solo("fresh-id")
    assert service.inspect("fresh-id").status == Status.ACTIVE
    assert solo.player.name == "Solo Player"


def test_solo_discards_game_in_progress(service: ChessService) -> None:
    game_id, alice, _ = two_player_game(service)
    service.make_move(game_id, "e2", "e4", token=alice.token)

    solo = service.start_solo(game_id, "Solo")
    view = service.inspect(game_id)
    assert view.move_history == []
    assert view.fen == STARTING_FEN
    with pytest.raises(InvalidTokenError):
        service.make_move(game_id, "e2", "e4", token=alice.token)
    service.make_move(game_id, "e2", "e4", token=solo.token)


# --- SERVICE - MOVES ----
def test_scenario_half_tokened_game(service: ChessService) -> None:
    """White holds a token, black sits through the frame: the white token never moves for black."""
    game_id = service.create_session().game_id
    alice = service.join_session(game_id, "white", "Alice")
    service.frame_action(game_id, "42", button_index=2)
    assert service.inspect(game_id).status == Status.ACTIVE

    with pytest.raises(NotYourTurnError):
        service.make_move(game_id, "e7", "e5", token=alice.token)

    service.make_move(game_id, "e2", "e4", token=alice.token)
    with pytest.raises(NotYourTurnError):
        service.make_move(game_id, "e7", "e5", token=alice.token)
    assert service.inspect(game_id).move_history == ["e4"]


def test_scenario_illegal_move(service: ChessService) -> None:
    """A rejected move leaves position, history and turn as they were."""
    game_id, alice, _ = two_player_game(service)
    before = service.inspect(game_id)

    with pytest.raises(IllegalMoveError):
        service.make_move(game_id, "e2", "e5", token=alice.token)

    after = service.inspect(game_id)
    assert after.fen == before.fen
    assert after.move_history == before.move_history
    assert after.current_player == before.current_player


@pytest.mark.parametrize("token, error", [(None, MissingTokenError), ("wrong", InvalidTokenError)])
def test_move_needs_token(service: ChessService, token: str | None, error: type[Exception]) -> None:
    game_id, _, _ = two_player_game(service)
    with pytest.raises(error):
        service.make_move(game_id, "e2", "e4", token=token)
    assert service.inspect(game_id).move_history == []


def test_move_unknown_game(service: ChessService) -> None:
    with pytest.raises(NotFoundError):
        service.make_move("unknown", "e2", "e4")


def test_move_in_waiting_game(service: ChessService) -> None:
    game_id = service.create_session().game_id
    alice = service.join_session(game_id, "white", "Alice")
    with pytest.raises(GameNotActiveError):
        service.make_move(game_id, "e2", "e4", token=alice.token)


def test_move_is_persisted(service: ChessService, memory_repository: InMemoryGameRepository) -> None:
    game_id, alice, _ = two_player_game(service)
    service.make_move(game_id, "e2", "e4", token=alice.token)
    stored = memory_repository.load_games()[game_id]
    assert stored.move_history == ["e4"]
    assert stored.turn == "black"


def test_checkmate_finishes_game(service: ChessService) -> None:
    game_id = service.create_session().game_id
    token = service.start_solo(game_id).token
    for from_square, to_square in [("f2", "f3"), ("e7", "e5"), ("g2", "g4"), ("d8", "h4")]:
        moved = service.make_move(game_id, from_square, to_square, token=token)
    assert moved.status == Status.FINISHED

    view = service.inspect(game_id)
    assert view.is_checkmate
    assert view.is_check
    assert not view.is_draw
    with pytest.raises(GameNotActiveError):
        service.make_move(game_id, "e2", "e4", token=token)


def test_persistence_failure_does_not_fail_the_move(oracle: RulesOracle) -> None:
    class BrokenRepository(InMemoryGameRepository):
        def save_games(self, games: object) -> None:
            raise OSError("read-only file system")

    store = SessionStore(BrokenRepository(), oracle)
    service = ChessService(store)
    game_id = service.create_session().game_id
    token = service.start_solo(game_id).token

    moved = service.make_move(game_id, "e2", "e4", token=token)
    assert moved.move_history == ["e4"]
    assert store.persistence_failures >= 3


# --- SERVICE - RESIGN / NEW GAME ----
def test_resign(service: ChessService) -> None:
    game_id, _, bob = two_player_game(service)
    # resigning does not depend on whose turn it is
    view = service.resign(game_id, bob.token)
    assert view.status == Status.FINISHED


def test_resign_needs_valid_token(service: ChessService) -> None:
    game_id, _, _ = two_player_game(service)
    with pytest.raises(MissingTokenError):
        service.resign(game_id)
    with pytest.raises(InvalidTokenError):
        service.resign(game_id, "wrong")
    assert service.inspect(game_id).status == Status.ACTIVE


def test_new_game(service: ChessService) -> None:
    game_id, alice, _ = two_player_game(service)
    service.make_move(game_id, "e2", "e4", token=alice.token)
    view = service.new_game(game_id, alice.token)
    assert view.status == Status.WAITING
    assert view.move_history == []
    assert view.players == {Color.WHITE: None, Color.BLACK: None}


def test_new_game_needs_valid_token(service: ChessService) -> None:
    """Nobody outside the game can wipe it."""
    game_id, alice, _ = two_player_game(service)
    service.make_move(game_id, "e2", "e4", token=alice.token)
    with pytest.raises(MissingTokenError):
        service.new_game(game_id)
    with pytest.raises(InvalidTokenError):
        service.new_game(game_id, "wrong")
    assert service.inspect(game_id).move_history == ["e4"]


# --- SERVICE - READ PATHS ----
def test_list_sessions(service: ChessService) -> None:
    first, alice, _ = two_player_game(service)
    second = service.create_session().game_id
    service.make_move(first, "e2", "e4", token=alice.token)

    games = service.list_sessions().games
    assert [g.game_id for g in games] == [first, second]
    assert games[0].status == Status.ACTIVE
    assert games[0].current_player == Color.BLACK
    assert games[0].move_count == 1
    assert games[1].status == Status.WAITING
    assert games[1].move_count == 0


def test_pgn(service: ChessService) -> None:
    game_id, alice, bob = two_player_game(service)
    service.make_move(game_id, "e2", "e4", token=alice.token)
    service.make_move(game_id, "e7", "e5", token=bob.token)

    pgn = service.pgn(game_id)
    assert '[White "Alice"]' in pgn
    assert '[Black "Bob"]' in pgn
    assert "1. e4 e5" in pgn


def test_valid_moves(service: ChessService) -> None:
    game_id = service.create_session().game_id
    response = service.valid_moves(game_id, "b1")
    assert response.square == "b1"
    assert response.valid_moves == ["a3", "c3"]


def test_captured_pieces(service: ChessService) -> None:
    game_id = service.create_session().game_id
    token = service.start_solo(game_id).token
    for from_square, to_square in [("e2", "e4"), ("d7", "d5"), ("e4", "d5")]:
        service.make_move(game_id, from_square, to_square, token=token)
    view = service.inspect(game_id)
    assert view.captured_pieces.white == ["p"]
    assert view.captured_pieces.black == []


def test_render(service: ChessService) -> None:
    game_id = service.create_session().game_id
    svg = service.render(game_id, highlight_square="e2")
    assert svg.startswith("<svg")
    with pytest.raises(NotFoundError):
        service.render("unknown")


def test_inspect_unknown_game(service: ChessService) -> None:
    with pytest.raises(NotFoundError):
        service.inspect("unknown")


def test_unknown_games_leave_no_locks_behind(service: ChessService) -> None:
    for i in range(100):
        with pytest.raises(NotFoundError):
            service.inspect(f"nope-{i}")
    game_id = service.create_session().game_id
    service.inspect(game_id)
    assert list(service.store._game_locks) == [game_id]


# --- SERVICE - RESTART ----
def test_restart_keeps_games(oracle: RulesOracle, tmp_path: Path) -> None:
    """A new process on the same storage sees the same games and accepts the same tokens."""
    path = tmp_path / "games.json"
    service = ChessService(SessionStore(JSONGameRepository(path), oracle))
    game_id, alice, bob = two_player_game(service)
    service.make_move(game_id, "e2", "e4", token=alice.token)
    before = service.inspect(game_id)

    store = SessionStore(JSONGameRepository(path), oracle)
    store.restore()
    restarted = ChessService(store)
    after = restarted.inspect(game_id)

    assert after.fen == before.fen
    assert after.status == before.status
    assert after.current_player == before.current_player
    assert after.move_history == before.move_history
    assert restarted.make_move(game_id, "e7", "e5", token=bob.token).move_history == ["e4", "e5"]


# --- SERVICE - FRAME PROTOCOL ----
def test_frame_view_creates_game(service: ChessService) -> None:
    view = service.frame_view("frame-game")
    assert isinstance(view, GameView)
    assert view.status == Status.WAITING
    assert service.frame_view("frame-game").game_id == "frame-game"
    assert len(service.list_sessions().games) == 1


def test_frame_join_and_play(service: ChessService) -> None:
    """Frame players carry no token, so their moves need none."""
    service.frame_action("g", "1", button_index=1)
    view = service.frame_action("g", "2", button_index=2)
    assert view.status == Status.ACTIVE
    white = view.players[Color.WHITE]
    assert white is not None
    assert white.name == "FID 1"
    assert white.source == PlayerSource.FRAME.value

    view = service.frame_action("g", "1", button_index=1, input_text=" e2E4 ")
    assert view.move_history == ["e4"]


def test_frame_solo(service: ChessService) -> None:
    view = service.frame_action("g", "7", button_index=3)
    assert view.status == Status.ACTIVE
    assert view.players[Color.WHITE] == view.players[Color.BLACK]


def test_frame_rejected_actions_are_ignored(service: ChessService) -> None:
    """Bad input, illegal moves and taken seats leave the game unchanged without raising."""
    service.frame_action("g", "1", button_index=1)
    view = service.frame_action("g", "2", button_index=1)
    white = view.players[Color.WHITE]
    assert white is not None and white.id == "1"

    service.frame_action("g", "2", button_index=2)
    for text in ["hello", "e2e5", "e7e5"]:
        view = service.frame_action("g", "1", button_index=1, input_text=text)
        assert view.move_history == []


def test_frame_move_in_tokened_game_is_ignored(service: ChessService) -> None:
    game_id, _, _ = two_player_game(service)
    view = service.frame_action(game_id, "1", button_index=1, input_text="e2e4")
    assert view.move_history == []


def test_frame_resign_and_new_game_in_tokened_game_are_ignored(service: ChessService) -> None:
    game_id, alice, _ = two_player_game(service)
    service.make_move(game_id, "e2", "e4", token=alice.token)

    view = service.frame_action(game_id, "999", button_index=4)
    assert view.status == Status.ACTIVE
    view = service.frame_action(game_id, "999", button_index=3)
    assert view.move_history == ["e4"]

    service.resign(game_id, alice.token)
    view = service.frame_action(game_id, "999", button_index=1)
    assert view.status == Status.FINISHED
    assert view.move_history == ["e4"]


def test_frame_resign_and_new_game(service: ChessService) -> None:
    service.frame_action("g", "7", button_index=3)
    view = service.frame_action("g", "7", button_index=4)
    assert view.status == Status.FINISHED

    view = service.frame_action("g", "7", button_index=1)
    assert view.status == Status.WAITING
    assert view.players == {Color.WHITE: None, Color.BLACK: None}


def test_frame_new_game_while_active(service: ChessService) -> None:
    service.frame_action("g", "7", button_index=3)
    service.frame_action("g", "7", button_index=1, input_text="e2e4")
    view = service.frame_action("g", "7", button_index=3)
    assert view.status == Status.WAITING
    assert view.move_history == []


def test_frame_state_round_trip() -> None:
    encoded = ChessService.encode_frame_state("game-1")
    assert ChessService.decode_frame_state(encoded) == FrameState(game_id="game-1", action="view")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('{"gameId": "abc", "action": "move"}', FrameState(game_id="abc", action="move")),
        (None, FrameState()),
        ("", FrameState()),
        ("%7Bbroken", FrameState()),
        ("[1, 2]", FrameState()),
    ],
)
def test_decode_frame_state(raw: str | None, expected: FrameState) -> None:
    assert ChessService.decode_frame_state(raw) == expected
