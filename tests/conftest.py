"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

from typing import Iterator

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from chessgrid.chess.oracle import RulesOracle
from chessgrid.db.repository import InMemoryGameRepository
from chessgrid.db.schema import Base
from chessgrid.db.session_store import SessionStore
from chessgrid.services.chess_service import ChessService

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def db_session_factory() -> Iterator[sessionmaker[Session]]:
    """Session factory on a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def oracle() -> RulesOracle:
    return RulesOracle()


@pytest.fixture
def memory_repository() -> InMemoryGameRepository:
    return InMemoryGameRepository()


@pytest.fixture
def store(memory_repository: InMemoryGameRepository, oracle: RulesOracle) -> Iterator[SessionStore]:
    session_store = SessionStore(memory_repository, oracle)
    try:
        yield session_store
    finally:
        session_store.close()


@pytest.fixture
def service(store: SessionStore, oracle: RulesOracle) -> ChessService:
    return ChessService(store, oracle)
