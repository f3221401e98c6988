"""
Environment configuration.

Everything is read from environment variables once, at application start-up.
"""

import logging
import os
from dataclasses import dataclass, field

from chessgrid.db.database import build_engine, build_session_factory
from chessgrid.db.json_repository import JSONGameRepository
from chessgrid.db.repository import GameRepository, InMemoryGameRepository
from chessgrid.db.sql_repository import SQLGameRepository

STORAGE_BACKENDS = ("sql", "json", "memory")
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    storage: str = "sql"
    database_url: str = "sqlite:///data/games.db"
    data_file: str = "data/games.json"
    background_flush: bool = False
    log_level: str = "INFO"
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = 3000

    @classmethod
    def from_env(cls) -> "Settings":
        storage = os.getenv("CHESSGRID_STORAGE", "sql").strip().lower()
        if storage not in STORAGE_BACKENDS:
            raise ValueError(
                f"CHESSGRID_STORAGE must be one of {', '.join(STORAGE_BACKENDS)}, got {storage!r}."
            )
        return cls(
            storage=storage,
            database_url=os.getenv("CHESSGRID_DATABASE_URL", cls.database_url),
            data_file=os.getenv("CHESSGRID_DATA_FILE", cls.data_file),
            background_flush=_env_flag("CHESSGRID_BACKGROUND_FLUSH"),
            log_level=os.getenv("CHESSGRID_LOG_LEVEL", cls.log_level).upper(),
            allowed_origins=os.getenv("CHESSGRID_ALLOWED_ORIGINS", "*").split(","),
            host=os.getenv("HOST", cls.host),
            port=int(os.getenv("PORT", str(cls.port))),
        )


def build_repository(settings: Settings) -> GameRepository:
    """Pick the storage medium for session snapshots."""
    if settings.storage == "memory":
        return InMemoryGameRepository()
    if settings.storage == "json":
        return JSONGameRepository(settings.data_file)
    engine = build_engine(settings.database_url)
    return SQLGameRepository(build_session_factory(engine))


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
