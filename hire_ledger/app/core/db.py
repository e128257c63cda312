from __future__ import annotations

from collections.abc import Generator
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from ..models import db as _db_models  # noqa: F401 - ensure models register with metadata
from .config import get_settings


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_for_url(database_url: str) -> Engine:
    connect_args: dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        # Worker threads share the file; wait on the writer lock instead of failing fast.
        connect_args = {"check_same_thread": False, "timeout": 30}
    new_engine = create_engine(database_url, echo=False, connect_args=connect_args)
    if database_url.startswith("sqlite"):
        event.listen(new_engine, "connect", _enable_sqlite_foreign_keys)
    return new_engine


def check_worker_count(database_url: str, workers: int) -> None:
    """SQLite has no row locks; only one process may write to the file."""
    if database_url.startswith("sqlite") and workers > 1:
        raise RuntimeError(
            f"SQLite store supports a single worker process, got workers={workers}"
        )


settings = get_settings()
engine = create_engine_for_url(settings.database_url)


def init_db() -> None:
    check_worker_count(str(engine.url), get_settings().workers)
    SQLModel.metadata.create_all(engine)


def new_session() -> Session:
    """Session bound to the current engine, for work outside a request."""
    return Session(engine)


def get_session() -> Generator[Session, None, None]:
    with new_session() as session:
        yield session


def set_engine(new_engine: Engine) -> None:
    global engine
    engine = new_engine
