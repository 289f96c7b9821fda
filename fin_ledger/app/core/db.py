from __future__ import annotations

from collections.abc import Generator
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from ..models import db as _db_models  # noqa: F401 - ensure models register with metadata
from .config import get_settings


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    # Transactions and history rows reference accounts and cards by id.
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_engine_for_url(database_url: str, echo: bool = False) -> Engine:
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )
        _enable_sqlite_foreign_keys(engine)
        return engine

    engine_args: dict[str, Any] = {"pool_pre_ping": True, "pool_recycle": 1800}
    return create_engine(database_url, echo=echo, **engine_args)


settings = get_settings()
engine = create_engine_for_url(settings.database_url, echo=settings.database_echo)


def init_db() -> None:
    SQLModel.metadata.create_all(engine)


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


def set_engine(new_engine: Engine) -> None:
    global engine
    engine = new_engine
