"""Database utilities."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from .config import get_settings


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Build an engine; SQLite connections are shared across request threads."""

    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(database_url, echo=echo, connect_args=connect_args)


settings = get_settings()
engine = create_db_engine(settings.database_url, echo=settings.echo_sql)


def init_db(bind: Engine | None = None) -> None:
    from . import models  # noqa: F401 ensures models are imported

    SQLModel.metadata.create_all(bind=bind or engine)


@contextmanager
def session_scope(bind: Engine | None = None) -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""

    session = Session(bind or engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
