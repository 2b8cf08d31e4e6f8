from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .schema import create_all

MEMORY_PATH = ":memory:"


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ships with foreign key enforcement off for every new connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(sqlite_path: str) -> Engine:
    """
    Build an engine for the given SQLite file and create missing tables.

    ":memory:" shares one connection across threads so every session sees the
    same database.
    """
    engine_url = f"sqlite:///{sqlite_path}"
    if sqlite_path == MEMORY_PATH:
        engine = create_engine(
            engine_url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            engine_url,
            future=True,
            connect_args={"check_same_thread": False},
        )
    event.listen(engine, "connect", _enable_foreign_keys)
    create_all(engine)
    return engine


def get_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@contextmanager
def session_context(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for SQLAlchemy sessions.

    Ensures rollback on error and session cleanup. Commits stay explicit in the
    caller so that a write is only published once it is durable.

    Usage:
        with session_context(factory) as session:
            ...
            session.commit()
    """
    session = session_factory()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
