from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session as SessionBase, declarative_base, sessionmaker

from .config import settings

DATABASE_URL = settings.database_url

connect_args: dict[str, object] = {}
engine_url = DATABASE_URL

if engine_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}
    # Ensure directory exists for SQLite db
    db_path = engine_url.replace("sqlite:///", "")
    if db_path and db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
elif engine_url.startswith("postgres://"):
    engine_url = engine_url.replace("postgres://", "postgresql+psycopg://", 1)
elif engine_url.startswith("postgresql://"):
    engine_url = engine_url.replace("postgresql://", "postgresql+psycopg://", 1)

engine = create_engine(engine_url, connect_args=connect_args, future=True)


def enable_sqlite_foreign_keys(target_engine) -> None:
    if target_engine.dialect.name != "sqlite":
        return

    @event.listens_for(target_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # type: ignore[unused-variable]
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


enable_sqlite_foreign_keys(engine)


class OwnerSession(SessionBase):
    """Session carrying the owning user id in ``info['user_id']``."""


SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
    class_=OwnerSession,
)

Base = declarative_base()


@contextmanager
def session_scope() -> Generator[OwnerSession, None, None]:
    session: OwnerSession = SessionLocal()  # type: ignore[assignment]
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_session() -> Generator[OwnerSession, None, None]:
    with session_scope() as session:
        yield session


def setup_session_events(session_cls: type[SessionBase]) -> None:
    from .cache import setup_cache_events
    from .owner_scoping import setup_owner_events

    if session_cls.__dict__.get("_events_configured"):
        return
    setup_owner_events(session_cls)
    setup_cache_events(session_cls)
    session_cls._events_configured = True


def init_db() -> None:
    from . import orm_models  # noqa: F401

    setup_session_events(OwnerSession)
    Base.metadata.create_all(bind=engine)
