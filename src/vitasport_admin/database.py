"""Database utilities."""

from __future__ import annotations

from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import get_settings

# Execution option asking the SQLite hooks to open the transaction with
# BEGIN IMMEDIATE, i.e. to take the database write lock up front.
IMMEDIATE_TRANSACTION = "vitasport_immediate"


class Base(DeclarativeBase):
    """Base model for SQLAlchemy mappings."""


def _install_sqlite_hooks(engine: Engine) -> None:
    """Let SQLAlchemy, not the sqlite3 driver, decide how transactions begin."""

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):  # type: ignore[no-untyped-def]
        if conn.get_execution_options().get(IMMEDIATE_TRANSACTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def create_db_engine(database_url: str, *, busy_timeout: float = 5.0, echo: bool = False) -> Engine:
    """Create an engine for *database_url*; SQLite URLs get transaction hooks."""

    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": busy_timeout}
    engine = create_engine(database_url, connect_args=connect_args, echo=echo)
    if engine.dialect.name == "sqlite":
        _install_sqlite_hooks(engine)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Return a lazily created engine for the configured database."""

    settings = get_settings()
    return create_db_engine(settings.database_url, busy_timeout=settings.busy_timeout)


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker[Session]:
    return create_session_factory(get_engine())


@contextmanager
def session_scope(factory: Optional[sessionmaker[Session]] = None) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session: Session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_database(engine: Optional[Engine] = None, *, seed: bool = True) -> None:
    """Ensure that the database schema exists and seed the default admin."""

    from . import crud, models  # noqa: F401 - ensure models are imported

    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    if seed:
        with session_scope(create_session_factory(engine)) as session:
            crud.ensure_default_admin(session)
