"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache
from typing import Generator

from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import get_session_factory
from ..store import SqlLedgerStore


def get_db() -> Generator[Session, None, None]:
    """Provide a database session for FastAPI routes."""

    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


@lru_cache(maxsize=1)
def _ledger_store() -> SqlLedgerStore:
    # one instance per process: its lock serializes every ledger write
    settings = get_settings()
    return SqlLedgerStore(get_session_factory(), lock_timeout=settings.lock_timeout)


def get_store() -> SqlLedgerStore:
    return _ledger_store()


def pagination_params(limit: int = 50, offset: int = 0) -> tuple[int, int]:
    settings = get_settings()
    if limit > settings.max_page_size:
        limit = settings.max_page_size
    return max(limit, 1), max(offset, 0)
