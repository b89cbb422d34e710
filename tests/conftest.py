from collections.abc import Generator
from itertools import count
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from vitasport_admin import crud, schemas
from vitasport_admin.api import deps
from vitasport_admin.app import create_app
from vitasport_admin.config import get_settings
from vitasport_admin.database import get_engine, get_session_factory, init_database
from vitasport_admin.store import SqlLedgerStore

ENV_OVERRIDES = (
    "VITASPORT_DB",
    "VITASPORT_REPORTS_DIR",
    "VITASPORT_LOG_DIR",
    "VITASPORT_LOG_LEVEL",
    "VITASPORT_LOW_STOCK",
    "VITASPORT_MAX_PAGE_SIZE",
)


def _clear_caches() -> None:
    if get_engine.cache_info().currsize:
        get_engine().dispose()
    for cached in (get_settings, get_engine, get_session_factory, deps._ledger_store):
        cached.cache_clear()


@pytest.fixture(name="settings", autouse=True)
def settings_fixture(tmp_path, monkeypatch):  # type: ignore[no-untyped-def]
    monkeypatch.setenv("VITASPORT_DATA_DIR", str(tmp_path / "data"))
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    _clear_caches()
    yield get_settings()
    _clear_caches()


@pytest.fixture(name="session_factory")
def session_factory_fixture(settings):  # type: ignore[no-untyped-def]
    init_database(get_engine())
    return get_session_factory()


@pytest.fixture(name="store")
def store_fixture(session_factory) -> SqlLedgerStore:  # type: ignore[no-untyped-def]
    return SqlLedgerStore(session_factory, lock_timeout=30)


@pytest.fixture(name="db")
def db_fixture(session_factory) -> Generator[Session, None, None]:  # type: ignore[no-untyped-def]
    # close (or commit) this session before writing through the store:
    # an open SQLite read transaction blocks the ledger commit
    with session_factory() as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session_factory, store):  # type: ignore[no-untyped-def]
    app = create_app()

    def get_db_override() -> Generator[Session, None, None]:
        with session_factory() as session:
            yield session

    app.dependency_overrides[deps.get_db] = get_db_override
    app.dependency_overrides[deps.get_store] = lambda: store

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="make_product")
def make_product_fixture(store):  # type: ignore[no-untyped-def]
    numbers = count(1)

    def _make(initial_stock: int = 0, **fields: Any):
        number = next(numbers)
        fields.setdefault("name", f"Whey Protein {number}")
        fields.setdefault("sku", f"VS-{number:03d}")
        return crud.create_product(store, schemas.ProductCreate(initial_stock=initial_stock, **fields))

    return _make


@pytest.fixture(name="count_rows")
def count_rows_fixture(session_factory):  # type: ignore[no-untyped-def]
    def _count(model: Any) -> int:
        with session_factory() as session:
            return session.scalar(select(func.count()).select_from(model))

    return _count
