"""Transactional access to the stock ledger tables.

The ledger services (movement log, balance projector, settlement engine)
depend on the :class:`LedgerStore` and :class:`LedgerTransaction` protocols
only. :class:`SqlLedgerStore` is the embedded SQLite implementation: every
write transaction holds one store-wide lock and opens the database
transaction with ``BEGIN IMMEDIATE``, so at most one ledger write runs at a
time and the balance read by a settlement cannot change before it commits.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Protocol, runtime_checkable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .database import IMMEDIATE_TRANSACTION
from .errors import StorageError

logger = logging.getLogger(__name__)


@runtime_checkable
class LedgerTransaction(Protocol):
    """One isolated unit of work against the store."""

    def add(self, row: Any) -> Any:
        """Insert *row* and assign its id."""
        ...

    def scalar(self, statement: Any) -> Any:
        ...

    def scalars(self, statement: Any) -> list[Any]:
        ...

    def execute(self, statement: Any) -> list[Any]:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class LedgerStore(Protocol):
    def begin(self) -> LedgerTransaction:
        """Open a write transaction; the caller must commit or roll back."""
        ...

    def transaction(self) -> Any:
        """Context manager: commit on success, roll back on any error."""
        ...

    def reader(self) -> Any:
        """Context manager yielding a read-only transaction."""
        ...


class SqlLedgerTransaction:
    """A :class:`LedgerTransaction` backed by an ORM session."""

    def __init__(self, session: Session, *, on_close: Optional[Callable[[], None]] = None):
        self.session = session
        self._on_close = on_close
        self._closed = False

    def add(self, row: Any) -> Any:
        self.session.add(row)
        self.session.flush()
        return row

    def scalar(self, statement: Any) -> Any:
        return self.session.scalar(statement)

    def scalars(self, statement: Any) -> list[Any]:
        return list(self.session.scalars(statement))

    def execute(self, statement: Any) -> list[Any]:
        return list(self.session.execute(statement))

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.session.close()
        finally:
            if self._on_close is not None:
                self._on_close()


class SqlLedgerStore:
    """SQLite ledger store guarded by a single write lock.

    ``lock_timeout`` bounds the wait for the write lock in seconds; ``None``
    waits until the in-flight writes have finished.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        lock: Optional[threading.Lock] = None,
        lock_timeout: Optional[float] = None,
    ):
        self._session_factory = session_factory
        self._write_lock = lock or threading.Lock()
        self._lock_timeout = lock_timeout

    def _acquire(self) -> None:
        timeout = -1 if self._lock_timeout is None else self._lock_timeout
        if not self._write_lock.acquire(timeout=timeout):
            raise StorageError(f"Timed out after {self._lock_timeout}s waiting for the ledger write lock")

    def begin(self) -> SqlLedgerTransaction:
        self._acquire()
        session = self._session_factory()
        try:
            session.connection(execution_options={IMMEDIATE_TRANSACTION: True})
        except SQLAlchemyError as exc:
            session.close()
            self._write_lock.release()
            logger.error("Could not open a ledger transaction", exc_info=True)
            raise StorageError.from_driver(exc, "Could not open a ledger transaction") from exc
        return SqlLedgerTransaction(session, on_close=self._write_lock.release)

    @contextmanager
    def transaction(self) -> Iterator[SqlLedgerTransaction]:
        tx = self.begin()
        try:
            yield tx
            tx.commit()
        except SQLAlchemyError as exc:
            _rollback_quietly(tx)
            logger.error("Ledger transaction rolled back after a storage failure", exc_info=True)
            raise StorageError.from_driver(exc) from exc
        except BaseException:
            _rollback_quietly(tx)
            raise
        finally:
            tx.close()

    @contextmanager
    def reader(self) -> Iterator[SqlLedgerTransaction]:
        tx = SqlLedgerTransaction(self._session_factory())
        try:
            yield tx
        except SQLAlchemyError as exc:
            logger.error("Ledger read failed", exc_info=True)
            raise StorageError.from_driver(exc) from exc
        finally:
            # closing ends the read transaction and leaves loaded rows usable
            tx.close()


def _rollback_quietly(tx: LedgerTransaction) -> None:
    try:
        tx.rollback()
    except SQLAlchemyError:
        # the original failure is what the caller needs to see
        logger.warning("Rollback failed", exc_info=True)
