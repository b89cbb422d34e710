"""Current stock derived from the movement log.

There is no stored "current stock" column: every balance is folded from the
full movement history at read time, so it can never drift from the log.
"""

from __future__ import annotations

import logging

from sqlalchemy import case, func, select

from . import models
from .store import LedgerStore, LedgerTransaction

logger = logging.getLogger(__name__)


def signed_quantity():
    """SQL expression: +quantity for inflows, -quantity for outflows."""

    return case(
        (models.StockMovement.kind == models.MovementKind.INFLOW, models.StockMovement.quantity),
        (models.StockMovement.kind == models.MovementKind.OUTFLOW, -models.StockMovement.quantity),
        else_=0,
    )


def balance_of(tx: LedgerTransaction, product_id: int) -> int:
    """Balance of one product as seen by *tx*; zero when it has no history."""

    statement = select(func.coalesce(func.sum(signed_quantity()), 0)).where(
        models.StockMovement.product_id == product_id
    )
    balance = int(tx.scalar(statement) or 0)
    logger.debug("Balance of product %s recomputed: %s", product_id, balance)
    return balance


def all_balances(tx: LedgerTransaction) -> dict[int, int]:
    statement = (
        select(models.StockMovement.product_id, func.coalesce(func.sum(signed_quantity()), 0))
        .group_by(models.StockMovement.product_id)
        .order_by(models.StockMovement.product_id)
    )
    return {int(product_id): int(balance) for product_id, balance in tx.execute(statement)}


class BalanceProjector:
    """Read-side view over the log. Holds no state between calls."""

    def __init__(self, store: LedgerStore):
        self._store = store

    def balance_of(self, product_id: int) -> int:
        with self._store.reader() as tx:
            return balance_of(tx, product_id)

    def all_balances(self) -> dict[int, int]:
        with self._store.reader() as tx:
            return all_balances(tx)
