"""Sale settlement: the only path that turns a sale intent into stored state.

A settlement validates the intent, then inside one write transaction
recomputes the product balance, rejects the sale when it asks for more units
than that balance, and otherwise inserts the sale together with its outflow
movement. The transaction commits both rows or neither.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Union

import pydantic

from . import models, schemas
from .balances import balance_of
from .errors import InsufficientStockError, StorageError, ValidationError
from .movements import append_movement
from .store import LedgerStore

logger = logging.getLogger(__name__)

SaleInput = Union[schemas.SaleIntent, Mapping[str, Any]]


def coerce_intent(intent: SaleInput) -> schemas.SaleIntent:
    if isinstance(intent, schemas.SaleIntent):
        if intent.quantity <= 0:
            raise ValidationError("quantity must be positive", field="quantity")
        return intent
    try:
        return schemas.SaleIntent.model_validate(dict(intent))
    except pydantic.ValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc


class SaleSettlementEngine:
    def __init__(self, store: LedgerStore):
        self._store = store

    def settle_sale(self, intent: SaleInput) -> int:
        """Settle *intent* and return the new sale id.

        Raises ``ValidationError`` before touching the store,
        ``InsufficientStockError`` when the balance at commit time is too low
        and ``StorageError`` on store failures. Nothing is written unless the
        whole settlement commits. No retries are attempted.
        """

        sale = coerce_intent(intent)
        try:
            with self._store.transaction() as tx:
                available = balance_of(tx, sale.product_id)
                if sale.quantity > available:
                    raise InsufficientStockError(sale.product_id, available, sale.quantity)

                row = tx.add(
                    models.Sale(
                        product_id=sale.product_id,
                        quantity=sale.quantity,
                        sale_price=sale.sale_price,
                        discount=sale.discount,
                        channel=sale.channel,
                        sale_date=sale.sale_date,
                        created_by=sale.created_by,
                    )
                )
                sale_id = row.id
                movement = append_movement(
                    tx,
                    schemas.StockMovementCreate(
                        product_id=sale.product_id,
                        kind=models.MovementKind.OUTFLOW,
                        quantity=sale.quantity,
                        note=f"Sale #{sale_id}",
                        created_by=sale.created_by,
                    ),
                    sale_id=sale_id,
                )
        except InsufficientStockError as exc:
            logger.warning(
                "Sale rejected for product %s: available %s, requested %s",
                exc.product_id,
                exc.available,
                exc.requested,
            )
            raise
        except StorageError:
            logger.error("Settlement for product %s rolled back", sale.product_id)
            raise

        logger.info(
            "Sale %s settled: product=%s quantity=%s movement=%s",
            sale_id,
            sale.product_id,
            sale.quantity,
            movement.id,
        )
        return sale_id
