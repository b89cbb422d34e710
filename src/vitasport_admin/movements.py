"""Append-only stock movement log.

Movements are only ever inserted. A wrong entry is corrected with a new
compensating movement, so the log stays a complete audit trail and the
balance can always be recomputed from it.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

import pydantic
from sqlalchemy import select

from . import models, schemas
from .balances import balance_of
from .errors import NotFoundError, ValidationError
from .store import LedgerStore, LedgerTransaction

logger = logging.getLogger(__name__)

MovementInput = Union[schemas.StockMovementCreate, Mapping[str, Any]]


def coerce_movement(movement: MovementInput) -> schemas.StockMovementCreate:
    """Validate *movement* at the edge; unknown kinds never reach the store."""

    if isinstance(movement, schemas.StockMovementCreate):
        if movement.quantity <= 0:
            raise ValidationError("quantity must be positive", field="quantity")
        return movement
    try:
        return schemas.StockMovementCreate.model_validate(dict(movement))
    except pydantic.ValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc


def append_movement(
    tx: LedgerTransaction,
    movement: schemas.StockMovementCreate,
    *,
    sale_id: Optional[int] = None,
) -> models.StockMovement:
    """Insert *movement* inside an open transaction and return the stored row."""

    row = models.StockMovement(
        product_id=movement.product_id,
        kind=movement.kind,
        quantity=movement.quantity,
        note=movement.note,
        created_by=movement.created_by,
        sale_id=sale_id,
    )
    return tx.add(row)


def list_movements(
    tx: LedgerTransaction,
    product_id: Optional[int] = None,
    limit: Optional[int] = None,
) -> list[models.StockMovement]:
    """Movements newest first, optionally for one product and bounded by *limit*."""

    statement = select(models.StockMovement)
    if product_id is not None:
        statement = statement.where(models.StockMovement.product_id == product_id)
    statement = statement.order_by(models.StockMovement.created_at.desc(), models.StockMovement.id.desc())
    if limit is not None:
        statement = statement.limit(limit)
    return tx.scalars(statement)


class MovementLog:
    """Public entry points for non-sale stock adjustments."""

    def __init__(self, store: LedgerStore):
        self._store = store

    def append(self, movement: MovementInput) -> int:
        payload = coerce_movement(movement)
        with self._store.transaction() as tx:
            row = append_movement(tx, payload)
            movement_id = row.id
        logger.info(
            "Stock movement %s recorded: product=%s %s %s",
            movement_id,
            payload.product_id,
            payload.kind.value,
            payload.quantity,
        )
        return movement_id

    def get(self, movement_id: int) -> Optional[models.StockMovement]:
        with self._store.reader() as tx:
            return tx.scalar(select(models.StockMovement).where(models.StockMovement.id == movement_id))

    def list_by_product(self, product_id: int) -> list[models.StockMovement]:
        with self._store.reader() as tx:
            return list_movements(tx, product_id)

    def list_movements(
        self, product_id: Optional[int] = None, limit: Optional[int] = None
    ) -> list[models.StockMovement]:
        if limit is not None and limit <= 0:
            raise ValidationError("limit must be positive", field="limit")
        with self._store.reader() as tx:
            return list_movements(tx, product_id, limit)

    def restock_to_max(self, product_id: int, *, created_by: Optional[int] = None) -> schemas.RestockResult:
        """Bring a product back up to its ``max_stock`` with a single inflow."""

        with self._store.transaction() as tx:
            product = tx.scalar(select(models.Product).where(models.Product.id == product_id))
            if product is None:
                raise NotFoundError("Product", product_id)
            if not product.max_stock or product.max_stock <= 0:
                raise ValidationError("product has no positive max_stock", field="max_stock")
            current = balance_of(tx, product_id)
            missing = product.max_stock - current
            if missing <= 0:
                return schemas.RestockResult(product_id=product_id, added=0, current_stock=current)
            row = append_movement(
                tx,
                schemas.StockMovementCreate(
                    product_id=product_id,
                    kind=models.MovementKind.INFLOW,
                    quantity=missing,
                    note="Restock to max",
                    created_by=created_by,
                ),
            )
            result = schemas.RestockResult(
                product_id=product_id, movement_id=row.id, added=missing, current_stock=current + missing
            )
        logger.info("Product %s restocked with %s units (movement %s)", product_id, missing, result.movement_id)
        return result
