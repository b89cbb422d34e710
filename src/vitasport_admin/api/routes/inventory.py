from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select

from ... import models
from ...balances import BalanceProjector
from ...config import get_settings
from ...errors import NotFoundError
from ...movements import MovementLog
from ...schemas import RestockResult, StockBalance, StockMovementCreate, StockMovementRead
from ...store import SqlLedgerStore
from ..deps import get_store

router = APIRouter(prefix="/inventory", tags=["inventory"])


def _require_product(store: SqlLedgerStore, product_id: int) -> None:
    with store.reader() as tx:
        if tx.scalar(select(models.Product.id).where(models.Product.id == product_id)) is None:
            raise NotFoundError("Product", product_id)


@router.post("/movements", response_model=StockMovementRead, status_code=status.HTTP_201_CREATED)
def record_movement(payload: StockMovementCreate, store: SqlLedgerStore = Depends(get_store)) -> StockMovementRead:
    _require_product(store, payload.product_id)
    log = MovementLog(store)
    movement_id = log.append(payload)
    return StockMovementRead.model_validate(log.get(movement_id))


@router.get("/movements", response_model=list[StockMovementRead])
def list_movements(
    product_id: Optional[int] = None,
    limit: int = Query(50, ge=1),
    store: SqlLedgerStore = Depends(get_store),
) -> list[StockMovementRead]:
    limit = min(limit, get_settings().max_page_size)
    rows = MovementLog(store).list_movements(product_id, limit)
    return [StockMovementRead.model_validate(row) for row in rows]


@router.get("/balances", response_model=list[StockBalance])
def list_balances(store: SqlLedgerStore = Depends(get_store)) -> list[StockBalance]:
    balances = BalanceProjector(store).all_balances()
    return [StockBalance(product_id=product_id, current_stock=stock) for product_id, stock in balances.items()]


@router.get("/balances/{product_id}", response_model=StockBalance)
def get_balance(product_id: int, store: SqlLedgerStore = Depends(get_store)) -> StockBalance:
    return StockBalance(product_id=product_id, current_stock=BalanceProjector(store).balance_of(product_id))


@router.post("/products/{product_id}/restock", response_model=RestockResult)
def restock_product(
    product_id: int,
    created_by: Optional[int] = None,
    store: SqlLedgerStore = Depends(get_store),
) -> RestockResult:
    return MovementLog(store).restock_to_max(product_id, created_by=created_by)
