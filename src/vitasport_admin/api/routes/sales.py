from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ... import crud
from ...config import get_settings
from ...errors import NotFoundError
from ...schemas import SaleIntent, SaleRead
from ...settlement import SaleSettlementEngine
from ...store import SqlLedgerStore
from ..deps import get_db, get_store

router = APIRouter(prefix="/sales", tags=["sales"])


@router.post("", response_model=SaleRead, status_code=status.HTTP_201_CREATED)
def settle_sale(
    payload: SaleIntent,
    db: Session = Depends(get_db),
    store: SqlLedgerStore = Depends(get_store),
) -> SaleRead:
    sale_id = SaleSettlementEngine(store).settle_sale(payload)
    return SaleRead.model_validate(crud.get_sale(db, sale_id))


@router.get("", response_model=list[SaleRead])
def list_sales(
    product_id: Optional[int] = None,
    limit: int = Query(100, ge=1),
    db: Session = Depends(get_db),
) -> list[SaleRead]:
    limit = min(limit, get_settings().max_page_size)
    return [SaleRead.model_validate(sale) for sale in crud.list_sales(db, product_id=product_id, limit=limit)]


@router.get("/{sale_id}", response_model=SaleRead)
def get_sale(sale_id: int, db: Session = Depends(get_db)) -> SaleRead:
    sale = crud.get_sale(db, sale_id)
    if sale is None:
        raise NotFoundError("Sale", sale_id)
    return SaleRead.model_validate(sale)
