from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ... import crud
from ...errors import NotFoundError
from ...schemas import ProductCreate, ProductRead, ProductUpdate
from ...store import SqlLedgerStore
from ..deps import get_db, get_store, pagination_params

router = APIRouter(prefix="/products", tags=["products"])


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
def create_product(payload: ProductCreate, store: SqlLedgerStore = Depends(get_store)) -> ProductRead:
    return ProductRead.model_validate(crud.create_product(store, payload))


@router.get("", response_model=list[ProductRead])
def list_products(
    pagination: tuple[int, int] = Depends(pagination_params),
    db: Session = Depends(get_db),
) -> list[ProductRead]:
    limit, offset = pagination
    return [ProductRead.model_validate(item) for item in crud.list_products(db, skip=offset, limit=limit)]


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: int, db: Session = Depends(get_db)) -> ProductRead:
    product = crud.get_product(db, product_id)
    if product is None:
        raise NotFoundError("Product", product_id)
    return ProductRead.model_validate(product)


@router.put("/{product_id}", response_model=ProductRead)
def update_product(product_id: int, payload: ProductUpdate, db: Session = Depends(get_db)) -> ProductRead:
    product = crud.get_product(db, product_id)
    if product is None:
        raise NotFoundError("Product", product_id)
    return ProductRead.model_validate(crud.update_product(db, product, payload))


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(product_id: int, store: SqlLedgerStore = Depends(get_store)) -> None:
    crud.delete_product(store, product_id)
