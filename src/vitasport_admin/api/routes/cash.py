from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ... import crud
from ...config import get_settings
from ...schemas import CashMovementCreate, CashMovementRead, CashSummary
from ..deps import get_db

router = APIRouter(prefix="/cash", tags=["cash"])


@router.post("/movements", response_model=CashMovementRead, status_code=status.HTTP_201_CREATED)
def create_cash_movement(payload: CashMovementCreate, db: Session = Depends(get_db)):
    return crud.create_cash_movement(db, payload)


@router.get("/movements", response_model=list[CashMovementRead])
def list_cash_movements(limit: int = Query(100, ge=1), db: Session = Depends(get_db)):
    return crud.list_cash_movements(db, limit=min(limit, get_settings().max_page_size))


@router.get("/summary", response_model=CashSummary)
def cash_summary(db: Session = Depends(get_db)) -> CashSummary:
    return crud.cash_summary(db)
