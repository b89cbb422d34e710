from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import export, reports
from ...config import get_settings
from ...schemas import (
    ExportResult,
    FinancialSummary,
    InventoryRow,
    ProfitabilityRow,
    SalesByProduct,
    SalesTotals,
    SalesTrendPoint,
)
from ..deps import get_db

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/sales/totals", response_model=SalesTotals)
def sales_totals(
    start: Optional[date] = None,
    end: Optional[date] = None,
    category: Optional[str] = None,
    db: Session = Depends(get_db),
) -> SalesTotals:
    return reports.sales_totals(db, start, end, category)


@router.get("/sales/by-product", response_model=list[SalesByProduct])
def sales_by_product(
    start: Optional[date] = None,
    end: Optional[date] = None,
    order_by: Literal["revenue", "qty"] = "revenue",
    category: Optional[str] = None,
    limit: int = Query(5, ge=1, le=100),
    db: Session = Depends(get_db),
) -> list[SalesByProduct]:
    return reports.sales_by_product(db, start, end, order_by, category, limit)


@router.get("/sales/trend", response_model=list[SalesTrendPoint])
def sales_trend(days: int = Query(7, ge=0, le=366), db: Session = Depends(get_db)) -> list[SalesTrendPoint]:
    return reports.sales_trend(db, days)


@router.get("/inventory", response_model=list[InventoryRow])
def inventory(db: Session = Depends(get_db)) -> list[InventoryRow]:
    return reports.inventory_rows(db, low_stock_threshold=get_settings().low_stock_threshold)


@router.get("/profitability", response_model=list[ProfitabilityRow])
def profitability(db: Session = Depends(get_db)) -> list[ProfitabilityRow]:
    return reports.profitability_rows(db)


@router.get("/financial", response_model=FinancialSummary)
def financial(
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
) -> FinancialSummary:
    return reports.financial_summary(db, start, end)


@router.post("/export", response_model=ExportResult)
def export_reports(db: Session = Depends(get_db)) -> ExportResult:
    settings = get_settings()
    paths = export.export_all(db, settings.reports_dir, low_stock_threshold=settings.low_stock_threshold)
    return ExportResult(paths=[str(path) for path in paths])
