"""CSV exports of the reporting views."""

from __future__ import annotations

import csv
import logging
import time
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import crud, models, reports
from .movements import list_movements
from .store import SqlLedgerTransaction

logger = logging.getLogger(__name__)


def _money(value: Optional[float]) -> str:
    return "" if value is None else f"{value:.2f}"


def _cell(value: Any) -> Any:
    return "" if value is None else value


def _write(directory: Path, name: str, header: Sequence[str], rows: Iterable[Sequence[Any]]) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{name}_report_{int(time.time())}.csv"
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(header)
        count = 0
        for row in rows:
            writer.writerow([_cell(value) for value in row])
            count += 1
    logger.info("Exported %s rows to %s", count, path)
    return path


def export_sales(
    db: Session, directory: Path, start: Optional[date] = None, end: Optional[date] = None
) -> Path:
    sales = crud.list_sales(db, limit=None)
    if start is not None:
        sales = [sale for sale in sales if sale.sale_date.date() >= start]
    if end is not None:
        sales = [sale for sale in sales if sale.sale_date.date() <= end]
    return _write(
        directory,
        "sales",
        ["id", "product_id", "quantity", "sale_price", "discount", "channel", "sale_date", "created_by"],
        (
            [
                sale.id,
                sale.product_id,
                sale.quantity,
                _money(sale.sale_price),
                sale.discount,
                sale.channel,
                sale.sale_date.isoformat(),
                sale.created_by,
            ]
            for sale in sales
        ),
    )


def export_inventory(db: Session, directory: Path, *, low_stock_threshold: int = 5) -> Path:
    products = {product.id: product for product in db.scalars(select(models.Product))}
    rows = []
    for item in reports.inventory_rows(db, low_stock_threshold=low_stock_threshold):
        product = products[item.id]
        rows.append(
            [
                product.id,
                product.sku,
                product.name,
                _money(product.sale_price),
                _money(product.cost_price),
                product.brand,
                product.category,
                product.presentation,
                product.flavor,
                product.weight,
                product.expiry_date,
                product.lot_number,
                product.min_stock,
                product.max_stock,
                product.location,
                product.status,
                item.current_stock,
                None if item.margin_percent is None else f"{item.margin_percent:.0f}",
            ]
        )
    return _write(
        directory,
        "inventory",
        [
            "id", "sku", "name", "sale_price", "cost_price", "brand", "category", "presentation",
            "flavor", "weight", "expiry_date", "lot_number", "min_stock", "max_stock", "location",
            "status", "current_stock", "margin_percent",
        ],
        rows,
    )


def export_top_products(db: Session, directory: Path, limit: int = 50) -> Path:
    return _write(
        directory,
        "top_products",
        ["product_id", "sku", "name", "category", "total_qty", "total_revenue"],
        (
            [row["product_id"], row["sku"], row["name"], row["category"], row["total_qty"], _money(row["total_revenue"])]
            for row in reports.top_products(db, limit=limit)
        ),
    )


def export_stock_movements(db: Session, directory: Path) -> Path:
    movements = list_movements(SqlLedgerTransaction(db))
    return _write(
        directory,
        "stock_movements",
        ["id", "product_id", "type", "quantity", "note", "created_by", "created_at"],
        (
            [m.id, m.product_id, m.kind.value, m.quantity, m.note, m.created_by, m.created_at.isoformat()]
            for m in movements
        ),
    )


def export_profitability(db: Session, directory: Path) -> Path:
    return _write(
        directory,
        "profitability",
        [
            "product_id", "sku", "name", "unit_cost", "total_qty_sold", "total_revenue",
            "estimated_total_cost", "gross_profit", "margin_percent",
        ],
        (
            [
                row.product_id,
                row.sku,
                row.name,
                _money(row.unit_cost),
                row.total_qty_sold,
                _money(row.total_revenue),
                _money(row.estimated_total_cost),
                _money(row.gross_profit),
                None if row.margin_percent is None else f"{row.margin_percent:.0f}",
            ]
            for row in reports.profitability_rows(db)
        ),
    )


def export_financial(
    db: Session, directory: Path, start: Optional[date] = None, end: Optional[date] = None
) -> Path:
    summary = reports.financial_summary(db, start, end)
    return _write(
        directory,
        "financial",
        ["type", "label", "amount"],
        [
            ["income", "Sales income", _money(summary.sales_income)],
            ["income", "Other income", _money(summary.other_income)],
            ["expense", "Expenses", _money(summary.expense)],
            ["summary", "Total income", _money(summary.total_income)],
            ["summary", "Balance", _money(summary.balance)],
        ],
    )


def export_all(db: Session, directory: Path, *, low_stock_threshold: int = 5) -> list[Path]:
    """Write every report and return the created files."""

    return [
        export_inventory(db, directory, low_stock_threshold=low_stock_threshold),
        export_sales(db, directory),
        export_top_products(db, directory),
        export_stock_movements(db, directory),
        export_profitability(db, directory),
        export_financial(db, directory),
    ]
