"""Read-only aggregate views over sales, movements and cash."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from . import models, schemas
from .balances import all_balances
from .store import SqlLedgerTransaction

ORDER_COLUMNS = {"revenue": "total_revenue", "qty": "total_qty"}


def _sale_day():
    return func.date(models.Sale.sale_date)


def _filter_sales(statement, start: Optional[date], end: Optional[date], category: Optional[str]):
    if start is not None:
        statement = statement.where(_sale_day() >= start.isoformat())
    if end is not None:
        statement = statement.where(_sale_day() <= end.isoformat())
    if category:
        statement = statement.where(models.Product.category == category)
    return statement


def _margin(sale_price: Optional[float], cost_price: Optional[float]) -> Optional[float]:
    if sale_price and cost_price and sale_price > 0 and cost_price > 0:
        return float(round((sale_price - cost_price) / sale_price * 100))
    return None


def sales_totals(
    db: Session,
    start: Optional[date] = None,
    end: Optional[date] = None,
    category: Optional[str] = None,
) -> schemas.SalesTotals:
    statement = select(
        func.coalesce(func.sum(models.Sale.quantity), 0),
        func.coalesce(func.sum(models.Sale.sale_price), 0.0),
    ).outerjoin(models.Product, models.Product.id == models.Sale.product_id)
    units, revenue = db.execute(_filter_sales(statement, start, end, category)).one()
    return schemas.SalesTotals(total_units=int(units), total_revenue=float(revenue))


def sales_by_product(
    db: Session,
    start: Optional[date] = None,
    end: Optional[date] = None,
    order_by: str = "revenue",
    category: Optional[str] = None,
    limit: int = 5,
) -> list[schemas.SalesByProduct]:
    order_column = ORDER_COLUMNS.get(order_by, "total_revenue")
    statement = (
        select(
            models.Sale.product_id,
            func.coalesce(models.Product.name, "").label("name"),
            func.coalesce(func.sum(models.Sale.quantity), 0).label("total_qty"),
            func.coalesce(func.sum(models.Sale.sale_price), 0.0).label("total_revenue"),
        )
        .outerjoin(models.Product, models.Product.id == models.Sale.product_id)
        .group_by(models.Sale.product_id, models.Product.name)
    )
    statement = _filter_sales(statement, start, end, category)
    statement = statement.order_by(desc(order_column), models.Sale.product_id).limit(limit)
    return [
        schemas.SalesByProduct(
            product_id=row.product_id,
            name=row.name,
            total_qty=int(row.total_qty),
            total_revenue=float(row.total_revenue),
        )
        for row in db.execute(statement)
    ]


def sales_trend(db: Session, days: int = 7, today: Optional[date] = None) -> list[schemas.SalesTrendPoint]:
    """Daily sale count and revenue from ``today - days`` onwards."""

    since = (today or date.today()) - timedelta(days=max(days, 0))
    day = _sale_day().label("day")
    statement = (
        select(
            day,
            func.count(models.Sale.id).label("sales_count"),
            func.coalesce(func.sum(models.Sale.sale_price), 0.0).label("total_revenue"),
        )
        .where(_sale_day() >= since.isoformat())
        .group_by(day)
        .order_by(day)
    )
    return [
        schemas.SalesTrendPoint(date=row.day, sales_count=row.sales_count, total_revenue=float(row.total_revenue))
        for row in db.execute(statement)
    ]


def inventory_rows(db: Session, *, low_stock_threshold: int = 5) -> list[schemas.InventoryRow]:
    """Every product with its balance, margin and low-stock flag."""

    balances = all_balances(SqlLedgerTransaction(db))
    rows = []
    for product in db.scalars(select(models.Product).order_by(models.Product.id)):
        current = balances.get(product.id, 0)
        threshold = product.min_stock if product.min_stock is not None else low_stock_threshold
        rows.append(
            schemas.InventoryRow(
                id=product.id,
                sku=product.sku,
                name=product.name,
                category=product.category,
                sale_price=product.sale_price,
                cost_price=product.cost_price,
                min_stock=product.min_stock,
                max_stock=product.max_stock,
                current_stock=current,
                margin_percent=_margin(product.sale_price, product.cost_price),
                low_stock=current <= threshold,
            )
        )
    return rows


def top_products(db: Session, limit: int = 50) -> list[dict]:
    statement = (
        select(
            models.Sale.product_id,
            func.coalesce(models.Product.sku, "").label("sku"),
            func.coalesce(models.Product.name, "").label("name"),
            func.coalesce(models.Product.category, "").label("category"),
            func.coalesce(func.sum(models.Sale.quantity), 0).label("total_qty"),
            func.coalesce(func.sum(models.Sale.sale_price), 0.0).label("total_revenue"),
        )
        .outerjoin(models.Product, models.Product.id == models.Sale.product_id)
        .group_by(models.Sale.product_id, models.Product.sku, models.Product.name, models.Product.category)
        .order_by(desc("total_revenue"))
        .limit(limit)
    )
    return [dict(row._mapping) for row in db.execute(statement)]


def profitability_rows(db: Session) -> list[schemas.ProfitabilityRow]:
    statement = (
        select(
            models.Product.id,
            func.coalesce(models.Product.sku, "").label("sku"),
            models.Product.name,
            models.Product.cost_price,
            func.coalesce(func.sum(models.Sale.quantity), 0).label("total_qty"),
            func.coalesce(func.sum(models.Sale.sale_price), 0.0).label("total_revenue"),
        )
        .outerjoin(models.Sale, models.Sale.product_id == models.Product.id)
        .group_by(models.Product.id, models.Product.sku, models.Product.name, models.Product.cost_price)
        .order_by(desc("total_revenue"), models.Product.id)
    )
    rows = []
    for row in db.execute(statement):
        unit_cost = float(row.cost_price or 0.0)
        revenue = float(row.total_revenue)
        estimated_cost = unit_cost * int(row.total_qty)
        profit = revenue - estimated_cost
        rows.append(
            schemas.ProfitabilityRow(
                product_id=row.id,
                sku=row.sku,
                name=row.name,
                unit_cost=unit_cost,
                total_qty_sold=int(row.total_qty),
                total_revenue=revenue,
                estimated_total_cost=estimated_cost,
                gross_profit=profit,
                margin_percent=float(round(profit / revenue * 100)) if revenue > 0 else None,
            )
        )
    return rows


def financial_summary(
    db: Session, start: Optional[date] = None, end: Optional[date] = None
) -> schemas.FinancialSummary:
    sales = _filter_sales(select(func.coalesce(func.sum(models.Sale.sale_price), 0.0)), start, end, None)
    sales_income = float(db.scalar(sales) or 0.0)
    other_income = _cash_between(db, models.CashMovementKind.INCOME, start, end)
    expense = _cash_between(db, models.CashMovementKind.EXPENSE, start, end)
    total_income = sales_income + other_income
    return schemas.FinancialSummary(
        sales_income=sales_income,
        other_income=other_income,
        expense=expense,
        total_income=total_income,
        balance=total_income - expense,
    )


def _cash_between(
    db: Session, kind: models.CashMovementKind, start: Optional[date], end: Optional[date]
) -> float:
    day = func.date(models.CashMovement.movement_date)
    statement = select(func.coalesce(func.sum(models.CashMovement.amount), 0.0)).where(
        models.CashMovement.movement_type == kind
    )
    if start is not None:
        statement = statement.where(day >= start.isoformat())
    if end is not None:
        statement = statement.where(day <= end.isoformat())
    return float(db.scalar(statement) or 0.0)
