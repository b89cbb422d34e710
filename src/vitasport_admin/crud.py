"""Database access helpers for the back-office registries."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, schemas, security
from .errors import AuthenticationError, DuplicateError, NotFoundError, ProductInUseError, StorageError
from .movements import append_movement
from .store import SqlLedgerStore

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin"
DEFAULT_ADMIN_ROLE = "Administrador"


def _commit(db: Session, *, duplicate: Optional[DuplicateError] = None) -> None:
    """Commit *db*, mapping driver failures to the error taxonomy."""

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if duplicate is not None:
            raise duplicate from exc
        logger.error("Registry write rejected by the database", exc_info=True)
        raise StorageError.from_driver(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Registry write rolled back after a storage failure", exc_info=True)
        raise StorageError.from_driver(exc) from exc


# Users


def list_users(db: Session, *, skip: int = 0, limit: int = 50) -> list[models.User]:
    statement = select(models.User).order_by(models.User.id).offset(skip).limit(limit)
    return list(db.scalars(statement))


def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.get(models.User, user_id)


def get_user_by_username(db: Session, username: str) -> Optional[models.User]:
    statement = select(models.User).where(models.User.username == username)
    return db.scalars(statement).first()


def create_user(db: Session, payload: schemas.UserCreate) -> models.User:
    user = models.User(
        username=payload.username,
        fullname=payload.fullname,
        role=payload.role,
        password_hash=security.hash_password(payload.password),
    )
    db.add(user)
    _commit(db, duplicate=DuplicateError("Username", payload.username))
    db.refresh(user)
    logger.info("User %s created with role %s", user.username, user.role)
    return user


def update_user(db: Session, user: models.User, payload: schemas.UserUpdate) -> models.User:
    if payload.username is not None:
        user.username = payload.username
    if payload.fullname is not None:
        user.fullname = payload.fullname
    if payload.role is not None:
        user.role = payload.role
    if payload.password:
        user.password_hash = security.hash_password(payload.password)
    db.add(user)
    _commit(db, duplicate=DuplicateError("Username", payload.username))
    db.refresh(user)
    return user


def delete_user(db: Session, user: models.User) -> None:
    db.delete(user)
    _commit(db)


def authenticate_user(db: Session, username: str, password: str) -> models.User:
    """Return the user for valid credentials, upgrading stale hashes on the way."""

    user = get_user_by_username(db, username)
    if not user or not security.verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid username or password")
    if security.needs_rehash(user.password_hash):
        user.password_hash = security.hash_password(password)
        db.add(user)
        _commit(db)
        db.refresh(user)
    return user


def ensure_default_admin(db: Session) -> Optional[models.User]:
    """Create the ``admin`` user when the users table is empty."""

    if db.scalar(select(func.count()).select_from(models.User)):
        return None
    user = models.User(
        username=DEFAULT_ADMIN_USERNAME,
        fullname="System administrator",
        role=DEFAULT_ADMIN_ROLE,
        password_hash=security.hash_password(DEFAULT_ADMIN_PASSWORD),
    )
    db.add(user)
    db.flush()
    logger.info("Default administrator created")
    return user


# Products


def list_products(db: Session, *, skip: int = 0, limit: Optional[int] = 200) -> list[models.Product]:
    statement = select(models.Product).order_by(models.Product.id).offset(skip)
    if limit is not None:
        statement = statement.limit(limit)
    return list(db.scalars(statement))


def get_product(db: Session, product_id: int) -> Optional[models.Product]:
    return db.get(models.Product, product_id)


def _product_values(payload: schemas.ProductBase | schemas.ProductUpdate, *, exclude_unset: bool) -> dict:
    values = payload.model_dump(exclude_unset=exclude_unset, exclude={"initial_stock", "created_by"})
    if values.get("expiry_date") is not None:
        values["expiry_date"] = values["expiry_date"].isoformat()
    return values


def create_product(store: SqlLedgerStore, payload: schemas.ProductCreate) -> models.Product:
    """Register a product and book its initial stock in one ledger transaction."""

    with store.transaction() as tx:
        if payload.sku and tx.scalar(select(models.Product.id).where(models.Product.sku == payload.sku)):
            raise DuplicateError("SKU", payload.sku)
        product = tx.add(models.Product(**_product_values(payload, exclude_unset=False)))
        if payload.initial_stock > 0:
            append_movement(
                tx,
                schemas.StockMovementCreate(
                    product_id=product.id,
                    kind=models.MovementKind.INFLOW,
                    quantity=payload.initial_stock,
                    note="Initial stock",
                    created_by=payload.created_by,
                ),
            )
    logger.info("Product %s (%s) registered with %s units", product.id, product.name, payload.initial_stock)
    return product


def update_product(db: Session, product: models.Product, payload: schemas.ProductUpdate) -> models.Product:
    for key, value in _product_values(payload, exclude_unset=True).items():
        setattr(product, key, value)
    db.add(product)
    _commit(db, duplicate=DuplicateError("SKU", payload.sku))
    db.refresh(product)
    return product


def delete_product(store: SqlLedgerStore, product_id: int) -> None:
    """Delete a product that has never been stocked or sold."""

    with store.transaction() as tx:
        product = tx.scalar(select(models.Product).where(models.Product.id == product_id))
        if product is None:
            raise NotFoundError("Product", product_id)
        has_movements = tx.scalar(
            select(func.count()).select_from(models.StockMovement).where(models.StockMovement.product_id == product_id)
        )
        has_sales = tx.scalar(
            select(func.count()).select_from(models.Sale).where(models.Sale.product_id == product_id)
        )
        if has_movements or has_sales:
            raise ProductInUseError(product_id)
        tx.session.delete(product)


# Sales (read side; sales are written by the settlement engine only)


def list_sales(
    db: Session, *, product_id: Optional[int] = None, limit: Optional[int] = 100
) -> list[models.Sale]:
    statement = select(models.Sale)
    if product_id is not None:
        statement = statement.where(models.Sale.product_id == product_id)
    statement = statement.order_by(models.Sale.sale_date.desc(), models.Sale.id.desc())
    if limit is not None:
        statement = statement.limit(limit)
    return list(db.scalars(statement))


def get_sale(db: Session, sale_id: int) -> Optional[models.Sale]:
    return db.get(models.Sale, sale_id)


# Cash movements


def create_cash_movement(db: Session, payload: schemas.CashMovementCreate) -> models.CashMovement:
    movement = models.CashMovement(**payload.model_dump())
    db.add(movement)
    _commit(db)
    db.refresh(movement)
    return movement


def list_cash_movements(db: Session, *, limit: int = 100) -> list[models.CashMovement]:
    statement = (
        select(models.CashMovement)
        .order_by(models.CashMovement.movement_date.desc(), models.CashMovement.id.desc())
        .limit(limit)
    )
    return list(db.scalars(statement))


def cash_summary(db: Session) -> schemas.CashSummary:
    """Sales revenue plus other income, against recorded expenses."""

    sales_income = db.scalar(select(func.coalesce(func.sum(models.Sale.sale_price), 0.0))) or 0.0
    other_income = _cash_total(db, models.CashMovementKind.INCOME)
    expense = _cash_total(db, models.CashMovementKind.EXPENSE)
    income = float(sales_income) + other_income
    return schemas.CashSummary(total_income=income, total_expense=expense, balance=income - expense)


def _cash_total(db: Session, kind: models.CashMovementKind) -> float:
    statement = select(func.coalesce(func.sum(models.CashMovement.amount), 0.0)).where(
        models.CashMovement.movement_type == kind
    )
    return float(db.scalar(statement) or 0.0)
