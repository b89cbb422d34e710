"""Database models."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _AliasedKind(str, enum.Enum):
    """String enum that also accepts the Spanish labels used by the desktop shell."""

    @classmethod
    def aliases(cls) -> dict[str, "_AliasedKind"]:
        return {}

    @classmethod
    def parse(cls, value: object) -> "_AliasedKind":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if member.value == key:
                    return member
            alias = cls.aliases().get(key)
            if alias is not None:
                return alias
        allowed = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown {cls.__name__} {value!r}; expected one of: {allowed}")


class MovementKind(_AliasedKind):
    """Direction of a stock movement."""

    INFLOW = "inflow"
    OUTFLOW = "outflow"

    @classmethod
    def aliases(cls) -> dict[str, "MovementKind"]:
        return {"ingreso": cls.INFLOW, "egreso": cls.OUTFLOW}


class CashMovementKind(_AliasedKind):
    INCOME = "income"
    EXPENSE = "expense"

    @classmethod
    def aliases(cls) -> dict[str, "CashMovementKind"]:
        return {"ingreso": cls.INCOME, "egreso": cls.EXPENSE}


def _enum_column(enum_cls: type[enum.Enum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=16,
        values_callable=lambda members: [member.value for member in members],
    )


class User(Base):
    """A back-office user; ``id`` is the actor recorded as ``created_by``."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    fullname: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    role: Mapped[str] = mapped_column(String(64), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<User username={self.username!r} role={self.role!r}>"


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sku: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sale_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    cost_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    brand: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    presentation: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    flavor: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    weight: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    image_path: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    expiry_date: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    lot_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    min_stock: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_stock: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"


class StockMovement(Base):
    """One entry of the append-only stock log. Rows are never updated."""

    __tablename__ = "stock_movements"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False, index=True)
    kind: Mapped[MovementKind] = mapped_column(_enum_column(MovementKind, "movement_kind"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    sale_id: Mapped[Optional[int]] = mapped_column(ForeignKey("sales.id"), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<StockMovement id={self.id} product={self.product_id} {self.kind.value} {self.quantity}>"


class Sale(Base):
    """An immutable sale record, written only by the settlement engine."""

    __tablename__ = "sales"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_sales_quantity_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    sale_price: Mapped[float] = mapped_column(Float, nullable=False)
    discount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    channel: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    sale_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)


class CashMovement(Base):
    __tablename__ = "cash_movements"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_cash_movements_amount_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    movement_type: Mapped[CashMovementKind] = mapped_column(
        _enum_column(CashMovementKind, "cash_movement_kind"), nullable=False
    )
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    movement_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
