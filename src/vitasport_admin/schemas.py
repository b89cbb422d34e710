"""Pydantic schemas for API payloads."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import CashMovementKind, MovementKind, utcnow


def _naive_utc(value: datetime) -> datetime:
    """Store timestamps as naive UTC; aware values are converted first."""

    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


# Stock ledger


class StockMovementCreate(BaseModel):
    """A stock adjustment submitted outside of a sale."""

    product_id: int
    kind: MovementKind = Field(..., description="inflow or outflow (ingreso / egreso accepted)")
    quantity: int = Field(..., gt=0)
    note: Optional[str] = Field(None, max_length=500)
    created_by: Optional[int] = None

    @field_validator("kind", mode="before")
    @classmethod
    def _parse_kind(cls, value: object) -> MovementKind:
        return MovementKind.parse(value)


class StockMovementRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    kind: MovementKind
    quantity: int
    note: Optional[str] = None
    created_by: Optional[int] = None
    sale_id: Optional[int] = None
    created_at: datetime


class StockBalance(BaseModel):
    product_id: int
    current_stock: int


class RestockResult(BaseModel):
    product_id: int
    movement_id: Optional[int] = None
    added: int
    current_stock: int


# Sales


class SaleIntent(BaseModel):
    """A proposed sale, settled atomically against the stock balance."""

    product_id: int
    quantity: int = Field(..., gt=0)
    sale_price: float = Field(..., ge=0, description="Charged total for the line")
    discount: Optional[float] = Field(None, ge=0, le=100, description="Discount percentage")
    channel: Optional[str] = Field("Tienda", max_length=64)
    sale_date: datetime = Field(default_factory=utcnow)
    created_by: Optional[int] = None

    @field_validator("sale_date")
    @classmethod
    def _sale_date_utc(cls, value: datetime) -> datetime:
        return _naive_utc(value)


class SaleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    quantity: int
    sale_price: float
    discount: Optional[float] = None
    channel: Optional[str] = None
    sale_date: datetime
    created_by: Optional[int] = None


# Products


class ProductBase(BaseModel):
    sku: Optional[str] = Field(None, max_length=64)
    name: str = Field(..., min_length=1, max_length=200)
    sale_price: Optional[float] = Field(None, ge=0)
    cost_price: Optional[float] = Field(None, ge=0)
    brand: Optional[str] = Field(None, max_length=100)
    category: Optional[str] = Field(None, max_length=100)
    presentation: Optional[str] = Field(None, max_length=100)
    flavor: Optional[str] = Field(None, max_length=100)
    weight: Optional[str] = Field(None, max_length=50)
    image_path: Optional[str] = Field(None, max_length=255)
    expiry_date: Optional[date] = None
    lot_number: Optional[str] = Field(None, max_length=64)
    min_stock: Optional[int] = Field(None, ge=0)
    max_stock: Optional[int] = Field(None, ge=0)
    location: Optional[str] = Field(None, max_length=100)
    status: Optional[str] = Field(None, max_length=32)

    @field_validator("sku")
    @classmethod
    def _blank_sku(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)


class ProductCreate(ProductBase):
    initial_stock: int = Field(0, ge=0, description="Units received when the product is onboarded")
    created_by: Optional[int] = None


class ProductUpdate(BaseModel):
    sku: Optional[str] = Field(None, max_length=64)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    sale_price: Optional[float] = Field(None, ge=0)
    cost_price: Optional[float] = Field(None, ge=0)
    brand: Optional[str] = Field(None, max_length=100)
    category: Optional[str] = Field(None, max_length=100)
    presentation: Optional[str] = Field(None, max_length=100)
    flavor: Optional[str] = Field(None, max_length=100)
    weight: Optional[str] = Field(None, max_length=50)
    image_path: Optional[str] = Field(None, max_length=255)
    expiry_date: Optional[date] = None
    lot_number: Optional[str] = Field(None, max_length=64)
    min_stock: Optional[int] = Field(None, ge=0)
    max_stock: Optional[int] = Field(None, ge=0)
    location: Optional[str] = Field(None, max_length=100)
    status: Optional[str] = Field(None, max_length=32)

    @field_validator("sku")
    @classmethod
    def _blank_sku(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)


class ProductRead(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    expiry_date: Optional[str] = None


# Users


class UserBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=64)
    fullname: Optional[str] = Field(None, max_length=128)
    role: str = Field("Vendedor", min_length=1, max_length=64)


class UserCreate(UserBase):
    password: str = Field(..., min_length=4, max_length=128)


class UserUpdate(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=64)
    fullname: Optional[str] = Field(None, max_length=128)
    role: Optional[str] = Field(None, min_length=1, max_length=64)
    password: Optional[str] = Field(None, min_length=4, max_length=128)


class UserRead(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    updated_at: datetime


class LoginRequest(BaseModel):
    username: str
    password: str


# Cash


class CashMovementCreate(BaseModel):
    movement_type: CashMovementKind
    amount: float = Field(..., gt=0)
    category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    movement_date: datetime = Field(default_factory=utcnow)
    created_by: Optional[int] = None

    @field_validator("movement_type", mode="before")
    @classmethod
    def _parse_type(cls, value: object) -> CashMovementKind:
        return CashMovementKind.parse(value)

    @field_validator("movement_date")
    @classmethod
    def _movement_date_utc(cls, value: datetime) -> datetime:
        return _naive_utc(value)


class CashMovementRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    movement_type: CashMovementKind
    amount: float
    category: Optional[str] = None
    description: Optional[str] = None
    movement_date: datetime
    created_by: Optional[int] = None


class CashSummary(BaseModel):
    total_income: float
    total_expense: float
    balance: float


# Reports


class SalesTotals(BaseModel):
    total_units: int
    total_revenue: float


class SalesByProduct(BaseModel):
    product_id: int
    name: str
    total_qty: int
    total_revenue: float


class SalesTrendPoint(BaseModel):
    date: str
    sales_count: int
    total_revenue: float


class InventoryRow(BaseModel):
    id: int
    sku: Optional[str] = None
    name: str
    category: Optional[str] = None
    sale_price: Optional[float] = None
    cost_price: Optional[float] = None
    min_stock: Optional[int] = None
    max_stock: Optional[int] = None
    current_stock: int
    margin_percent: Optional[float] = None
    low_stock: bool


class ProfitabilityRow(BaseModel):
    product_id: int
    sku: str
    name: str
    unit_cost: float
    total_qty_sold: int
    total_revenue: float
    estimated_total_cost: float
    gross_profit: float
    margin_percent: Optional[float] = None


class FinancialSummary(BaseModel):
    sales_income: float
    other_income: float
    expense: float
    total_income: float
    balance: float


class ExportResult(BaseModel):
    paths: list[str]
