"""Typed errors raised by the ledger, the settlement engine and the registry.

Callers branch on the exception class (or its ``code``), never on the message.
The HTTP layer maps each class to a status code in ``app.create_app``.
"""

from __future__ import annotations

from typing import Any, Optional


class VitaSportError(Exception):
    """Base class for every domain error of the service."""

    code: str = "VITASPORT_ERROR"

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "detail": str(self)}


class ValidationError(VitaSportError):
    """A malformed intent, rejected before the store is touched."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

    @classmethod
    def from_pydantic(cls, exc: Any, *, skip_locations: tuple[str, ...] = ()) -> "ValidationError":
        """Build from a ``pydantic.ValidationError``, keeping its first failure.

        A leading location part listed in *skip_locations* (``body``, ``query``
        for request errors) is dropped from the reported field.
        """

        errors = exc.errors()
        if not errors:
            return cls(str(exc))
        first = errors[0]
        loc = list(first.get("loc", ()))
        if loc and loc[0] in skip_locations:
            loc = loc[1:]
        field = ".".join(str(part) for part in loc) or None
        return cls(first.get("msg", str(exc)), field=field)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        return data


class InsufficientStockError(VitaSportError):
    """A sale asked for more units than the balance at commit time."""

    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id}: available {available}, requested {requested}"
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(product_id=self.product_id, available=self.available, requested=self.requested)
        return data


class StorageError(VitaSportError):
    """The underlying store failed; the open transaction was rolled back."""

    code = "STORAGE_ERROR"

    @classmethod
    def from_driver(cls, exc: Exception, context: Optional[str] = None) -> "StorageError":
        """Keep the driver message only; SQL text and parameters stay in the logs."""

        message = str(getattr(exc, "orig", None) or type(exc).__name__)
        return cls(f"{context}: {message}" if context else message)


class ConcurrencyConflictError(VitaSportError):
    """An overlapping write was detected after validation.

    Never raised by :class:`~vitasport_admin.store.SqlLedgerStore`, which
    serializes every write; stores using optimistic checks raise it and the
    caller retries the whole settlement.
    """

    code = "CONCURRENCY_CONFLICT"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Concurrent write detected for product {product_id}")


class NotFoundError(VitaSportError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, key: Any):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")


class DuplicateError(VitaSportError):
    """A unique attribute (SKU, username) is already taken."""

    code = "DUPLICATE"

    def __init__(self, entity: str, key: Any):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} '{key}' already exists")


class ProductInUseError(VitaSportError):
    """Products with stock history or sales cannot be deleted."""

    code = "PRODUCT_IN_USE"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} has stock movements or sales and cannot be deleted")


class AuthenticationError(VitaSportError):
    code = "AUTHENTICATION_FAILED"
