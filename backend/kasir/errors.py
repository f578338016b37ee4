# Overview: Domain error taxonomy shared by services and routes.

"""
Every failure a caller can see is a PosError subclass.

- kind: machine-readable name surfaced in the JSON body
- status_code: HTTP status the routes answer with
- details: structured context (field errors, product ids, stock levels)
"""

from __future__ import annotations


class PosError(Exception):
    """Base for all business and input errors."""

    kind = "Error"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind, "details": self.details}


class ValidationFailed(PosError):
    """Structurally invalid payload; details["fields"] lists every problem."""

    kind = "ValidationFailed"

    def __init__(self, fields: list[dict], message: str = "Validation failed"):
        super().__init__(message, details={"fields": fields})
        self.fields = fields


class ProductNotFound(PosError):
    kind = "ProductNotFound"


class ProductInactive(PosError):
    kind = "ProductInactive"


class InsufficientStock(PosError):
    kind = "InsufficientStock"


class CategoryNotFound(PosError):
    kind = "CategoryNotFound"


class TransactionNotFound(PosError):
    kind = "TransactionNotFound"
    status_code = 404


class Conflict(PosError):
    """Duplicate SKU, barcode or category name."""

    kind = "Conflict"
    status_code = 409


class DeletionBlocked(PosError):
    """Row is still referenced (category with products, product already sold)."""

    kind = "DeletionBlocked"
    status_code = 409


class StoreFailure(PosError):
    """Opaque persistence failure; the cause is logged, never returned."""

    kind = "StoreFailure"
    status_code = 500
