# Overview: Explicit query filters for catalog and transaction listings.

"""
Each filter field is independently optional; None means "don't filter".
apply() composes only the fields that are set into the SQLAlchemy query.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_

from ..models import Product, Transaction


def _contains(column, needle: str):
    return column.ilike(f"%{needle}%")


@dataclass(frozen=True)
class ProductFilter:
    search: str | None = None
    category_id: int | None = None
    is_active: bool | None = None

    def apply(self, query):
        if self.search:
            query = query.filter(or_(
                _contains(Product.name, self.search),
                _contains(Product.sku, self.search),
                _contains(Product.barcode, self.search),
            ))
        if self.category_id is not None:
            query = query.filter(Product.category_id == self.category_id)
        if self.is_active is not None:
            query = query.filter(Product.is_active.is_(self.is_active))
        return query


@dataclass(frozen=True)
class TransactionFilter:
    search: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    payment_method: str | None = None
    status: str | None = None

    def apply(self, query):
        if self.search:
            query = query.filter(or_(
                _contains(Transaction.transaction_number, self.search),
                _contains(Transaction.customer_name, self.search),
                _contains(Transaction.customer_phone, self.search),
            ))
        # Inclusive on both ends
        if self.start is not None:
            query = query.filter(Transaction.created_at >= self.start)
        if self.end is not None:
            query = query.filter(Transaction.created_at <= self.end)
        if self.payment_method:
            query = query.filter(Transaction.payment_method == self.payment_method)
        if self.status:
            query = query.filter(Transaction.status == self.status)
        return query
