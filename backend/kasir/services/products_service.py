# backend/kasir/services/products_service.py
"""
Products Service

SKU and barcode are unique across the whole catalog. Products that have
appeared on a transaction can't be deleted (history keeps pointing at
them); deactivate them instead via is_active.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..errors import CategoryNotFound, Conflict, DeletionBlocked, ProductNotFound
from ..models import Category, Product, Transaction, TransactionItem
from ..validation import StockAdjustment
from kasir.time_utils import to_utc_z
from .concurrency import (
    begin_write_transaction,
    commit_or_raise,
    increment_stock,
    lock_for_update,
    subtract_stock_clamped,
)
from .filters import ProductFilter

PRODUCT_MUTABLE_FIELDS = {
    "name", "description", "price_cents", "cost_cents", "sku", "barcode",
    "stock", "min_stock", "is_active", "image_url", "category_id",
}

RECENT_SALES_LIMIT = 10


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_category_exists(category_id: int) -> None:
    if db.session.get(Category, category_id) is None:
        raise CategoryNotFound("Category not found", details={"category_id": category_id})


def _ensure_unique(field: str, value: str | None, exclude_id: int | None = None) -> None:
    if not value:
        return
    column = getattr(Product, field)
    query = db.session.query(Product.id).filter(column == value)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        label = "SKU" if field == "sku" else field.capitalize()
        raise Conflict(f"{label} already exists", details={"field": field})


def get_product(product_id: int) -> Product:
    product = (
        db.session.query(Product)
        .options(joinedload(Product.category))
        .filter(Product.id == product_id)
        .first()
    )
    if product is None:
        raise ProductNotFound("Product not found", details={"product_id": product_id})
    return product


def list_products(filters: ProductFilter | None = None) -> dict:
    """Catalog listing ordered by name, narrowed by the optional filter."""
    filters = filters or ProductFilter()
    products = (
        filters.apply(db.session.query(Product).options(joinedload(Product.category)))
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }


def get_product_detail(product_id: int) -> dict:
    """Product plus its most recent sale lines."""
    product = get_product(product_id)

    recent = (
        db.session.query(TransactionItem, Transaction)
        .join(Transaction, TransactionItem.transaction_id == Transaction.id)
        .filter(TransactionItem.product_id == product.id)
        .order_by(TransactionItem.created_at.desc(), TransactionItem.id.desc())
        .limit(RECENT_SALES_LIMIT)
        .all()
    )

    data = product.to_dict()
    data["recent_sales"] = [
        {
            "id": item.id,
            "quantity": item.quantity,
            "unit_price_cents": item.unit_price_cents,
            "line_total_cents": item.line_total_cents,
            "transaction": {
                "id": txn.id,
                "transaction_number": txn.transaction_number,
                "status": txn.status,
                "created_at": to_utc_z(txn.created_at),
            },
        }
        for item, txn in recent
    ]
    return data


def create_product(*, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        Conflict: SKU or barcode already used
        CategoryNotFound: category_id doesn't exist
    """
    _ensure_unique("sku", patch.get("sku"))
    _ensure_unique("barcode", patch.get("barcode"))
    _ensure_category_exists(patch["category_id"])

    p = Product()
    apply_product_patch(p, patch)

    db.session.add(p)
    commit_or_raise("create product")
    current_app.logger.info("Created product id=%s sku=%s", p.id, p.sku)
    return get_product(p.id).to_dict()


def update_product(*, product_id: int, patch: dict) -> dict:
    p = get_product(product_id)

    if "sku" in patch and patch["sku"] != p.sku:
        _ensure_unique("sku", patch["sku"], exclude_id=p.id)
    if "barcode" in patch and patch["barcode"] != p.barcode:
        _ensure_unique("barcode", patch["barcode"], exclude_id=p.id)
    if "category_id" in patch and patch["category_id"] != p.category_id:
        _ensure_category_exists(patch["category_id"])

    apply_product_patch(p, patch)
    commit_or_raise("update product")
    return get_product(product_id).to_dict()


def delete_product(*, product_id: int) -> dict:
    """Hard delete, refused once the product has been sold."""
    p = get_product(product_id)

    sold = (
        db.session.query(func.count(TransactionItem.id))
        .filter(TransactionItem.product_id == p.id)
        .scalar()
    )
    if sold:
        raise DeletionBlocked(
            "Cannot delete product that has been sold",
            details={"product_id": p.id, "transaction_items": int(sold)},
        )

    snapshot = p.to_dict()
    db.session.delete(p)
    commit_or_raise("delete product")
    current_app.logger.info("Deleted product id=%s sku=%s", snapshot["id"], snapshot["sku"])
    return snapshot


def adjust_stock(*, product_id: int, adjustment: StockAdjustment) -> dict:
    """
    Manual stock correction (delivery, shrinkage, recount).

    add: stock + q; subtract: max(0, stock - q); set: q.
    """
    begin_write_transaction()
    p = lock_for_update(db.session.query(Product).filter(Product.id == product_id)).first()
    if p is None:
        db.session.rollback()
        raise ProductNotFound("Product not found", details={"product_id": product_id})

    previous_stock = p.stock

    if adjustment.operation == "add":
        increment_stock(p.id, adjustment.quantity)
    elif adjustment.operation == "subtract":
        subtract_stock_clamped(p.id, adjustment.quantity)
    else:
        p.stock = adjustment.quantity

    commit_or_raise("update product stock")

    product = get_product(product_id)
    current_app.logger.info(
        "Stock %s for product id=%s: %s -> %s (%s)",
        adjustment.operation, product.id, previous_stock, product.stock, adjustment.reason or "no reason",
    )
    return {
        "product": product.to_dict(),
        "previous_stock": previous_stock,
        "new_stock": product.stock,
        "operation": adjustment.operation,
        "reason": adjustment.reason,
    }
