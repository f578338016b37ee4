"""
Checkout Service - cart to persisted transaction, and status changes.

WHY: A sale must either fully happen (transaction row, item rows, every
stock decrement) or not happen at all. The whole cart is validated before
the first write, and the decrement itself is guarded so a concurrent
checkout that got there first is caught at write time.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload, selectinload

from ..extensions import db
from ..errors import (
    InsufficientStock,
    PosError,
    ProductInactive,
    ProductNotFound,
    StoreFailure,
    TransactionNotFound,
    ValidationFailed,
)
from ..models import Product, Transaction, TransactionItem
from ..models.sales import STATUS_CANCELLED, STATUS_COMPLETED
from ..validation import CheckoutRequest, field_error
from .concurrency import begin_write_transaction, decrement_stock, increment_stock, lock_for_update
from .document_service import generate_transaction_number
from .filters import TransactionFilter


def _with_items(query):
    return query.options(
        selectinload(Transaction.items)
        .joinedload(TransactionItem.product)
        .joinedload(Product.category)
    )


def _load_products(product_ids: set[int]) -> dict[int, Product]:
    products = db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    return {p.id: p for p in products}


def _validate_cart(cart: CheckoutRequest, products: dict[int, Product]) -> None:
    """Check every line, in input order, before anything is written."""
    requested: dict[int, int] = {}
    for index, item in enumerate(cart.items):
        product = products.get(item.product_id)
        if product is None:
            raise ProductNotFound(
                f"Product with ID {item.product_id} not found",
                details={"item_index": index, "product_id": item.product_id},
            )
        if not product.is_active:
            raise ProductInactive(
                f"Product {product.name} is not active",
                details={"item_index": index, "product_id": product.id},
            )

        # Same product on two lines counts against one stock figure
        requested[product.id] = requested.get(product.id, 0) + item.quantity
        if product.stock < requested[product.id]:
            raise InsufficientStock(
                f"Insufficient stock for {product.name}. "
                f"Available: {product.stock}, Requested: {requested[product.id]}",
                details={
                    "item_index": index,
                    "product_id": product.id,
                    "available": product.stock,
                    "requested": requested[product.id],
                },
            )


def submit_checkout(cart: CheckoutRequest) -> Transaction:
    """
    Validate the cart against live stock, then create the transaction,
    its items and the stock decrements in a single database transaction.
    """
    if not cart.items:
        raise ValidationFailed([field_error("items", "at least one item is required")])

    try:
        begin_write_transaction()

        products = _load_products({item.product_id for item in cart.items})
        _validate_cart(cart, products)

        txn = Transaction(
            transaction_number=generate_transaction_number(),
            customer_name=cart.customer_name,
            customer_phone=cart.customer_phone,
            subtotal_cents=cart.subtotal_cents,
            discount_cents=cart.discount_cents,
            tax_cents=cart.tax_cents,
            total_cents=cart.total_cents,
            payment_method=cart.payment_method,
            amount_paid_cents=cart.amount_paid_cents,
            change_cents=cart.change_cents,
            status=STATUS_COMPLETED,
        )
        db.session.add(txn)
        db.session.flush()

        for index, item in enumerate(cart.items):
            db.session.add(TransactionItem(
                transaction_id=txn.id,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                line_total_cents=item.line_total_cents,
            ))
            if not decrement_stock(item.product_id, item.quantity):
                raise InsufficientStock(
                    f"Insufficient stock for {products[item.product_id].name}",
                    details={"item_index": index, "product_id": item.product_id, "requested": item.quantity},
                )

        db.session.commit()
    except PosError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Checkout failed in the database")
        raise StoreFailure("Failed to create transaction") from exc
    except Exception:
        # Release the write lock before the route logs it
        db.session.rollback()
        raise

    current_app.logger.info(
        "Checkout %s completed: %d line(s), total_cents=%d, payment=%s",
        txn.transaction_number, len(cart.items), txn.total_cents, txn.payment_method,
    )
    return get_transaction(txn.id)


def set_transaction_status(transaction_id: int, status: str) -> Transaction:
    """
    Change a transaction's status.

    completed -> cancelled also puts every sold quantity back on the shelf.
    Any other change is status-only, so cancelling twice restores once.
    """
    try:
        begin_write_transaction()

        txn = lock_for_update(
            db.session.query(Transaction).filter_by(id=transaction_id)
        ).first()
        if txn is None:
            raise TransactionNotFound("Transaction not found", details={"transaction_id": transaction_id})

        restored = txn.status == STATUS_COMPLETED and status == STATUS_CANCELLED
        if restored:
            for item in txn.items:
                increment_stock(item.product_id, item.quantity)

        txn.status = status
        db.session.commit()
    except PosError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Status update failed for transaction %s", transaction_id)
        raise StoreFailure("Failed to update transaction") from exc

    if restored:
        current_app.logger.info("Transaction %s cancelled, stock restored", txn.transaction_number)
    return get_transaction(transaction_id)


def get_transaction(transaction_id: int) -> Transaction:
    txn = _with_items(db.session.query(Transaction)).filter(Transaction.id == transaction_id).first()
    if txn is None:
        raise TransactionNotFound("Transaction not found", details={"transaction_id": transaction_id})
    return txn


def list_transactions(
    filters: TransactionFilter | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """Newest first, paginated."""
    filters = filters or TransactionFilter()
    base_query = filters.apply(db.session.query(Transaction))

    total = base_query.count()
    total_pages = (total + limit - 1) // limit if total > 0 else 1
    page = max(page, 1)

    transactions = (
        _with_items(base_query)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "transactions": [t.to_dict() for t in transactions],
        "pagination": {
            "page": page,
            "per_page": limit,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
