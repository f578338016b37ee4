# Overview: Dashboard statistics; read-only aggregation over transactions and products.

"""
Dashboard window semantics (authoritative)

- All dates are UTC. A window of N days is the N calendar days ending on
  the day of `now`: from 00:00:00 of (today - (N - 1)) through `now`.
- Sales figures count only status='completed' transactions in the window.
- Product counts, the low-stock alert and recent transactions ignore the window.
- Nothing here writes; two calls with no writes in between are identical.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from kasir.extensions import db
from kasir.models import Product, Transaction, TransactionItem
from kasir.models.sales import STATUS_COMPLETED
from kasir.time_utils import start_of_day, to_utc_z, trailing_days, utcnow

TOP_PRODUCTS_LIMIT = 10
LOW_STOCK_LIMIT = 10
RECENT_TRANSACTIONS_LIMIT = 10


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _completed_in_window(query, start: datetime, end: datetime):
    return query.filter(
        Transaction.status == STATUS_COMPLETED,
        Transaction.created_at >= start,
        Transaction.created_at <= end,
    )


def _percentage(part: int, whole: int) -> float:
    if not whole:
        return 0.0
    return round(part / whole * 100.0, 2)


def _overview(start: datetime, end: datetime) -> dict:
    total_sales, total_transactions = _completed_in_window(
        db.session.query(
            func.coalesce(func.sum(Transaction.total_cents), 0),
            func.count(Transaction.id),
        ),
        start,
        end,
    ).one()

    active = db.session.query(func.count(Product.id)).filter(Product.is_active.is_(True))
    total_products = active.scalar()
    low_stock_products = active.filter(Product.stock <= Product.min_stock).scalar()

    return {
        "total_sales_cents": int(total_sales or 0),
        "total_transactions": int(total_transactions or 0),
        "total_products": int(total_products or 0),
        "low_stock_products": int(low_stock_products or 0),
    }


def _sales_by_payment_method(start: datetime, end: datetime, grand_total: int) -> list[dict]:
    rows = _completed_in_window(
        db.session.query(
            Transaction.payment_method.label("payment_method"),
            func.coalesce(func.sum(Transaction.total_cents), 0).label("total_cents"),
            func.count(Transaction.id).label("count"),
        ),
        start,
        end,
    ).group_by(Transaction.payment_method).order_by(Transaction.payment_method.asc()).all()

    return [
        {
            "payment_method": row.payment_method,
            "total_cents": int(row.total_cents or 0),
            "count": int(row.count or 0),
            "percentage": _percentage(int(row.total_cents or 0), grand_total),
        }
        for row in rows
    ]


def _top_products(start: datetime, end: datetime) -> list[dict]:
    revenue = func.sum(TransactionItem.line_total_cents)
    rows = _completed_in_window(
        db.session.query(
            TransactionItem.product_id.label("product_id"),
            func.coalesce(func.sum(TransactionItem.quantity), 0).label("total_quantity"),
            func.coalesce(revenue, 0).label("total_revenue_cents"),
            func.count(func.distinct(TransactionItem.transaction_id)).label("transaction_count"),
        ).join(Transaction, TransactionItem.transaction_id == Transaction.id),
        start,
        end,
    ).group_by(TransactionItem.product_id).order_by(
        revenue.desc(),
        TransactionItem.product_id.asc(),
    ).limit(TOP_PRODUCTS_LIMIT).all()

    product_ids = [row.product_id for row in rows]
    products = {
        p.id: p
        for p in db.session.query(Product)
        .options(joinedload(Product.category))
        .filter(Product.id.in_(product_ids))
        .all()
    } if product_ids else {}

    return [
        {
            "product": products[row.product_id].to_projection(),
            "total_quantity": int(row.total_quantity or 0),
            "total_revenue_cents": int(row.total_revenue_cents or 0),
            "transaction_count": int(row.transaction_count or 0),
        }
        for row in rows
    ]


def _sales_trend(days: list, start: datetime, end: datetime) -> list[dict]:
    buckets = {day: {"sales_cents": 0, "transactions": 0} for day in days}

    rows = _completed_in_window(
        db.session.query(Transaction.created_at, Transaction.total_cents),
        start,
        end,
    ).all()

    for created_at, total_cents in rows:
        bucket = buckets.get(created_at.date())
        if bucket is None:
            continue
        bucket["sales_cents"] += int(total_cents or 0)
        bucket["transactions"] += 1

    return [
        {"date": day.isoformat(), **buckets[day]}
        for day in days
    ]


def _low_stock_query():
    return (
        db.session.query(Product)
        .options(joinedload(Product.category))
        .filter(Product.is_active.is_(True), Product.stock <= Product.min_stock)
        .order_by(Product.stock.asc(), Product.id.asc())
    )


def _low_stock_alert() -> list[dict]:
    products = _low_stock_query().limit(LOW_STOCK_LIMIT).all()
    return [
        {
            "id": p.id,
            "name": p.name,
            "sku": p.sku,
            "stock": p.stock,
            "min_stock": p.min_stock,
            "category": p.to_projection()["category"],
        }
        for p in products
    ]


def _recent_transactions() -> list[dict]:
    item_count = func.coalesce(func.sum(TransactionItem.quantity), 0)
    rows = (
        db.session.query(Transaction, item_count.label("item_count"))
        .outerjoin(TransactionItem, TransactionItem.transaction_id == Transaction.id)
        .filter(Transaction.status == STATUS_COMPLETED)
        .group_by(Transaction.id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(RECENT_TRANSACTIONS_LIMIT)
        .all()
    )
    return [
        {
            "id": txn.id,
            "transaction_number": txn.transaction_number,
            "customer_name": txn.customer_name,
            "total_cents": txn.total_cents,
            "payment_method": txn.payment_method,
            "created_at": to_utc_z(txn.created_at),
            "item_count": int(count or 0),
        }
        for txn, count in rows
    ]


def summarize(window_days: int, now: datetime | None = None) -> dict:
    """
    Dashboard statistics for the trailing `window_days` UTC calendar days.

    Returns overview, sales_by_payment_method, top_products, sales_trend
    (exactly window_days zero-filled buckets, ascending), low_stock_alert
    and recent_transactions.
    """
    if not isinstance(window_days, int) or isinstance(window_days, bool) or window_days < 1:
        raise ReportError("window_days must be a positive integer")

    end = now or utcnow()
    days = trailing_days(end.date(), window_days)
    start = start_of_day(days[0])

    overview = _overview(start, end)

    return {
        "window_days": window_days,
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "overview": overview,
        "sales_by_payment_method": _sales_by_payment_method(start, end, overview["total_sales_cents"]),
        "top_products": _top_products(start, end),
        "sales_trend": _sales_trend(days, start, end),
        "low_stock_alert": _low_stock_alert(),
        "recent_transactions": _recent_transactions(),
    }


def low_stock_products() -> list[Product]:
    """Every active low-stock product (no limit), lowest stock first."""
    return _low_stock_query().all()
