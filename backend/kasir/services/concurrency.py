# Overview: Locking and guarded stock updates shared by the write paths.

from __future__ import annotations

from flask import current_app
from sqlalchemy import case, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..errors import Conflict, StoreFailure
from ..models import Product


def begin_write_transaction() -> None:
    """
    Open the write transaction up front.

    SQLite: BEGIN IMMEDIATE takes the RESERVED lock now, so two checkouts
    serialize instead of both reading stock and failing later on upgrade.
    Must run before any other statement in the session's transaction.
    Other dialects rely on lock_for_update on the rows that matter.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def decrement_stock(product_id: int, quantity: int) -> bool:
    """
    Guarded decrement: UPDATE ... SET stock = stock - q WHERE id = ? AND stock >= q.

    Returns False when no row matched, i.e. stock was too low at write time.
    """
    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def increment_stock(product_id: int, quantity: int) -> bool:
    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + quantity)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def subtract_stock_clamped(product_id: int, quantity: int) -> bool:
    """Manual correction: stock = max(0, stock - q) in one statement."""
    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=case((Product.stock > quantity, Product.stock - quantity), else_=0))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def commit_or_raise(action: str) -> None:
    """
    Commit the current session for a catalog write.

    A unique-constraint race (two admins saving the same SKU) becomes a
    Conflict; anything else is logged and surfaced as StoreFailure.
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        current_app.logger.warning("Integrity error while trying to %s: %s", action, exc.orig)
        raise Conflict(f"Failed to {action}: duplicate or invalid reference") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Database error while trying to %s", action)
        raise StoreFailure(f"Failed to {action}") from exc
