from __future__ import annotations

from ..extensions import db
from kasir.time_utils import to_utc_z, utcnow

PAYMENT_METHODS = ("cash", "card", "ewallet", "transfer")

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
TRANSACTION_STATUSES = (STATUS_PENDING, STATUS_COMPLETED, STATUS_CANCELLED)


class Transaction(db.Model):
    """
    A completed checkout (a receipt).

    Created directly in "completed" status. Only status changes afterwards;
    completed -> cancelled is the one transition that touches stock.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("subtotal_cents >= 0", name="ck_transactions_subtotal_non_negative"),
        db.CheckConstraint("discount_cents >= 0", name="ck_transactions_discount_non_negative"),
        db.CheckConstraint("tax_cents >= 0", name="ck_transactions_tax_non_negative"),
        db.CheckConstraint("total_cents >= 0", name="ck_transactions_total_non_negative"),
        # Dashboard scans: completed transactions within a date window
        db.Index("ix_transactions_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "TRX-20261018-142501-042")
    transaction_number = db.Column(db.String(64), nullable=False, unique=True)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, index=True)
    amount_paid_cents = db.Column(db.Integer, nullable=False)
    change_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=STATUS_COMPLETED, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "TransactionItem",
        back_populates="transaction",
        order_by="TransactionItem.id",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} number={self.transaction_number!r} status={self.status}>"

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "amount_paid_cents": self.amount_paid_cents,
            "change_cents": self.change_cents,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransactionItem(db.Model):
    """Individual line on a transaction; the unit price is frozen at sale time."""
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transaction_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    transaction = db.relationship("Transaction", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "created_at": to_utc_z(self.created_at),
            "product": self.product.to_projection() if self.product else None,
        }
