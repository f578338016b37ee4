from __future__ import annotations

from ..extensions import db
from kasir.time_utils import to_utc_z, utcnow


class Category(db.Model):
    """
    Product grouping shown as a colored tab at the register.

    Names are unique case-insensitively; the services layer checks
    lower(name) before insert/update.
    """
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    color = db.Column(db.String(32), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "color": self.color}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Product master data plus the live stock counter.

    STOCK: stock is mutated only through guarded UPDATE statements
    (see services/concurrency.py). The CHECK constraint is the last line:
    stock can never be stored negative.

    PRICES: Authoritative storage in cents (frontend may only format for display).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("min_stock >= 0", name="ck_products_min_stock_non_negative"),
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price_cents = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    barcode = db.Column(db.String(64), nullable=True, unique=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    image_url = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} stock={self.stock}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock

    def to_projection(self) -> dict:
        """Compact shape embedded in transaction items and reports."""
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "category": {
                "name": self.category.name,
                "color": self.category.color,
            } if self.category else None,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "category": self.category.to_summary() if self.category else None,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "sku": self.sku,
            "barcode": self.barcode,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "image_url": self.image_url,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
