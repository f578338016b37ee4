# Overview: Service-layer operations for categories.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..errors import CategoryNotFound, Conflict, DeletionBlocked
from ..models import Category, Product
from .concurrency import commit_or_raise

CATEGORY_MUTABLE_FIELDS = {"name", "color"}


def _ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Category).filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise Conflict("Category with this name already exists", details={"field": "name"})


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise CategoryNotFound("Category not found", details={"category_id": category_id})
    return category


def list_categories() -> list[dict]:
    """All categories by name, each with its product_count."""
    rows = (
        db.session.query(Category, func.count(Product.id).label("product_count"))
        .outerjoin(Product, Product.category_id == Category.id)
        .group_by(Category.id)
        .order_by(Category.name.asc())
        .all()
    )
    return [{**category.to_dict(), "product_count": int(count)} for category, count in rows]


def create_category(*, patch: dict) -> dict:
    _ensure_unique_name(patch["name"])

    category = Category(name=patch["name"], color=patch["color"])
    db.session.add(category)
    commit_or_raise("create category")
    return category.to_dict()


def update_category(*, category_id: int, patch: dict) -> dict:
    category = get_category(category_id)

    if "name" in patch and patch["name"].lower() != category.name.lower():
        _ensure_unique_name(patch["name"], exclude_id=category.id)

    for k, v in patch.items():
        if k in CATEGORY_MUTABLE_FIELDS:
            setattr(category, k, v)

    commit_or_raise("update category")
    return category.to_dict()


def delete_category(*, category_id: int) -> None:
    """Hard delete; refused while any product (active or not) still belongs to it."""
    category = get_category(category_id)

    product_count = db.session.query(func.count(Product.id)).filter(Product.category_id == category.id).scalar()
    if product_count:
        raise DeletionBlocked(
            "Cannot delete category with products",
            details={"category_id": category.id, "product_count": int(product_count)},
        )

    db.session.delete(category)
    commit_or_raise("delete category")
