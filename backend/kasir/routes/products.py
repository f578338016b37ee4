# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/kasir/routes/products.py
"""
Product management routes.

- Listing accepts search, category_id and is_active query params.
- Deletion is refused (409) for products that have been sold.
- PATCH /<id>/stock is the manual stock correction endpoint; checkout and
  cancellation move stock on their own.
"""
from flask import Blueprint, current_app, jsonify, request

from ..errors import PosError, ProductNotFound, ValidationFailed
from ..models import Product
from ..services import products_service
from ..services.filters import ProductFilter
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_product,
    field_error,
    parse_positive_int,
    parse_stock_adjustment,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "price_cents", "cost_cents", "sku", "barcode",
        "stock", "min_stock", "is_active", "image_url", "category_id",
    },
    required_on_create={"name", "price_cents", "sku", "category_id"},
)

# NOTE: MAX_PRICE_CENTS is defined in validation.py and enforced by enforce_rules_product()

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _parse_bool_arg(name: str) -> bool | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    lowered = raw.lower()
    if lowered in ("true", "1"):
        return True
    if lowered in ("false", "0"):
        return False
    raise ValidationFailed([field_error(name, "must be true or false")])


@products_bp.get("")
def list_products():
    """
    List products ordered by name.

    Query params:
    - search: str (optional) - substring of name, SKU or barcode
    - category_id: int (optional)
    - is_active: true/false (optional)
    """
    try:
        filters = ProductFilter(
            search=(request.args.get("search") or "").strip() or None,
            category_id=parse_positive_int(request.args.get("category_id"), name="category_id", default=None),
            is_active=_parse_bool_arg("is_active"),
        )
        return jsonify(products_service.list_products(filters)), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return jsonify(products_service.get_product_detail(product_id)), 200
    except ProductNotFound as e:
        return jsonify(e.to_dict()), 404
    except Exception:
        current_app.logger.exception("Failed to fetch product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)  # Handles price validation including max check
        created = products_service.create_product(patch=patch)
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(created), 201


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except ProductNotFound as e:
        return jsonify(e.to_dict()), 404
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(updated), 200


@products_bp.patch("/<int:product_id>/stock")
def adjust_stock_route(product_id: int):
    """Body: {"operation": "add"|"subtract"|"set", "quantity": int, "reason": str?}"""
    payload = request.get_json(silent=True)

    try:
        adjustment = parse_stock_adjustment(payload)
        result = products_service.adjust_stock(product_id=product_id, adjustment=adjustment)
    except ProductNotFound as e:
        return jsonify(e.to_dict()), 404
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product stock")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(result), 200


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    try:
        deleted = products_service.delete_product(product_id=product_id)
    except ProductNotFound as e:
        return jsonify(e.to_dict()), 404
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"ok": True, "deleted_product": deleted}), 200
