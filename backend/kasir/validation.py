from __future__ import annotations
from datetime import datetime
from urllib.parse import urlparse
from kasir.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from kasir.errors import ValidationFailed
from kasir.models.sales import PAYMENT_METHODS, TRANSACTION_STATUSES


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Ids, quantities and stock counts are 32-bit columns on most stores
MAX_STORE_INT = 2**31 - 1

# Cart totals must fit a signed 64-bit INTEGER
MAX_AMOUNT_CENTS = 2**63 - 1

STOCK_OPERATIONS = ("add", "subtract", "set")


class _FieldProblem(ValueError):
    """One bad field; collected into ValidationFailed by the caller."""


def field_error(name: str, message: str) -> dict:
    return {"field": name, "message": message}


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise _FieldProblem("must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise _FieldProblem("must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise _FieldProblem("must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise _FieldProblem("must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise _FieldProblem("must be an integer, not a decimal")
    raise _FieldProblem("must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        number = _coerce_int(value)
        if abs(number) > MAX_STORE_INT:
            raise _FieldProblem(f"must be between -{MAX_STORE_INT} and {MAX_STORE_INT}")
        return number

    # Booleans are strict: "false" must not become True
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise _FieldProblem("must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise _FieldProblem("must be an ISO-8601 datetime")
            if dt is None:
                raise _FieldProblem("must be an ISO-8601 datetime")
            return dt
        raise _FieldProblem("must be a datetime")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, str):
            raise _FieldProblem("must be a string")
        return value.strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    Every problem is collected; ValidationFailed carries the whole list.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationFailed([field_error("body", "must be a JSON object")], "Invalid JSON payload")

    errors: list[dict] = []

    if not partial:
        for name in sorted(policy.required_on_create):
            if name not in payload:
                errors.append(field_error(name, "is required"))

    cols = _columns_by_key(model)
    patch: dict = {}

    for k, raw in payload.items():
        # Reject unknown / non-writable fields
        if k not in policy.writable_fields or k not in cols:
            errors.append(field_error(k, "field not allowed"))
            continue
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                errors.append(field_error(k, "cannot be null"))
            else:
                patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except _FieldProblem as exc:
            errors.append(field_error(k, str(exc)))
            continue

        # Blank strings: required text must be non-empty, optional text becomes NULL
        if isinstance(col.type, (String, Text)) and isinstance(val, str) and val == "":
            if not col.nullable:
                errors.append(field_error(k, "cannot be blank"))
                continue
            val = None

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                errors.append(field_error(k, f"exceeds max length {col.type.length}"))
                continue

        patch[k] = val

    if errors:
        raise ValidationFailed(errors)
    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    errors: list[dict] = []

    if "price_cents" in patch:
        price = patch["price_cents"]
        if price is None or price <= 0:
            errors.append(field_error("price_cents", "must be > 0"))
        elif price > MAX_PRICE_CENTS:
            errors.append(field_error(
                "price_cents",
                f"cannot exceed {MAX_PRICE_CENTS} ({MAX_PRICE_CENTS / 100:,.2f})",
            ))

    if patch.get("cost_cents") is not None:
        cost = patch["cost_cents"]
        if cost <= 0:
            errors.append(field_error("cost_cents", "must be > 0"))
        elif cost > MAX_PRICE_CENTS:
            errors.append(field_error("cost_cents", f"cannot exceed {MAX_PRICE_CENTS}"))

    for name in ("stock", "min_stock"):
        if name in patch and patch[name] is not None and patch[name] < 0:
            errors.append(field_error(name, "cannot be negative"))

    if patch.get("image_url"):
        parsed = urlparse(patch["image_url"])
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append(field_error("image_url", "must be an http(s) URL"))

    if errors:
        raise ValidationFailed(errors)


# =============================================================================
# CHECKOUT INPUT
# =============================================================================


@dataclass(frozen=True)
class CheckoutItem:
    product_id: int
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass(frozen=True)
class CheckoutRequest:
    items: list[CheckoutItem]
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    payment_method: str
    amount_paid_cents: int
    change_cents: int
    customer_name: str | None = None
    customer_phone: str | None = None


def _read_int(
    payload: dict,
    name: str,
    errors: list[dict],
    *,
    minimum: int,
    maximum: int = MAX_STORE_INT,
    label: str | None = None,
) -> int | None:
    label = label or name
    if name not in payload or payload[name] is None:
        errors.append(field_error(label, "is required"))
        return None
    try:
        value = _coerce_int(payload[name])
    except _FieldProblem as exc:
        errors.append(field_error(label, str(exc)))
        return None
    if value < minimum:
        errors.append(field_error(label, f"must be >= {minimum}"))
        return None
    if value > maximum:
        errors.append(field_error(label, f"must be <= {maximum}"))
        return None
    return value


def _read_optional_str(payload: dict, name: str, errors: list[dict], max_length: int) -> str | None:
    raw = payload.get(name)
    if raw is None:
        return None
    if not isinstance(raw, str):
        errors.append(field_error(name, "must be a string"))
        return None
    value = raw.strip()
    if len(value) > max_length:
        errors.append(field_error(name, f"exceeds max length {max_length}"))
        return None
    return value or None


def parse_checkout_request(payload: Any, *, verify_totals: bool = True) -> CheckoutRequest:
    """
    Turn a raw checkout body into a CheckoutRequest or raise ValidationFailed.

    Amounts are integer cents. With verify_totals, the arithmetic the register
    performed is re-checked: subtotal = sum of lines, total = subtotal -
    discount + tax, amount paid covers the total, change = paid - total.
    """
    if not isinstance(payload, dict):
        raise ValidationFailed([field_error("body", "must be a JSON object")], "Invalid JSON payload")

    errors: list[dict] = []

    items: list[CheckoutItem] = []
    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        errors.append(field_error("items", "at least one item is required"))
    else:
        for index, raw in enumerate(raw_items):
            prefix = f"items[{index}]"
            if not isinstance(raw, dict):
                errors.append(field_error(prefix, "must be an object"))
                continue
            product_id = _read_int(raw, "product_id", errors, minimum=1, label=f"{prefix}.product_id")
            quantity = _read_int(raw, "quantity", errors, minimum=1, label=f"{prefix}.quantity")
            price = _read_int(
                raw, "unit_price_cents", errors,
                minimum=1, maximum=MAX_PRICE_CENTS, label=f"{prefix}.unit_price_cents",
            )
            if None not in (product_id, quantity, price):
                items.append(CheckoutItem(product_id=product_id, quantity=quantity, unit_price_cents=price))

    subtotal = _read_int(payload, "subtotal_cents", errors, minimum=1, maximum=MAX_AMOUNT_CENTS)
    discount = _read_int(payload, "discount_cents", errors, minimum=0, maximum=MAX_AMOUNT_CENTS)
    tax = _read_int(payload, "tax_cents", errors, minimum=0, maximum=MAX_AMOUNT_CENTS)
    total = _read_int(payload, "total_cents", errors, minimum=1, maximum=MAX_AMOUNT_CENTS)
    amount_paid = _read_int(payload, "amount_paid_cents", errors, minimum=1, maximum=MAX_AMOUNT_CENTS)
    change = _read_int(payload, "change_cents", errors, minimum=0, maximum=MAX_AMOUNT_CENTS)

    payment_method = payload.get("payment_method")
    if payment_method not in PAYMENT_METHODS:
        errors.append(field_error("payment_method", f"must be one of: {', '.join(PAYMENT_METHODS)}"))

    customer_name = _read_optional_str(payload, "customer_name", errors, 255)
    customer_phone = _read_optional_str(payload, "customer_phone", errors, 64)

    if errors:
        raise ValidationFailed(errors)

    if verify_totals:
        expected_subtotal = sum(item.line_total_cents for item in items)
        if subtotal != expected_subtotal:
            errors.append(field_error("subtotal_cents", f"does not match item lines ({expected_subtotal})"))
        if total != subtotal - discount + tax:
            errors.append(field_error("total_cents", "must equal subtotal - discount + tax"))
        if amount_paid < total:
            errors.append(field_error("amount_paid_cents", "is less than total"))
        elif change != amount_paid - total:
            errors.append(field_error("change_cents", "must equal amount paid - total"))
        if errors:
            raise ValidationFailed(errors)

    return CheckoutRequest(
        items=items,
        subtotal_cents=subtotal,
        discount_cents=discount,
        tax_cents=tax,
        total_cents=total,
        payment_method=payment_method,
        amount_paid_cents=amount_paid,
        change_cents=change,
        customer_name=customer_name,
        customer_phone=customer_phone,
    )


def parse_status_update(payload: Any) -> str:
    if not isinstance(payload, dict):
        raise ValidationFailed([field_error("body", "must be a JSON object")], "Invalid JSON payload")
    status = payload.get("status")
    if status not in TRANSACTION_STATUSES:
        raise ValidationFailed([field_error("status", f"must be one of: {', '.join(TRANSACTION_STATUSES)}")])
    return status


@dataclass(frozen=True)
class StockAdjustment:
    operation: str
    quantity: int
    reason: str | None = None


def parse_stock_adjustment(payload: Any) -> StockAdjustment:
    if not isinstance(payload, dict):
        raise ValidationFailed([field_error("body", "must be a JSON object")], "Invalid JSON payload")

    errors: list[dict] = []
    operation = payload.get("operation")
    if operation not in STOCK_OPERATIONS:
        errors.append(field_error("operation", f"must be one of: {', '.join(STOCK_OPERATIONS)}"))
    quantity = _read_int(payload, "quantity", errors, minimum=0)
    reason = _read_optional_str(payload, "reason", errors, 255)

    if errors:
        raise ValidationFailed(errors)
    return StockAdjustment(operation=operation, quantity=quantity, reason=reason)


def parse_positive_int(
    raw: str | None,
    *,
    name: str,
    default: int | None,
    maximum: int = MAX_STORE_INT,
) -> int | None:
    """Query-string integer, e.g. ?period=7 or ?page=2."""
    if raw is None or raw == "":
        return default
    try:
        value = _coerce_int(raw)
    except _FieldProblem as exc:
        raise ValidationFailed([field_error(name, str(exc))])
    if value < 1:
        raise ValidationFailed([field_error(name, "must be >= 1")])
    if value > maximum:
        raise ValidationFailed([field_error(name, f"must be <= {maximum}")])
    return value
