# Overview: Flask API routes for checkout and transactions; parses input and returns JSON responses.

"""Checkout, transaction history and status changes."""

from datetime import timedelta

from flask import Blueprint, current_app, jsonify, request

from ..errors import PosError, TransactionNotFound, ValidationFailed
from ..models.sales import PAYMENT_METHODS, TRANSACTION_STATUSES
from ..services import checkout_service
from ..services.filters import TransactionFilter
from ..time_utils import parse_iso_datetime, start_of_day
from ..validation import field_error, parse_checkout_request, parse_positive_int, parse_status_update

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _parse_date_arg(name: str, *, end_of_day: bool = False):
    raw = request.args.get(name)
    try:
        value = parse_iso_datetime(raw)
    except ValueError:
        raise ValidationFailed([field_error(name, "must be an ISO-8601 date or datetime")])
    # A bare date as upper bound covers that whole day
    if value is not None and end_of_day and len(raw.strip()) == 10:
        value = start_of_day(value.date() + timedelta(days=1)) - timedelta(microseconds=1)
    return value


def _parse_filters() -> TransactionFilter:
    payment_method = request.args.get("payment_method") or None
    if payment_method is not None and payment_method not in PAYMENT_METHODS:
        raise ValidationFailed([field_error("payment_method", f"must be one of: {', '.join(PAYMENT_METHODS)}")])

    status = request.args.get("status") or None
    if status is not None and status not in TRANSACTION_STATUSES:
        raise ValidationFailed([field_error("status", f"must be one of: {', '.join(TRANSACTION_STATUSES)}")])

    return TransactionFilter(
        search=(request.args.get("search") or "").strip() or None,
        start=_parse_date_arg("start"),
        end=_parse_date_arg("end", end_of_day=True),
        payment_method=payment_method,
        status=status,
    )


@transactions_bp.get("")
def list_transactions_route():
    """
    Transaction history, newest first.

    Query params: page, limit, search, start, end (ISO-8601, inclusive),
    payment_method, status
    """
    try:
        page = parse_positive_int(request.args.get("page"), name="page", default=1)
        limit = parse_positive_int(
            request.args.get("limit"),
            name="limit",
            default=current_app.config["TRANSACTIONS_PAGE_SIZE"],
            maximum=current_app.config["TRANSACTIONS_MAX_PAGE_SIZE"],
        )
        result = checkout_service.list_transactions(_parse_filters(), page=page, limit=limit)
        return jsonify(result), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("")
def checkout_route():
    """
    Submit a cart. Amounts are integer cents.

    Returns 201 with the persisted transaction, or 400 with a kind of
    ValidationFailed / ProductNotFound / ProductInactive / InsufficientStock.
    """
    try:
        cart = parse_checkout_request(
            request.get_json(silent=True),
            verify_totals=current_app.config["CHECKOUT_VERIFY_TOTALS"],
        )
        txn = checkout_service.submit_checkout(cart)
        return jsonify(txn.to_dict()), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/<int:transaction_id>")
def get_transaction_route(transaction_id: int):
    try:
        return jsonify(checkout_service.get_transaction(transaction_id).to_dict()), 200
    except TransactionNotFound as e:
        return jsonify(e.to_dict()), 404
    except Exception:
        current_app.logger.exception("Failed to fetch transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.patch("/<int:transaction_id>/status")
def set_status_route(transaction_id: int):
    """Body: {"status": "pending"|"completed"|"cancelled"}"""
    try:
        status = parse_status_update(request.get_json(silent=True))
        txn = checkout_service.set_transaction_status(transaction_id, status)
        return jsonify(txn.to_dict()), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update transaction")
        return jsonify({"error": "Internal server error"}), 500
