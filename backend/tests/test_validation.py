# Overview: Pytest coverage for payload validation and checkout parsing.

import pytest

from kasir.errors import ValidationFailed
from kasir.models import Product
from kasir.validation import (
    MAX_PRICE_CENTS,
    MAX_STORE_INT,
    ModelValidationPolicy,
    enforce_rules_product,
    parse_checkout_request,
    parse_positive_int,
    parse_status_update,
    parse_stock_adjustment,
    validate_payload,
)

POLICY = ModelValidationPolicy(
    writable_fields={"name", "price_cents", "sku", "barcode", "is_active", "category_id", "description"},
    required_on_create={"name", "price_cents", "sku", "category_id"},
)


def _body(**overrides):
    body = {
        "customer_name": "Budi",
        "items": [{"product_id": 1, "quantity": 2, "unit_price_cents": 5000}],
        "subtotal_cents": 10000,
        "discount_cents": 0,
        "tax_cents": 0,
        "total_cents": 10000,
        "payment_method": "cash",
        "amount_paid_cents": 20000,
        "change_cents": 10000,
    }
    body.update(overrides)
    return body


def _fields(exc_info):
    return {problem["field"] for problem in exc_info.value.fields}


class TestCheckoutParsing:

    def test_valid_body(self):
        cart = parse_checkout_request(_body())

        assert cart.items[0].line_total_cents == 10000
        assert cart.change_cents == 10000
        assert cart.customer_phone is None

    def test_customer_name_is_optional(self):
        body = _body()
        del body["customer_name"]
        assert parse_checkout_request(body).customer_name is None

    def test_empty_items(self):
        with pytest.raises(ValidationFailed) as exc_info:
            parse_checkout_request(_body(items=[]))
        assert "items" in _fields(exc_info)

    def test_every_bad_line_is_reported(self):
        items = [
            {"product_id": 1, "quantity": 0, "unit_price_cents": 5000},
            {"product_id": "x", "quantity": 1, "unit_price_cents": 1.5},
        ]
        with pytest.raises(ValidationFailed) as exc_info:
            parse_checkout_request(_body(items=items))

        assert _fields(exc_info) == {"items[0].quantity", "items[1].product_id", "items[1].unit_price_cents"}

    def test_unknown_payment_method(self):
        with pytest.raises(ValidationFailed) as exc_info:
            parse_checkout_request(_body(payment_method="crypto"))
        assert _fields(exc_info) == {"payment_method"}

    def test_negative_discount(self):
        with pytest.raises(ValidationFailed) as exc_info:
            parse_checkout_request(_body(discount_cents=-1))
        assert "discount_cents" in _fields(exc_info)

    def test_subtotal_must_match_lines(self):
        with pytest.raises(ValidationFailed) as exc_info:
            parse_checkout_request(_body(subtotal_cents=9000, total_cents=9000, change_cents=11000))
        assert "subtotal_cents" in _fields(exc_info)

    def test_total_formula(self):
        body = _body(discount_cents=1000, tax_cents=500, total_cents=9500, change_cents=10500)
        assert parse_checkout_request(body).total_cents == 9500

        with pytest.raises(ValidationFailed) as exc_info:
            parse_checkout_request(_body(discount_cents=1000, total_cents=10000))
        assert "total_cents" in _fields(exc_info)

    def test_underpayment(self):
        with pytest.raises(ValidationFailed) as exc_info:
            parse_checkout_request(_body(amount_paid_cents=5000, change_cents=0))
        assert _fields(exc_info) == {"amount_paid_cents"}

    def test_wrong_change(self):
        with pytest.raises(ValidationFailed) as exc_info:
            parse_checkout_request(_body(change_cents=500))
        assert _fields(exc_info) == {"change_cents"}

    def test_verification_can_be_disabled(self):
        cart = parse_checkout_request(_body(subtotal_cents=1, total_cents=1), verify_totals=False)
        assert cart.total_cents == 1

    def test_not_an_object(self):
        with pytest.raises(ValidationFailed):
            parse_checkout_request(["items"])


class TestModelPayload:

    def test_create_requires_fields(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_payload(model=Product, payload={"name": "Tahu"}, policy=POLICY, partial=False)
        assert {"price_cents", "sku", "category_id"} <= _fields(exc_info)

    def test_partial_update_skips_required(self):
        patch = validate_payload(model=Product, payload={"name": "  Tahu Isi  "}, policy=POLICY, partial=True)
        assert patch == {"name": "Tahu Isi"}

    def test_rejects_non_writable_field(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_payload(model=Product, payload={"stock": 5}, policy=POLICY, partial=True)
        assert _fields(exc_info) == {"stock"}

    def test_strict_types(self):
        payload = {"price_cents": "12.5", "is_active": "false", "name": 7}
        with pytest.raises(ValidationFailed) as exc_info:
            validate_payload(model=Product, payload=payload, policy=POLICY, partial=True)
        assert _fields(exc_info) == {"price_cents", "is_active", "name"}

    def test_blank_optional_string_becomes_null(self):
        patch = validate_payload(model=Product, payload={"barcode": "  "}, policy=POLICY, partial=True)
        assert patch == {"barcode": None}

    def test_blank_required_string(self):
        with pytest.raises(ValidationFailed):
            validate_payload(model=Product, payload={"name": ""}, policy=POLICY, partial=True)

    def test_max_length(self):
        with pytest.raises(ValidationFailed):
            validate_payload(model=Product, payload={"sku": "X" * 65}, policy=POLICY, partial=True)


class TestProductRules:

    def test_price_must_be_positive(self):
        with pytest.raises(ValidationFailed):
            enforce_rules_product({"price_cents": 0})

    def test_negative_stock(self):
        with pytest.raises(ValidationFailed) as exc_info:
            enforce_rules_product({"stock": -1, "min_stock": -2})
        assert _fields(exc_info) == {"stock", "min_stock"}

    def test_image_url_scheme(self):
        enforce_rules_product({"image_url": "https://cdn.example.com/es-teh.png"})
        with pytest.raises(ValidationFailed):
            enforce_rules_product({"image_url": "javascript:alert(1)"})


class TestSmallParsers:

    def test_status(self):
        assert parse_status_update({"status": "cancelled"}) == "cancelled"
        with pytest.raises(ValidationFailed):
            parse_status_update({"status": "refunded"})

    def test_stock_adjustment(self):
        adjustment = parse_stock_adjustment({"operation": "add", "quantity": "12", "reason": " delivery "})
        assert (adjustment.operation, adjustment.quantity, adjustment.reason) == ("add", 12, "delivery")

        with pytest.raises(ValidationFailed):
            parse_stock_adjustment({"operation": "multiply", "quantity": 2})

    @pytest.mark.parametrize("raw, expected", [(None, 7), ("", 7), ("30", 30)])
    def test_positive_int(self, raw, expected):
        assert parse_positive_int(raw, name="period", default=7, maximum=366) == expected

    @pytest.mark.parametrize("raw", ["0", "-1", "abc", "367", "1.5"])
    def test_positive_int_rejects(self, raw):
        with pytest.raises(ValidationFailed):
            parse_positive_int(raw, name="period", default=7, maximum=366)


class TestIntegerRanges:

    def test_unit_price_above_max_price(self):
        items = [{"product_id": 1, "quantity": 1, "unit_price_cents": 10**19}]
        with pytest.raises(ValidationFailed) as exc_info:
            parse_checkout_request(_body(items=items), verify_totals=False)
        assert _fields(exc_info) == {"items[0].unit_price_cents"}

    def test_ids_and_quantities_fit_the_store(self):
        items = [{"product_id": 2**64, "quantity": 2**31, "unit_price_cents": 5000}]
        with pytest.raises(ValidationFailed) as exc_info:
            parse_checkout_request(_body(items=items), verify_totals=False)
        assert _fields(exc_info) == {"items[0].product_id", "items[0].quantity"}

    def test_totals_fit_a_64_bit_integer(self):
        with pytest.raises(ValidationFailed) as exc_info:
            parse_checkout_request(_body(total_cents=2**63, tax_cents=2**64), verify_totals=False)
        assert _fields(exc_info) == {"total_cents", "tax_cents"}

    def test_largest_accepted_values(self):
        items = [{"product_id": MAX_STORE_INT, "quantity": MAX_STORE_INT, "unit_price_cents": MAX_PRICE_CENTS}]
        cart = parse_checkout_request(_body(items=items), verify_totals=False)
        assert cart.items[0].quantity == MAX_STORE_INT

    def test_stock_adjustment_quantity(self):
        with pytest.raises(ValidationFailed) as exc_info:
            parse_stock_adjustment({"operation": "add", "quantity": 2**63})
        assert _fields(exc_info) == {"quantity"}

    def test_model_integer_columns(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_payload(model=Product, payload={"category_id": 2**40}, policy=POLICY, partial=True)
        assert _fields(exc_info) == {"category_id"}

    def test_query_int_has_a_ceiling(self):
        with pytest.raises(ValidationFailed):
            parse_positive_int(str(2**63), name="page", default=1)
