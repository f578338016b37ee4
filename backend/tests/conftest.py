"""
Pytest fixtures for the Kasir backend tests.

Provides an in-memory application, a wiped database per test, catalog
fixtures and helpers for building carts and recording sales.
"""

from datetime import datetime

import pytest
from kasir import create_app
from kasir.extensions import db
from kasir.models import Category, Product, Transaction, TransactionItem
from kasir.validation import CheckoutItem, CheckoutRequest


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'DEBUG',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(autouse=True)
def sequential_transaction_numbers(monkeypatch):
    """Several checkouts inside one second must not draw the same random suffix."""
    from kasir.services import checkout_service

    counter = {"n": 0}

    def _next(now=None, rng=None):
        counter["n"] += 1
        return f"TRX-20261018-120000-{counter['n']:03d}"

    monkeypatch.setattr(checkout_service, "generate_transaction_number", _next)
    return _next


@pytest.fixture(scope='function')
def drinks(db_session):
    category = Category(name="Minuman", color="#4ECDC4")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def snacks(db_session):
    category = Category(name="Snack", color="#45B7D1")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def make_product(db_session, drinks):
    """Factory: make_product(name=..., stock=..., price_cents=..., ...)."""
    counter = {"n": 0}

    def _make(name="Es Teh Manis", price_cents=5000, stock=100, min_stock=5,
              is_active=True, category=None, sku=None, barcode=None):
        counter["n"] += 1
        product = Product(
            name=name,
            price_cents=price_cents,
            cost_cents=2000,
            sku=sku or f"SKU-{counter['n']:03d}",
            barcode=barcode,
            stock=stock,
            min_stock=min_stock,
            is_active=is_active,
            category_id=(category or drinks).id,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def es_teh(make_product):
    return make_product(name="Es Teh Manis", price_cents=5000, stock=100)


@pytest.fixture(scope='function')
def kopi(make_product):
    return make_product(name="Kopi Hitam", price_cents=8000, stock=80)


def build_cart(lines, payment_method="cash", discount_cents=0, tax_cents=0, overpay_cents=0,
               customer_name="Budi"):
    """lines: [(product, quantity)] or [(product, quantity, unit_price_cents)]."""
    items = []
    for line in lines:
        product, quantity = line[0], line[1]
        price = line[2] if len(line) > 2 else product.price_cents
        items.append(CheckoutItem(product_id=product.id, quantity=quantity, unit_price_cents=price))
    subtotal = sum(i.line_total_cents for i in items)
    total = subtotal - discount_cents + tax_cents
    return CheckoutRequest(
        items=items,
        subtotal_cents=subtotal,
        discount_cents=discount_cents,
        tax_cents=tax_cents,
        total_cents=total,
        payment_method=payment_method,
        amount_paid_cents=total + overpay_cents,
        change_cents=overpay_cents,
        customer_name=customer_name,
    )


def cart_payload(lines, payment_method="cash", **kwargs) -> dict:
    """JSON body equivalent of build_cart, for route tests."""
    cart = build_cart(lines, payment_method=payment_method, **kwargs)
    return {
        "customer_name": cart.customer_name,
        "items": [
            {"product_id": i.product_id, "quantity": i.quantity, "unit_price_cents": i.unit_price_cents}
            for i in cart.items
        ],
        "subtotal_cents": cart.subtotal_cents,
        "discount_cents": cart.discount_cents,
        "tax_cents": cart.tax_cents,
        "total_cents": cart.total_cents,
        "payment_method": cart.payment_method,
        "amount_paid_cents": cart.amount_paid_cents,
        "change_cents": cart.change_cents,
    }


@pytest.fixture(scope='function')
def record_sale(db_session):
    """
    Insert a transaction directly (no stock movement), for reporting tests.

    record_sale([(product, qty)], created_at=..., payment_method=..., status=...)
    """
    counter = {"n": 0}

    def _record(lines, created_at: datetime, payment_method="cash", status="completed"):
        counter["n"] += 1
        total = sum(product.price_cents * qty for product, qty in lines)
        txn = Transaction(
            transaction_number=f"TRX-TEST-{counter['n']:04d}",
            customer_name="Test",
            subtotal_cents=total,
            discount_cents=0,
            tax_cents=0,
            total_cents=total,
            payment_method=payment_method,
            amount_paid_cents=total,
            change_cents=0,
            status=status,
            created_at=created_at,
        )
        db_session.add(txn)
        db_session.flush()
        for product, qty in lines:
            db_session.add(TransactionItem(
                transaction_id=txn.id,
                product_id=product.id,
                quantity=qty,
                unit_price_cents=product.price_cents,
                line_total_cents=product.price_cents * qty,
                created_at=created_at,
            ))
        db_session.commit()
        return txn

    return _record


def fresh(model, pk):
    """Re-read a row, bypassing the identity map."""
    db.session.expire_all()
    return db.session.get(model, pk)
