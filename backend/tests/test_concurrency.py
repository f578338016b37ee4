# Overview: Threaded checkout and cancellation races against a file-backed database.

"""
Concurrent checkouts must never oversell: whatever interleaving happens,
stock ends at initial - sum(successful quantities) and never below zero.

Uses its own application on a temporary SQLite file so each thread gets a
real connection of its own.
"""

import itertools
import threading

import pytest

from kasir import create_app
from kasir.errors import InsufficientStock, StoreFailure
from kasir.extensions import db
from kasir.models import Category, Product, Transaction
from kasir.services import checkout_service
from kasir.validation import CheckoutItem, CheckoutRequest


@pytest.fixture
def race_app(tmp_path, monkeypatch):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'concurrency.sqlite3'}",
    })

    numbers = itertools.count(1)
    monkeypatch.setattr(
        checkout_service, "generate_transaction_number",
        lambda now=None, rng=None: f"TRX-20261018-120000-{next(numbers):03d}",
    )

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


def _seed_product(app, stock):
    with app.app_context():
        category = Category(name="Minuman", color="#4ECDC4")
        db.session.add(category)
        db.session.flush()
        product = Product(
            name="Es Teh Manis", price_cents=5000, cost_cents=2000, sku="RACE-1",
            stock=stock, min_stock=0, category_id=category.id,
        )
        db.session.add(product)
        db.session.commit()
        return product.id


def _cart(product_id, quantity):
    total = 5000 * quantity
    return CheckoutRequest(
        items=[CheckoutItem(product_id=product_id, quantity=quantity, unit_price_cents=5000)],
        subtotal_cents=total,
        discount_cents=0,
        tax_cents=0,
        total_cents=total,
        payment_method="cash",
        amount_paid_cents=total,
        change_cents=0,
    )


def _run_threads(app, targets):
    results = []
    lock = threading.Lock()

    def worker(fn):
        with app.app_context():
            try:
                fn()
                with lock:
                    results.append("ok")
            except Exception as exc:
                with lock:
                    results.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(fn,)) for fn in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_concurrent_checkouts_never_oversell(race_app):
    product_id = _seed_product(race_app, stock=10)

    results = _run_threads(
        race_app,
        [lambda: checkout_service.submit_checkout(_cart(product_id, 3)) for _ in range(5)],
    )

    successes = results.count("ok")
    failures = [r for r in results if r != "ok"]
    assert successes <= 3
    assert all(isinstance(f, (InsufficientStock, StoreFailure)) for f in failures)

    with race_app.app_context():
        stock = db.session.get(Product, product_id).stock
        recorded = db.session.query(Transaction).count()

    assert stock == 10 - 3 * successes
    assert stock >= 0
    assert recorded == successes


def test_concurrent_cancellation_restores_once(race_app):
    product_id = _seed_product(race_app, stock=10)
    with race_app.app_context():
        transaction_id = checkout_service.submit_checkout(_cart(product_id, 4)).id

    results = _run_threads(
        race_app,
        [lambda: checkout_service.set_transaction_status(transaction_id, "cancelled") for _ in range(4)],
    )

    assert all(r == "ok" or isinstance(r, StoreFailure) for r in results)
    with race_app.app_context():
        assert db.session.get(Product, product_id).stock == 10
        assert db.session.get(Transaction, transaction_id).status == "cancelled"
