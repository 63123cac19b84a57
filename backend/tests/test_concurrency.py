"""
Concurrency tests against a file-backed SQLite database.

Verifies:
- Two concurrent sales cannot oversell the same variant
- Concurrent sales on the same day never share a document number
- Concurrent receipts revalue the cost price as if applied one after another
- Concurrent returns cannot both claim the remaining returnable quantity
- run_in_transaction commits on success and rolls back on failure

Each worker thread runs in its own app context (its own scoped session),
as concurrent requests would.
"""

import threading

import pytest

from clothstock import create_app
from clothstock.extensions import db
from clothstock.models import Category, Return, Sale, Variant
from clothstock.services import inventory_service, ledger_service, return_service, sales_service
from clothstock.services.concurrency import run_in_transaction

from conftest import TEST_CONFIG, make_product


@pytest.fixture(params=["counter", "count"])
def file_app(request, tmp_path):
    config = dict(TEST_CONFIG)
    config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{tmp_path / 'concurrency.db'}"
    config["DOCUMENT_NUMBER_STRATEGY"] = request.param
    app = create_app(config)

    with app.app_context():
        db.create_all()
        product = make_product(
            db.session,
            base_code="RUSH1",
            name="Limited Sneaker",
            variants=[("White", "42", 10, 3000, 9900)],
        )
        app.config["RUSH_VARIANT_ID"] = db.session.query(Variant).filter_by(product_id=product.id).one().id
        db.session.remove()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _run_workers(app, workers):
    results = []
    lock = threading.Lock()

    def _wrap(target):
        def _run():
            with app.app_context():
                try:
                    outcome = target()
                except Exception as exc:
                    outcome = exc
                finally:
                    db.session.remove()
                with lock:
                    results.append(outcome)
        return _run

    threads = [threading.Thread(target=_wrap(w)) for w in workers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_concurrent_sales_cannot_oversell(file_app):
    variant_id = file_app.config["RUSH_VARIANT_ID"]

    def sell_eight():
        sale = sales_service.create_sale([{"variant_id": variant_id, "qty": 8, "unit_price_cents": 9900}])
        return sale.sale_no

    results = _run_workers(file_app, [sell_eight, sell_eight])

    sold = [r for r in results if isinstance(r, str)]
    rejected = [r for r in results if isinstance(r, sales_service.SaleError)]
    assert len(sold) == 1
    assert len(rejected) == 1
    assert rejected[0].code == "INSUFFICIENT_STOCK"

    with file_app.app_context():
        assert ledger_service.get_current_quantity(variant_id) == 2
        assert db.session.query(Sale).count() == 1


def test_concurrent_sales_get_unique_numbers(file_app):
    variant_id = file_app.config["RUSH_VARIANT_ID"]

    def sell_one():
        sale = sales_service.create_sale(
            [{"variant_id": variant_id, "qty": 1, "unit_price_cents": 9900}],
            sold_at="2024-01-15T10:00:00Z",
        )
        return sale.sale_no

    results = _run_workers(file_app, [sell_one] * 6)

    errors = [r for r in results if isinstance(r, Exception)]
    assert not errors
    assert len(set(results)) == 6
    assert sorted(results) == [f"S20240115-{n:04d}" for n in range(1, 7)]

    with file_app.app_context():
        assert ledger_service.get_current_quantity(variant_id) == 4


def test_concurrent_receipts_keep_sequential_cost(file_app):
    variant_id = file_app.config["RUSH_VARIANT_ID"]

    def receive_ten():
        movement = inventory_service.receive_stock(variant_id=variant_id, qty=10, unit_cost_cents=6000)
        return movement.id

    results = _run_workers(file_app, [receive_ten] * 4)

    assert not [r for r in results if isinstance(r, Exception)]
    with file_app.app_context():
        assert ledger_service.get_current_quantity(variant_id) == 50
        # 10@3000 then four 10@6000 receipts: 4500, 5000, 5250, 5400
        assert db.session.get(Variant, variant_id).cost_price_cents == 5400


def test_concurrent_returns_cannot_exceed_sale(file_app):
    variant_id = file_app.config["RUSH_VARIANT_ID"]
    with file_app.app_context():
        sale_id = sales_service.create_sale([{"variant_id": variant_id, "qty": 4, "unit_price_cents": 9900}]).id
        db.session.remove()

    def return_all_four():
        ret = return_service.create_return(
            sale_id, [{"variant_id": variant_id, "qty": 4, "unit_price_cents": 9900}]
        )
        return ret.return_no

    results = _run_workers(file_app, [return_all_four, return_all_four])

    accepted = [r for r in results if isinstance(r, str)]
    rejected = [r for r in results if isinstance(r, return_service.ReturnError)]
    assert len(accepted) == 1
    assert len(rejected) == 1
    assert rejected[0].code == "OVER_RETURN"

    with file_app.app_context():
        assert db.session.query(Return).count() == 1
        assert ledger_service.get_current_quantity(variant_id) == 10


class TestRunInTransaction:

    def test_commits_after_open_read(self, db_session):
        # an implicit read transaction is already open when the unit starts
        db_session.query(Category).count()

        def _op():
            cat = Category(name="Outerwear", is_active=True)
            db_session.add(cat)
            db_session.flush()
            return cat.id

        cat_id = run_in_transaction(_op)

        db_session.rollback()
        assert db_session.get(Category, cat_id).name == "Outerwear"

    def test_failure_rolls_back_whole_unit(self, db_session):
        def _op():
            db_session.add(Category(name="Knitwear", is_active=True))
            db_session.flush()
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            run_in_transaction(_op)

        assert db_session.query(Category).filter_by(name="Knitwear").count() == 0

    def test_sale_through_unit_of_work(self, db_session, black_m):
        sale_id = sales_service.create_sale([{"variant_id": black_m.id, "qty": 1, "unit_price_cents": 1000}]).id

        db_session.rollback()
        assert db_session.query(Sale).filter_by(id=sale_id).count() == 1
        assert ledger_service.get_current_quantity(black_m.id) == 9
