"""
CLI command tests (flask system / flask stock).
"""

from clothstock.models import Category, Size, StockMovement, User
from clothstock.services.catalog_service import DEFAULT_CATEGORIES, DEFAULT_SIZES


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init"])
    assert first.exit_code == 0, first.output
    assert "Created operator" in first.output
    assert f"Seeded {len(DEFAULT_CATEGORIES)} categories, {len(DEFAULT_SIZES)} sizes" in first.output

    second = runner.invoke(args=["system", "init"])
    assert second.exit_code == 0, second.output
    assert "Operator already exists" in second.output
    assert "Seeded 0 categories, 0 sizes" in second.output

    assert db_session.query(User).count() == 1
    assert db_session.query(Category).count() == len(DEFAULT_CATEGORIES)
    assert db_session.query(Size).count() == len(DEFAULT_SIZES)


def test_system_init_rejects_weak_admin_password(app, db_session, monkeypatch):
    monkeypatch.setitem(app.config, "ADMIN_PASSWORD", "weak")
    result = app.test_cli_runner().invoke(args=["system", "init"])

    assert result.exit_code != 0
    assert "ADMIN_PASSWORD rejected" in result.output
    assert db_session.query(User).count() == 0


def test_stock_summary(app, db_session, product):
    result = app.test_cli_runner().invoke(args=["stock", "summary"])

    assert result.exit_code == 0, result.output
    assert "Units on hand:     15" in result.output
    assert "Stock value:       70.00" in result.output
    assert "Tops" in result.output


def test_stock_movements(app, db_session, black_m):
    runner = app.test_cli_runner()
    assert "No movements found." in runner.invoke(args=["stock", "movements"]).output

    db_session.add(StockMovement(variant_id=black_m.id, type="ADJUST", qty=-2, note="stocktake"))
    db_session.commit()

    result = runner.invoke(args=["stock", "movements", "--variant-id", str(black_m.id)])
    assert result.exit_code == 0, result.output
    assert "TEE01-Black-M" in result.output
    assert "stocktake" in result.output
