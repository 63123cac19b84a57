"""
Reporting tests.

Verifies:
- Sales report revenue / cost / profit per variant and per product, net of returns
- Daily buckets on the business date
- Top products ranking and parameter validation
"""

import pytest

from clothstock.services import reporting_service, return_service, sales_service
from clothstock.services.reporting_service import ReportError

from conftest import make_product


RANGE = {"start": "2024-01-01", "end": "2024-01-31"}


@pytest.fixture
def january(db_session, black_m, white_l):
    """Two sales and one return inside January, one sale in February."""
    first = sales_service.create_sale(
        [
            {"variant_id": black_m.id, "qty": 3, "unit_price_cents": 1200},
            {"variant_id": white_l.id, "qty": 1, "unit_price_cents": 1000},
        ],
        sold_at="2024-01-10T10:00:00Z",
    )
    sales_service.create_sale(
        [{"variant_id": black_m.id, "qty": 1, "unit_price_cents": 1100}],
        sold_at="2024-01-11T15:00:00Z",
    )
    return_service.create_return(
        first.id,
        [{"variant_id": black_m.id, "qty": 1, "unit_price_cents": 1200}],
        returned_at="2024-01-12T09:00:00Z",
    )
    sales_service.create_sale(
        [{"variant_id": white_l.id, "qty": 2, "unit_price_cents": 1000}],
        sold_at="2024-02-02T10:00:00Z",
    )
    return first


class TestSalesReport:

    def test_by_variant_net_of_returns(self, db_session, january, black_m, white_l):
        report = reporting_service.sales_report(**RANGE)

        rows = {r["variant_id"]: r for r in report["rows"]}
        black = rows[black_m.id]
        # 3*12.00 + 1*11.00 - 1*12.00
        assert black["sold_qty"] == 3
        assert black["revenue_cents"] == 3500
        assert black["cost_cents"] == 3 * 500
        assert black["profit_cents"] == 2000
        assert black["margin"] == round(2000 / 3500, 4)
        assert (black["color"], black["size"]) == ("Black", "M")

        white = rows[white_l.id]
        assert (white["sold_qty"], white["revenue_cents"], white["cost_cents"]) == (1, 1000, 400)

        assert [r["variant_id"] for r in report["rows"]] == [black_m.id, white_l.id]
        assert report["totals"] == {
            "sold_qty": 4,
            "revenue_cents": 4500,
            "cost_cents": 1900,
            "profit_cents": 2600,
            "margin": round(2600 / 4500, 4),
        }
        assert report["group_by"] == "variant"
        assert report["start"] == "2024-01-01T00:00:00Z"

    def test_by_product(self, db_session, january, product):
        report = reporting_service.sales_report(group_by="product", **RANGE)

        assert len(report["rows"]) == 1
        row = report["rows"][0]
        assert row["product_id"] == product.id
        assert row["base_code"] == "TEE01"
        assert row["revenue_cents"] == 4500
        assert "variant_id" not in row

    def test_empty_range(self, db_session, january):
        report = reporting_service.sales_report(start="2023-01-01", end="2023-01-31")
        assert report["rows"] == []
        assert report["totals"]["margin"] == 0.0

    @pytest.mark.parametrize("params", [
        {"group_by": "store"},
        {"start": "01/02/2024"},
        {"start": "2024-02-01", "end": "2024-01-01"},
    ])
    def test_bad_params(self, db_session, params):
        with pytest.raises(ReportError) as exc:
            reporting_service.sales_report(**params)
        assert exc.value.code == "VALIDATION_ERROR"


class TestDailyReport:

    def test_buckets_by_day(self, db_session, january):
        days = reporting_service.daily_report(**RANGE)

        assert days == [
            {"date": "2024-01-10", "revenue_cents": 4600, "refunds_cents": 0, "net_cents": 4600},
            {"date": "2024-01-11", "revenue_cents": 1100, "refunds_cents": 0, "net_cents": 1100},
            {"date": "2024-01-12", "revenue_cents": 0, "refunds_cents": 1200, "net_cents": -1200},
        ]

    def test_business_timezone_shifts_day(self, db_session, app, monkeypatch, black_m):
        monkeypatch.setitem(app.config, "BUSINESS_TIMEZONE", "Asia/Shanghai")
        sales_service.create_sale(
            [{"variant_id": black_m.id, "qty": 1, "unit_price_cents": 1200}],
            sold_at="2024-01-15T20:00:00Z",
        )

        days = reporting_service.daily_report(**RANGE)

        assert [d["date"] for d in days] == ["2024-01-16"]


class TestTopProducts:

    def test_ranked_by_net_revenue(self, db_session, january, product):
        hoodie = make_product(db_session, base_code="HOOD1", name="Hoodie", variants=[("Grey", "L", 5, 1500, 4000)])
        grey = hoodie.variants[0]
        sales_service.create_sale(
            [{"variant_id": grey.id, "qty": 2, "unit_price_cents": 4000}],
            sold_at="2024-01-20T10:00:00Z",
        )

        top = reporting_service.top_products(**RANGE)

        assert [t["base_code"] for t in top] == ["HOOD1", "TEE01"]
        assert top[0]["revenue_cents"] == 8000
        assert top[1]["sold_qty"] == 4

        assert len(reporting_service.top_products(limit=1, **RANGE)) == 1

    @pytest.mark.parametrize("limit", [0, -3, "ten"])
    def test_bad_limit(self, db_session, limit):
        with pytest.raises(ReportError):
            reporting_service.top_products(limit=limit)
