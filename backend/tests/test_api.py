"""
HTTP API tests.

Verifies:
- Every data route requires a bearer token; health is public
- Error bodies carry {"error", "code", "details"} and the right status
- A rejected sale or return leaves zero new rows behind
- Happy paths for products, stock, sales, returns and reports
"""

import pytest

from clothstock.models import Sale, SaleItem, StockMovement


PROTECTED = [
    ("get", "/api/categories"),
    ("get", "/api/sizes"),
    ("get", "/api/products"),
    ("post", "/api/products"),
    ("get", "/api/stock/summary"),
    ("get", "/api/stock/movements"),
    ("post", "/api/stock/movements"),
    ("post", "/api/stock/batch-in"),
    ("get", "/api/sales"),
    ("post", "/api/sales"),
    ("delete", "/api/sales/1"),
    ("get", "/api/returns"),
    ("post", "/api/returns"),
    ("get", "/api/reports/sales"),
    ("get", "/api/reports/daily"),
    ("get", "/api/reports/top-products"),
]


@pytest.mark.parametrize("method,path", PROTECTED)
def test_routes_require_auth(client, db_session, method, path):
    response = getattr(client, method)(path)
    assert response.status_code == 401
    assert response.json["code"] == "UNAUTHORIZED"


def test_bogus_token_rejected(client, db_session):
    response = client.get("/api/products", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


@pytest.mark.parametrize("path", [
    "/api/products",
    "/api/stock/movements",
    "/api/stock/batch-in",
    "/api/sales",
    "/api/returns",
])
def test_array_body_is_a_validation_error(client, auth_headers, path):
    response = client.post(path, json=[{"variant_id": 1, "qty": 1}], headers=auth_headers)
    assert response.status_code == 400
    assert response.json["code"] == "VALIDATION_ERROR"


def test_login_with_array_body(client, db_session):
    response = client.post("/api/auth/login", json=["operator@clothstock.local", "Password123!"])
    assert response.status_code == 400
    assert response.json["code"] == "VALIDATION_ERROR"


def test_health_is_public(client, db_session):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json["status"] == "healthy"
    assert response.json["checks"]["database"]["details"]["products"] == 0


def test_cors_for_local_frontend(client, db_session):
    response = client.get("/api/health", headers={"Origin": "http://localhost:3000"})
    assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"

    other = client.get("/api/health", headers={"Origin": "http://evil.example"})
    assert "Access-Control-Allow-Origin" not in other.headers


class TestProductsApi:

    def test_create_and_fetch(self, client, auth_headers, category):
        response = client.post("/api/products", headers=auth_headers, json={
            "name": "Denim Jacket",
            "base_code": "DJ01",
            "category_id": category.id,
            "tags": ["denim", "denim"],
            "variants": [
                {"color": "Blue", "size": "M", "qty": 3, "cost_price_cents": 2000, "sale_price_cents": 5900},
                {"color": "", "size": "L", "qty": 9},
            ],
        })

        assert response.status_code == 201
        body = response.json
        assert body["tags"] == ["denim"]
        assert body["category_name"] == "Tops"
        assert [v["sku"] for v in body["variants"]] == ["DJ01-Blue-M"]

        fetched = client.get(f"/api/products/{body['id']}", headers=auth_headers)
        assert fetched.json["base_code"] == "DJ01"

    def test_duplicate_base_code(self, client, auth_headers, product):
        response = client.post("/api/products", headers=auth_headers, json={
            "name": "Copy",
            "base_code": "TEE01",
            "variants": [{"color": "Red", "size": "S", "qty": 1}],
        })
        assert response.status_code == 409
        assert response.json["code"] == "DUPLICATE_BASE_CODE"

    def test_missing_required_fields(self, client, auth_headers, db_session):
        response = client.post("/api/products", headers=auth_headers, json={"name": "No code"})
        assert response.status_code == 400
        assert response.json["code"] == "VALIDATION_ERROR"

    def test_non_writable_field(self, client, auth_headers, db_session):
        response = client.post("/api/products", headers=auth_headers, json={
            "name": "X", "base_code": "X1", "is_deleted": True, "variants": [],
        })
        assert response.status_code == 400

    def test_soft_delete_and_restore(self, client, auth_headers, product):
        assert client.delete(f"/api/products/{product.id}", headers=auth_headers).status_code == 200
        assert client.get("/api/products", headers=auth_headers).json["count"] == 0
        assert client.get("/api/products?deleted=true", headers=auth_headers).json["count"] == 1

        restored = client.patch(f"/api/products/{product.id}", headers=auth_headers, json={"is_deleted": False})
        assert restored.status_code == 200
        assert restored.json["is_deleted"] is False

    def test_unknown_product(self, client, auth_headers):
        response = client.get("/api/products/9999", headers=auth_headers)
        assert response.status_code == 404
        assert response.json["code"] == "PRODUCT_NOT_FOUND"


class TestCatalogApi:

    def test_category_lifecycle(self, client, auth_headers):
        created = client.post("/api/categories", headers=auth_headers, json={"name": "Knitwear"})
        assert created.status_code == 201

        cat_id = created.json["id"]
        renamed = client.patch(f"/api/categories/{cat_id}", headers=auth_headers, json={"name": "Knits"})
        assert renamed.json["name"] == "Knits"

        deleted = client.delete(f"/api/categories/{cat_id}", headers=auth_headers)
        assert deleted.json["is_active"] is False
        assert client.get("/api/categories?active=true", headers=auth_headers).json["count"] == 0

    def test_size_not_found(self, client, auth_headers):
        response = client.patch("/api/sizes/123", headers=auth_headers, json={"name": "XXL"})
        assert response.status_code == 404
        assert response.json["code"] == "SIZE_NOT_FOUND"


class TestStockApi:

    def test_manual_in_and_summary(self, client, auth_headers, black_m):
        response = client.post("/api/stock/movements", headers=auth_headers, json={
            "type": "in", "variant_id": black_m.id, "qty": 10, "unit_cost_cents": 700,
        })
        assert response.status_code == 201
        assert response.json["current_qty"] == 20
        assert response.json["variant"]["cost_price_cents"] == 600

        summary = client.get("/api/stock/summary", headers=auth_headers).json
        assert summary["totals"]["total_qty"] == 25

        variant = client.get(f"/api/stock/variants/{black_m.id}", headers=auth_headers).json
        assert variant["current_qty"] == 20
        assert variant["total_cost_cents"] == 20 * 600

    def test_in_by_product_color_size(self, client, auth_headers, product):
        response = client.post("/api/stock/movements", headers=auth_headers, json={
            "type": "IN", "product_id": product.id, "color": "Olive", "size": "S", "qty": 2,
        })
        assert response.status_code == 201
        assert response.json["variant"]["sku"] == "TEE01-Olive-S"

    def test_invalid_type(self, client, auth_headers, black_m):
        response = client.post("/api/stock/movements", headers=auth_headers, json={
            "type": "OUT", "variant_id": black_m.id, "qty": 1,
        })
        assert response.status_code == 400
        assert response.json["code"] == "INVALID_TYPE"

    def test_batch_in(self, client, auth_headers, product):
        response = client.post("/api/stock/batch-in", headers=auth_headers, json={
            "product_id": product.id,
            "items": [{"color": "Black", "size": "M", "qty": 5}, {"color": "Black", "size": "M", "qty": 1}],
        })
        assert response.status_code == 201
        assert response.json["count"] == 1

        movements = client.get("/api/stock/movements", headers=auth_headers).json
        assert movements["items"][0]["qty"] == 6

    def test_unknown_variant(self, client, auth_headers):
        response = client.get("/api/stock/variants/4242", headers=auth_headers)
        assert response.status_code == 404


class TestSalesApi:

    def test_sale_then_return(self, client, auth_headers, black_m):
        sale = client.post("/api/sales", headers=auth_headers, json={
            "items": [{"variant_id": black_m.id, "qty": 3, "unit_price_cents": 1200}],
            "sold_at": "2024-01-15T10:00:00Z",
        })
        assert sale.status_code == 201
        assert sale.json["sale_no"] == "S20240115-0001"
        assert sale.json["items"][0]["sku"] == "TEE01-Black-M"

        ret = client.post("/api/returns", headers=auth_headers, json={
            "sale_id": sale.json["id"],
            "items": [{"variant_id": black_m.id, "qty": 1, "unit_price_cents": 1200}],
        })
        assert ret.status_code == 201
        assert ret.json["sale_no"] == "S20240115-0001"

        over = client.post("/api/returns", headers=auth_headers, json={
            "sale_id": sale.json["id"],
            "items": [{"variant_id": black_m.id, "qty": 3, "unit_price_cents": 1200}],
        })
        assert over.status_code == 409
        assert over.json["code"] == "OVER_RETURN"
        assert over.json["details"]["items"][0]["remaining_qty"] == 2

        listed = client.get("/api/sales?start=2024-01-15&end=2024-01-15", headers=auth_headers).json
        assert listed["count"] == 1
        assert listed["items"][0]["return_count"] == 1

        blocked = client.delete(f"/api/sales/{sale.json['id']}", headers=auth_headers)
        assert blocked.status_code == 409
        assert blocked.json["code"] == "SALE_HAS_RETURNS"

    def test_insufficient_stock_writes_nothing(self, client, auth_headers, db_session, black_m):
        response = client.post("/api/sales", headers=auth_headers, json={
            "items": [{"variant_id": black_m.id, "qty": 11, "unit_price_cents": 1200}],
        })

        assert response.status_code == 409
        body = response.json
        assert body["code"] == "INSUFFICIENT_STOCK"
        assert body["error"]
        assert body["details"]["items"][0]["available_qty"] == 10
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert db_session.query(StockMovement).count() == 0

    @pytest.mark.parametrize("payload,code", [
        ({}, "EMPTY_ITEMS"),
        ({"items": [{"qty": 1, "unit_price_cents": 1}]}, "MISSING_VARIANT"),
        ({"items": [{"variant_id": 1, "qty": 0, "unit_price_cents": 1}]}, "INVALID_QTY"),
        ({"items": [{"variant_id": 1, "qty": 1, "unit_price_cents": -1}]}, "INVALID_PRICE"),
    ])
    def test_validation_codes(self, client, auth_headers, payload, code):
        response = client.post("/api/sales", headers=auth_headers, json=payload)
        assert response.status_code == 400
        assert response.json["code"] == code

    def test_bad_range(self, client, auth_headers):
        response = client.get("/api/sales?start=not-a-date", headers=auth_headers)
        assert response.status_code == 400

    def test_return_for_missing_sale(self, client, auth_headers, black_m):
        response = client.post("/api/returns", headers=auth_headers, json={
            "sale_id": 999,
            "items": [{"variant_id": black_m.id, "qty": 1, "unit_price_cents": 100}],
        })
        assert response.status_code == 404
        assert response.json["code"] == "SALE_NOT_FOUND"


class TestReportsApi:

    def test_reports(self, client, auth_headers, black_m):
        client.post("/api/sales", headers=auth_headers, json={
            "items": [{"variant_id": black_m.id, "qty": 2, "unit_price_cents": 1500}],
            "sold_at": "2024-03-05T12:00:00Z",
        })
        params = "start=2024-03-01&end=2024-03-31"

        report = client.get(f"/api/reports/sales?{params}&group_by=product", headers=auth_headers).json
        assert report["totals"]["revenue_cents"] == 3000
        assert report["totals"]["profit_cents"] == 3000 - 2 * 500

        daily = client.get(f"/api/reports/daily?{params}", headers=auth_headers).json
        assert daily["items"] == [
            {"date": "2024-03-05", "revenue_cents": 3000, "refunds_cents": 0, "net_cents": 3000}
        ]

        top = client.get(f"/api/reports/top-products?{params}", headers=auth_headers).json
        assert top["items"][0]["base_code"] == "TEE01"

    def test_bad_group_by(self, client, auth_headers):
        response = client.get("/api/reports/sales?group_by=color", headers=auth_headers)
        assert response.status_code == 400
        assert response.json["code"] == "VALIDATION_ERROR"
