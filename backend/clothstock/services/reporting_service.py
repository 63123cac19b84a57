# Overview: Service-layer operations for reporting; read-only views over sales, returns and costs.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Product, Return, ReturnItem, Sale, SaleItem, Variant
from ..time_utils import business_date_key, parse_range_bound, to_utc_z, utcnow

GROUP_BY_VARIANT = "variant"
GROUP_BY_PRODUCT = "product"


class ReportError(Exception):
    """Raised when report parameters are invalid."""

    def __init__(self, code: str, message: str, details: dict | None = None, status: int = 400):
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.status = status


def _parse_range(start: str | None, end: str | None) -> tuple[datetime, datetime]:
    """
    Resolve a report range. Defaults: first day of the current month .. now.
    A bare end date covers that whole day.
    """
    try:
        start_dt = parse_range_bound(start)
        end_dt = parse_range_bound(end, end=True)
    except ValueError:
        raise ReportError("VALIDATION_ERROR", "start/end must be YYYY-MM-DD or ISO-8601 datetimes")

    now = utcnow()
    if start_dt is None:
        start_dt = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if end_dt is None:
        end_dt = now
    if start_dt > end_dt:
        raise ReportError("VALIDATION_ERROR", "start must be before end")
    return start_dt, end_dt


def _sale_lines(start_dt: datetime, end_dt: datetime):
    return (
        db.session.query(SaleItem, Variant, Product)
        .join(Sale, SaleItem.sale_id == Sale.id)
        .join(Variant, SaleItem.variant_id == Variant.id)
        .join(Product, Variant.product_id == Product.id)
        .filter(Sale.sold_at >= start_dt, Sale.sold_at <= end_dt)
        .all()
    )


def _return_lines(start_dt: datetime, end_dt: datetime):
    return (
        db.session.query(ReturnItem, Variant, Product)
        .join(Return, ReturnItem.return_id == Return.id)
        .join(Variant, ReturnItem.variant_id == Variant.id)
        .join(Product, Variant.product_id == Product.id)
        .filter(Return.returned_at >= start_dt, Return.returned_at <= end_dt)
        .all()
    )


def _margin(revenue: int, profit: int) -> float:
    return 0.0 if revenue == 0 else round(profit / revenue, 4)


def sales_report(*, start: str | None = None, end: str | None = None, group_by: str = GROUP_BY_VARIANT) -> dict:
    """
    Profit report, net of returns recorded in the same range.

    Cost is valued at each variant's CURRENT weighted-average cost price;
    the ledger does not snapshot cost at sale time.
    """
    group_by = group_by or GROUP_BY_VARIANT
    if group_by not in (GROUP_BY_VARIANT, GROUP_BY_PRODUCT):
        raise ReportError("VALIDATION_ERROR", "group_by must be variant or product")
    start_dt, end_dt = _parse_range(start, end)

    rows: dict[tuple, dict] = {}

    def _row(variant: Variant, product: Product) -> dict:
        key = ("product", product.id) if group_by == GROUP_BY_PRODUCT else ("variant", variant.id)
        row = rows.get(key)
        if row is None:
            row = {
                "product_id": product.id,
                "product_name": product.name,
                "base_code": product.base_code,
                "sold_qty": 0,
                "revenue_cents": 0,
                "cost_cents": 0,
            }
            if group_by == GROUP_BY_VARIANT:
                row.update({"variant_id": variant.id, "color": variant.color, "size": variant.size})
            rows[key] = row
        return row

    for item, variant, product in _sale_lines(start_dt, end_dt):
        row = _row(variant, product)
        row["sold_qty"] += item.qty
        row["revenue_cents"] += item.line_total_cents
        row["cost_cents"] += item.qty * variant.cost_price_cents

    for item, variant, product in _return_lines(start_dt, end_dt):
        row = _row(variant, product)
        row["sold_qty"] -= item.qty
        row["revenue_cents"] -= item.line_total_cents
        row["cost_cents"] -= item.qty * variant.cost_price_cents

    data = []
    for row in rows.values():
        row["profit_cents"] = row["revenue_cents"] - row["cost_cents"]
        row["margin"] = _margin(row["revenue_cents"], row["profit_cents"])
        data.append(row)
    data.sort(key=lambda r: r["revenue_cents"], reverse=True)

    totals = {
        "sold_qty": sum(r["sold_qty"] for r in data),
        "revenue_cents": sum(r["revenue_cents"] for r in data),
        "cost_cents": sum(r["cost_cents"] for r in data),
    }
    totals["profit_cents"] = totals["revenue_cents"] - totals["cost_cents"]
    totals["margin"] = _margin(totals["revenue_cents"], totals["profit_cents"])

    return {
        "group_by": group_by,
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "totals": totals,
        "rows": data,
    }


def daily_report(*, start: str | None = None, end: str | None = None) -> list[dict]:
    """Revenue and refunds per business day, oldest first. Days without activity are omitted."""
    start_dt, end_dt = _parse_range(start, end)
    tz_name = current_app.config.get("BUSINESS_TIMEZONE", "UTC")

    buckets: dict[str, dict] = {}

    def _bucket(at: datetime) -> dict:
        key = business_date_key(at, tz_name)
        day = f"{key[:4]}-{key[4:6]}-{key[6:]}"
        return buckets.setdefault(day, {"date": day, "revenue_cents": 0, "refunds_cents": 0})

    for sale in db.session.query(Sale).filter(Sale.sold_at >= start_dt, Sale.sold_at <= end_dt).all():
        _bucket(sale.sold_at)["revenue_cents"] += sale.total_amount_cents

    returns = db.session.query(Return).filter(Return.returned_at >= start_dt, Return.returned_at <= end_dt).all()
    for ret in returns:
        _bucket(ret.returned_at)["refunds_cents"] += ret.total_amount_cents

    result = sorted(buckets.values(), key=lambda b: b["date"])
    for bucket in result:
        bucket["net_cents"] = bucket["revenue_cents"] - bucket["refunds_cents"]
    return result


def top_products(*, start: str | None = None, end: str | None = None, limit=10) -> list[dict]:
    """Products ranked by net revenue (sales minus returns) in the range."""
    try:
        limit = int(limit) if limit is not None else 10
    except (TypeError, ValueError):
        raise ReportError("VALIDATION_ERROR", "limit must be an integer")
    if limit <= 0:
        raise ReportError("VALIDATION_ERROR", "limit must be greater than 0")
    start_dt, end_dt = _parse_range(start, end)

    totals: dict[int, dict] = {}

    def _entry(product: Product) -> dict:
        return totals.setdefault(product.id, {
            "product_id": product.id,
            "product_name": product.name,
            "base_code": product.base_code,
            "revenue_cents": 0,
            "sold_qty": 0,
        })

    for item, _variant, product in _sale_lines(start_dt, end_dt):
        entry = _entry(product)
        entry["revenue_cents"] += item.line_total_cents
        entry["sold_qty"] += item.qty

    for item, _variant, product in _return_lines(start_dt, end_dt):
        entry = _entry(product)
        entry["revenue_cents"] -= item.line_total_cents
        entry["sold_qty"] -= item.qty

    ranked = sorted(totals.values(), key=lambda e: e["revenue_cents"], reverse=True)
    return ranked[:limit]
