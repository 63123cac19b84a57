# Overview: Service-layer operations for the stock ledger; derives quantities from movements.

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Category, Product, StockMovement, Variant
from ..time_utils import utcnow, to_utc_z
"""
Stock Ledger Invariants (authoritative)

- Current quantity of a variant is base_qty + SUM(stock_movements.qty).
  It is never stored; every read derives it from the ledger.
- Movements are append-only. They disappear only together with the sale or
  return document that created them.
- Bulk reads aggregate movements ONCE (GROUP BY variant_id) and join the
  result, never one query per variant.
"""

UNCATEGORIZED = "uncategorized"


class StockError(Exception):
    """Stock read/write failure with a machine-readable code."""

    def __init__(self, code: str, message: str, details: dict | None = None, status: int = 400):
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.status = status


def _movement_totals(variant_ids=None) -> dict[int, int]:
    q = db.session.query(
        StockMovement.variant_id,
        func.coalesce(func.sum(StockMovement.qty), 0),
    )
    if variant_ids is not None:
        q = q.filter(StockMovement.variant_id.in_(variant_ids))
    rows = q.group_by(StockMovement.variant_id).all()
    return {variant_id: int(total or 0) for variant_id, total in rows}


def get_current_quantity(variant_id: int) -> int:
    """Current on-hand quantity for one variant (may be negative after ADJUST)."""
    base_qty = db.session.query(Variant.base_qty).filter(Variant.id == variant_id).scalar()
    if base_qty is None:
        raise StockError("VARIANT_NOT_FOUND", "Variant not found", {"variant_id": variant_id}, status=404)

    delta = db.session.query(
        func.coalesce(func.sum(StockMovement.qty), 0)
    ).filter(StockMovement.variant_id == variant_id).scalar()
    return int(base_qty) + int(delta or 0)


def get_current_quantities(variant_ids) -> dict[int, int]:
    """
    Bulk version of get_current_quantity.

    Returns {variant_id: qty} for the variants that exist; unknown ids are
    simply absent so callers can report VARIANT_NOT_FOUND themselves.
    """
    ids = sorted({int(v) for v in variant_ids})
    if not ids:
        return {}

    totals = _movement_totals(ids)
    rows = db.session.query(Variant.id, Variant.base_qty).filter(Variant.id.in_(ids)).all()
    return {vid: int(base_qty or 0) + totals.get(vid, 0) for vid, base_qty in rows}


def get_stock_summary(category_id: int | None = None, keyword: str | None = None) -> dict:
    """
    Stock summary over non-deleted products.

    Rollups:
    - variant: current_qty, total_cost_cents (= current_qty * cost_price_cents)
    - product: total_qty, total_cost_cents
    - totals / categories: total_qty, total_cost_cents, product_count
      (products with positive stock, counted once), variant_count
      (variants with positive stock)

    WHY: Movements are summed once for all variants; per-variant SUM
    queries grow linearly with the catalog.
    """
    q = db.session.query(Product).filter(Product.is_deleted.is_(False))
    if category_id is not None:
        q = q.filter(Product.category_id == category_id)
    kw = (keyword or "").strip()
    if kw:
        like = f"%{kw}%"
        q = q.filter(or_(Product.name.ilike(like), Product.base_code.ilike(like)))
    products = q.order_by(Product.created_at.desc(), Product.id.desc()).all()

    product_ids = [p.id for p in products]
    variants_by_product: dict[int, list[Variant]] = {pid: [] for pid in product_ids}
    if product_ids:
        variants = (
            db.session.query(Variant)
            .filter(Variant.product_id.in_(product_ids))
            .order_by(Variant.id.asc())
            .all()
        )
        for v in variants:
            variants_by_product[v.product_id].append(v)
    totals_by_variant = _movement_totals()

    category_names = {c.id: c.name for c in db.session.query(Category).all()}

    totals = {"total_qty": 0, "total_cost_cents": 0, "product_count": 0, "variant_count": 0}
    categories: dict = {}
    product_rows = []

    for product in products:
        cat_key = product.category_id if product.category_id is not None else UNCATEGORIZED
        bucket = categories.get(cat_key)
        if bucket is None:
            bucket = {
                "category_id": cat_key,
                "category_name": category_names.get(product.category_id, "Uncategorized")
                if product.category_id is not None else "Uncategorized",
                "total_qty": 0,
                "total_cost_cents": 0,
                "product_count": 0,
                "variant_count": 0,
            }
            categories[cat_key] = bucket

        variant_rows = []
        product_qty = 0
        product_cost = 0
        for v in variants_by_product[product.id]:
            current_qty = int(v.base_qty or 0) + totals_by_variant.get(v.id, 0)
            total_cost = current_qty * int(v.cost_price_cents or 0)
            product_qty += current_qty
            product_cost += total_cost
            if current_qty > 0:
                totals["variant_count"] += 1
                bucket["variant_count"] += 1
            row = v.to_dict()
            row["current_qty"] = current_qty
            row["total_cost_cents"] = total_cost
            variant_rows.append(row)

        totals["total_qty"] += product_qty
        totals["total_cost_cents"] += product_cost
        bucket["total_qty"] += product_qty
        bucket["total_cost_cents"] += product_cost
        if product_qty > 0:
            totals["product_count"] += 1
            bucket["product_count"] += 1

        data = product.to_dict()
        data["category_name"] = bucket["category_name"]
        data["variants"] = variant_rows
        data["total_qty"] = product_qty
        data["total_cost_cents"] = product_cost
        product_rows.append(data)

    return {
        "products": product_rows,
        "totals": totals,
        "categories": sorted(categories.values(), key=lambda c: c["total_qty"], reverse=True),
        "updated_at": to_utc_z(utcnow()),
    }


def list_movements(variant_id: int | None = None, limit: int = 200) -> list[dict]:
    """Movement history, newest first, with product and variant labels."""
    q = (
        db.session.query(StockMovement, Variant, Product)
        .join(Variant, StockMovement.variant_id == Variant.id)
        .join(Product, Variant.product_id == Product.id)
    )
    if variant_id is not None:
        q = q.filter(StockMovement.variant_id == variant_id)
    rows = (
        q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(max(1, min(int(limit), 1000)))
        .all()
    )

    result = []
    for movement, variant, product in rows:
        data = movement.to_dict()
        data["variant"] = {
            "id": variant.id,
            "color": variant.color,
            "size": variant.size,
            "sku": variant.sku,
        }
        data["product"] = {
            "id": product.id,
            "name": product.name,
            "base_code": product.base_code,
        }
        result.append(data)
    return result
