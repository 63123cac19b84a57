"""
Sales Service - one-shot sale documents

WHY: A shop counter sale is final the moment it is saved. The sale header,
its items, its document number and the OUT movements are written in ONE
unit of work, after the stock check, so stock can never be oversold by two
concurrent checkouts.
"""

from flask import current_app

from ..extensions import db
from ..models import MOVEMENT_OUT, Product, Return, Sale, SaleItem, StockMovement, Variant
from ..time_utils import normalize_datetime
from ..validation import ValidationError, clean_note, parse_line_items, sum_by_variant
from .concurrency import lock_for_update, run_in_transaction
from .document_service import SALE_PREFIX, allocate_document
from .ledger_service import get_current_quantities
from .return_service import get_returnable_quantities

SALE_MOVEMENT_NOTE = "Sale outbound"


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, code: str, message: str, details: dict | None = None, status: int = 400):
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.status = status


def _parse_items(items):
    try:
        return parse_line_items(items, allow_zero_price=True)
    except ValidationError as e:
        raise SaleError(e.code, str(e), e.details)


def _parse_when(value, field: str):
    try:
        return normalize_datetime(value)
    except ValueError:
        raise SaleError("VALIDATION_ERROR", f"{field} must be an ISO-8601 datetime")


def _clean_note(note):
    try:
        return clean_note(note)
    except ValidationError as e:
        raise SaleError(e.code, str(e), e.details)


def _lock_variants(variant_ids) -> dict[int, Variant]:
    ids = sorted(set(variant_ids))
    rows = lock_for_update(db.session.query(Variant).filter(Variant.id.in_(ids))).all()
    found = {v.id: v for v in rows}
    missing = [vid for vid in ids if vid not in found]
    if missing:
        raise SaleError(
            "VARIANT_NOT_FOUND",
            "Variant not found",
            details={"variant_ids": missing},
            status=404,
        )
    return found


def _validate_availability(variants: dict[int, Variant], requested: dict[int, int]) -> None:
    """Reject the whole sale if any variant is short; report every short variant."""
    available = get_current_quantities(requested.keys())

    insufficient = []
    for variant_id, qty in requested.items():
        on_hand = available.get(variant_id, 0)
        if on_hand < qty:
            insufficient.append({
                "variant_id": variant_id,
                "sku": variants[variant_id].sku,
                "requested_qty": qty,
                "available_qty": on_hand,
            })

    if insufficient:
        raise SaleError(
            "INSUFFICIENT_STOCK",
            "Insufficient stock",
            details={"items": insufficient},
            status=409,
        )


def create_sale(items, sold_at=None, note=None) -> Sale:
    """
    Create a sale with its items and OUT movements.

    Items are validated before any transaction is opened. Repeated lines for
    the same variant are checked against stock as one combined quantity.
    """
    lines = _parse_items(items)
    sold_dt = _parse_when(sold_at, "sold_at")
    note = _clean_note(note)
    requested = sum_by_variant(lines)
    total = sum(line.line_total_cents for line in lines)

    def _op():
        variants = _lock_variants(requested.keys())
        _validate_availability(variants, requested)

        sale = allocate_document(
            lambda number: Sale(sale_no=number, sold_at=sold_dt, total_amount_cents=total, note=note),
            document_type="SALE",
            prefix=SALE_PREFIX,
            at=sold_dt,
            number_column=Sale.sale_no,
        )

        for line in lines:
            db.session.add(SaleItem(
                sale_id=sale.id,
                variant_id=line.variant_id,
                qty=line.qty,
                unit_price_cents=line.unit_price_cents,
                line_total_cents=line.line_total_cents,
            ))
            db.session.add(StockMovement(
                variant_id=line.variant_id,
                type=MOVEMENT_OUT,
                qty=-line.qty,
                sale_id=sale.id,
                note=SALE_MOVEMENT_NOTE,
            ))
        db.session.flush()
        return sale

    sale = run_in_transaction(_op)
    current_app.logger.info(
        "Sale created: %s items=%s total_cents=%s", sale.sale_no, len(lines), total
    )
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id).first()
    if not sale:
        raise SaleError("SALE_NOT_FOUND", "Sale not found", {"sale_id": sale_id}, status=404)
    return sale


def list_sales(start=None, end=None) -> list[Sale]:
    """Sales by sold_at, newest first. start/end are inclusive UTC-naive bounds."""
    q = db.session.query(Sale)
    if start is not None:
        q = q.filter(Sale.sold_at >= start)
    if end is not None:
        q = q.filter(Sale.sold_at <= end)
    return q.order_by(Sale.sold_at.desc(), Sale.id.desc()).all()


def serialize_sale(sale: Sale) -> dict:
    """Sale with items labelled by product and variant."""
    data = sale.to_dict(include_items=False)
    rows = (
        db.session.query(SaleItem, Variant, Product)
        .join(Variant, SaleItem.variant_id == Variant.id)
        .join(Product, Variant.product_id == Product.id)
        .filter(SaleItem.sale_id == sale.id)
        .order_by(SaleItem.id.asc())
        .all()
    )
    items = []
    for item, variant, product in rows:
        row = item.to_dict()
        row["color"] = variant.color
        row["size"] = variant.size
        row["sku"] = variant.sku
        row["product_id"] = product.id
        row["product_name"] = product.name
        row["base_code"] = product.base_code
        items.append(row)
    data["items"] = items
    data["return_count"] = db.session.query(Return).filter_by(sale_id=sale.id).count()
    # What the return form may still take back, per variant
    data["returnable"] = [
        {"variant_id": vid, "remaining_qty": max(qty, 0)}
        for vid, qty in sorted(get_returnable_quantities(sale.id).items())
    ]
    return data


def delete_sale(sale_id: int) -> dict:
    """
    Delete a sale, its items and its OUT movements together.

    Refused while returns reference the sale: their RETURN movements would
    otherwise restock units that were never sold.
    """
    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise SaleError("SALE_NOT_FOUND", "Sale not found", {"sale_id": sale_id}, status=404)

        return_count = db.session.query(Return).filter_by(sale_id=sale.id).count()
        if return_count:
            raise SaleError(
                "SALE_HAS_RETURNS",
                "Sale has returns; delete the returns first",
                {"sale_id": sale.id, "return_count": return_count},
                status=409,
            )

        sale_no = sale.sale_no
        db.session.query(StockMovement).filter_by(sale_id=sale.id).delete(synchronize_session=False)
        db.session.query(SaleItem).filter_by(sale_id=sale.id).delete(synchronize_session=False)
        db.session.delete(sale)
        db.session.flush()
        return sale_no

    sale_no = run_in_transaction(_op)
    current_app.logger.info("Sale deleted: %s", sale_no)
    return {"ok": True, "id": sale_id, "sale_no": sale_no}
