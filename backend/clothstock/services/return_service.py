"""
Returns Service - return documents against a prior sale

WHY: A return puts goods back on the shelf (RETURN movements) and refunds
the customer. Quantities are capped per variant by what the original sale
sold, minus everything already returned against that sale by earlier
return documents. The cap check and the writes share one unit of work, so
two concurrent returns cannot both consume the same remaining quantity.
"""

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import MOVEMENT_RETURN, Product, Return, ReturnItem, Sale, SaleItem, StockMovement, Variant
from ..time_utils import normalize_datetime
from ..validation import ValidationError, clean_note, coerce_int, parse_line_items, sum_by_variant
from .concurrency import lock_for_update, run_in_transaction
from .document_service import RETURN_PREFIX, allocate_document

RETURN_MOVEMENT_NOTE = "Return restock"


class ReturnError(Exception):
    """Raised for return operation errors."""
    def __init__(self, code: str, message: str, details: dict | None = None, status: int = 400):
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.status = status


def _sale_not_found(sale_id) -> ReturnError:
    return ReturnError("SALE_NOT_FOUND", "Sale not found", {"sale_id": sale_id}, status=404)


def _parse_sale_id(sale_id) -> int:
    if sale_id is None or sale_id == "":
        raise _sale_not_found(sale_id)
    try:
        return coerce_int(sale_id, "sale_id")
    except ValidationError:
        raise _sale_not_found(sale_id)


def _sold_quantities(sale_id: int) -> dict[int, int]:
    rows = (
        db.session.query(SaleItem.variant_id, func.sum(SaleItem.qty))
        .filter(SaleItem.sale_id == sale_id)
        .group_by(SaleItem.variant_id)
        .all()
    )
    return {variant_id: int(total or 0) for variant_id, total in rows}


def _returned_quantities(sale_id: int) -> dict[int, int]:
    """Already-returned quantity per variant across ALL returns of the sale."""
    rows = (
        db.session.query(ReturnItem.variant_id, func.sum(ReturnItem.qty))
        .join(Return, ReturnItem.return_id == Return.id)
        .filter(Return.sale_id == sale_id)
        .group_by(ReturnItem.variant_id)
        .all()
    )
    return {variant_id: int(total or 0) for variant_id, total in rows}


def get_returnable_quantities(sale_id: int) -> dict[int, int]:
    """Remaining returnable quantity per variant sold on the sale."""
    sold = _sold_quantities(sale_id)
    returned = _returned_quantities(sale_id)
    return {vid: qty - returned.get(vid, 0) for vid, qty in sold.items()}


def _validate_returnable(sale_id: int, requested: dict[int, int]) -> None:
    sold = _sold_quantities(sale_id)
    returned = _returned_quantities(sale_id)

    over = []
    for variant_id, qty in requested.items():
        sold_qty = sold.get(variant_id, 0)
        returned_qty = returned.get(variant_id, 0)
        remaining = sold_qty - returned_qty
        if qty > remaining:
            over.append({
                "variant_id": variant_id,
                "requested_qty": qty,
                "sold_qty": sold_qty,
                "returned_qty": returned_qty,
                "remaining_qty": max(remaining, 0),
            })

    if over:
        raise ReturnError(
            "OVER_RETURN",
            "Return quantity exceeds what remains returnable on the sale",
            details={"items": over},
            status=409,
        )


def create_return(sale_id, items, returned_at=None, note=None) -> Return:
    """Create a return with its items and RETURN movements."""
    sale_pk = _parse_sale_id(sale_id)
    try:
        lines = parse_line_items(items, allow_zero_price=False)
    except ValidationError as e:
        raise ReturnError(e.code, str(e), e.details)
    try:
        returned_dt = normalize_datetime(returned_at)
    except ValueError:
        raise ReturnError("VALIDATION_ERROR", "returned_at must be an ISO-8601 datetime")
    try:
        note = clean_note(note)
    except ValidationError as e:
        raise ReturnError(e.code, str(e), e.details)

    requested = sum_by_variant(lines)
    total = sum(line.line_total_cents for line in lines)

    def _op():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_pk)).first()
        if not sale:
            raise _sale_not_found(sale_pk)

        _validate_returnable(sale.id, requested)

        ret = allocate_document(
            lambda number: Return(
                sale_id=sale.id,
                return_no=number,
                returned_at=returned_dt,
                total_amount_cents=total,
                note=note,
            ),
            document_type="RETURN",
            prefix=RETURN_PREFIX,
            at=returned_dt,
            number_column=Return.return_no,
        )

        for line in lines:
            db.session.add(ReturnItem(
                return_id=ret.id,
                variant_id=line.variant_id,
                qty=line.qty,
                unit_price_cents=line.unit_price_cents,
                line_total_cents=line.line_total_cents,
            ))
            db.session.add(StockMovement(
                variant_id=line.variant_id,
                type=MOVEMENT_RETURN,
                qty=line.qty,
                return_id=ret.id,
                note=RETURN_MOVEMENT_NOTE,
            ))
        db.session.flush()
        return ret

    ret = run_in_transaction(_op)
    current_app.logger.info(
        "Return created: %s for sale=%s total_cents=%s", ret.return_no, sale_pk, total
    )
    return ret


def get_return(return_id: int) -> Return:
    ret = db.session.query(Return).filter_by(id=return_id).first()
    if not ret:
        raise ReturnError("RETURN_NOT_FOUND", "Return not found", {"return_id": return_id}, status=404)
    return ret


def list_returns(start=None, end=None) -> list[Return]:
    q = db.session.query(Return)
    if start is not None:
        q = q.filter(Return.returned_at >= start)
    if end is not None:
        q = q.filter(Return.returned_at <= end)
    return q.order_by(Return.returned_at.desc(), Return.id.desc()).all()


def serialize_return(ret: Return) -> dict:
    data = ret.to_dict(include_items=False)
    rows = (
        db.session.query(ReturnItem, Variant, Product)
        .join(Variant, ReturnItem.variant_id == Variant.id)
        .join(Product, Variant.product_id == Product.id)
        .filter(ReturnItem.return_id == ret.id)
        .order_by(ReturnItem.id.asc())
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
    return data


def delete_return(return_id: int) -> dict:
    """Delete a return with its items and RETURN movements (stock goes back out)."""
    def _op():
        ret = lock_for_update(db.session.query(Return).filter_by(id=return_id)).first()
        if not ret:
            raise ReturnError("RETURN_NOT_FOUND", "Return not found", {"return_id": return_id}, status=404)

        return_no = ret.return_no
        db.session.query(StockMovement).filter_by(return_id=ret.id).delete(synchronize_session=False)
        db.session.query(ReturnItem).filter_by(return_id=ret.id).delete(synchronize_session=False)
        db.session.delete(ret)
        db.session.flush()
        return return_no

    return_no = run_in_transaction(_op)
    current_app.logger.info("Return deleted: %s", return_no)
    return {"ok": True, "id": return_id, "return_no": return_no}
