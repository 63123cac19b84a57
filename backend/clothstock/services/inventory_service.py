# Overview: Service-layer operations for inbound stock and manual movements; owns cost revaluation.

# backend/clothstock/services/inventory_service.py

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import (
    MOVEMENT_ADJUST,
    MOVEMENT_IN,
    Product,
    StockMovement,
    Variant,
)
from ..validation import MAX_PRICE_CENTS, MAX_QTY, ValidationError, clean_note, coerce_int
from .concurrency import lock_for_update, run_in_transaction
from .ledger_service import StockError, get_current_quantity
from .products_service import ensure_variant
"""
Inventory Invariants & Cost Semantics (authoritative)

Inventory model:
- Stock is ledger-derived (see ledger_service); this module only appends
  movements and never edits base_qty.

Business invariants:
- IN increases stock and revalues the variant's cost price (weighted average):
    next_qty  = current_qty + qty
    next_cost = (current_qty * current_cost + qty * unit_cost) / next_qty
  rounded to the nearest cent (half-up); when next_qty <= 0 the cost stays.
- A missing unit cost averages in at the current cost (cost unchanged).
- ADJUST changes on-hand but does NOT affect the cost price, and may take
  the quantity negative (stocktake corrections).
- The quantity read and the cost/movement writes happen in one unit of work.
"""

MANUAL_MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_ADJUST)


def weighted_average_cost_cents(
    current_qty: int,
    current_cost_cents: int,
    qty: int,
    unit_cost_cents: int,
) -> int:
    """Weighted-average cost after receiving qty units at unit_cost_cents."""
    next_qty = current_qty + qty
    if next_qty <= 0:
        return current_cost_cents
    total_cost = current_qty * current_cost_cents + qty * unit_cost_cents
    # nearest-cent rounding (half-up)
    return (total_cost + (next_qty // 2)) // next_qty


def _validate_inbound_qty(qty) -> int:
    try:
        value = coerce_int(qty, "qty", code="INVALID_QTY")
    except ValidationError as e:
        raise StockError("INVALID_QTY", str(e))
    if value <= 0:
        raise StockError("INVALID_QTY", "Quantity must be greater than 0")
    if value > MAX_QTY:
        raise StockError("INVALID_QTY", f"Quantity cannot exceed {MAX_QTY}")
    return value


def _validate_unit_cost(unit_cost_cents) -> int | None:
    if unit_cost_cents is None or unit_cost_cents == "":
        return None
    try:
        value = coerce_int(unit_cost_cents, "unit_cost_cents", code="INVALID_PRICE")
    except ValidationError as e:
        raise StockError("INVALID_PRICE", str(e))
    if value < 0 or value > MAX_PRICE_CENTS:
        raise StockError("INVALID_PRICE", "Unit cost must be between 0 and 999999999 cents")
    return value


def _validate_note(note) -> str | None:
    try:
        return clean_note(note)
    except ValidationError as e:
        raise StockError(e.code, str(e), e.details)


def _lock_variant(variant_id: int) -> Variant:
    variant = lock_for_update(db.session.query(Variant).filter_by(id=variant_id)).first()
    if variant is None:
        raise StockError("VARIANT_NOT_FOUND", "Variant not found", {"variant_id": variant_id}, status=404)
    return variant


def _lock_live_product(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None or product.is_deleted:
        raise StockError("PRODUCT_NOT_FOUND", "Product not found", {"product_id": product_id}, status=404)
    return product


def _receive_inner(variant: Variant, qty: int, unit_cost_cents: int | None, note: str | None) -> StockMovement:
    """Core IN logic: revalue cost then append the movement. Caller owns the transaction."""
    current_qty = get_current_quantity(variant.id)
    effective_cost = unit_cost_cents if unit_cost_cents is not None else variant.cost_price_cents
    variant.cost_price_cents = weighted_average_cost_cents(
        current_qty, variant.cost_price_cents, qty, effective_cost
    )

    movement = StockMovement(
        variant_id=variant.id,
        type=MOVEMENT_IN,
        qty=qty,
        unit_cost_cents=unit_cost_cents,
        note=note,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def receive_stock(
    *,
    qty,
    variant_id: int | None = None,
    product_id: int | None = None,
    color: str | None = None,
    size: str | None = None,
    unit_cost_cents=None,
    note: str | None = None,
) -> StockMovement:
    """
    Receive stock into one variant and revalue its cost price.

    The variant is given directly, or resolved from product + color + size;
    in the latter case a missing combination is created on the spot.
    """
    qty = _validate_inbound_qty(qty)
    unit_cost = _validate_unit_cost(unit_cost_cents)
    note = _validate_note(note)

    color = (color or "").strip()
    size = (size or "").strip()
    if variant_id is None and (product_id is None or not color or not size):
        raise StockError("VARIANT_NOT_FOUND", "Provide variant_id, or product_id with color and size")

    def _op():
        if variant_id is not None:
            variant = _lock_variant(variant_id)
        else:
            product = _lock_live_product(product_id)
            variant, _ = ensure_variant(product, color, size)
        return _receive_inner(variant, qty, unit_cost, note)

    movement = run_in_transaction(_op)
    current_app.logger.info(
        "Stock received: variant=%s qty=%s unit_cost_cents=%s", movement.variant_id, qty, unit_cost
    )
    return movement


def create_movement(
    *,
    variant_id: int,
    movement_type: str,
    qty,
    unit_cost_cents=None,
    note: str | None = None,
) -> StockMovement:
    """
    Manual ledger entry from the stock screen.

    IN behaves exactly like receive_stock. ADJUST accepts any non-zero
    signed quantity and leaves the cost price alone.
    """
    movement_type = (movement_type or "").strip().upper()
    if movement_type not in MANUAL_MOVEMENT_TYPES:
        raise StockError("INVALID_TYPE", "Movement type must be IN or ADJUST", {"type": movement_type})

    if movement_type == MOVEMENT_IN:
        return receive_stock(variant_id=variant_id, qty=qty, unit_cost_cents=unit_cost_cents, note=note)

    try:
        delta = coerce_int(qty, "qty", code="INVALID_QTY")
    except ValidationError as e:
        raise StockError("INVALID_QTY", str(e))
    if delta == 0:
        raise StockError("INVALID_QTY", "Adjustment quantity must be non-zero")
    if abs(delta) > MAX_QTY:
        raise StockError("INVALID_QTY", f"Adjustment quantity cannot exceed {MAX_QTY} in either direction")
    note = _validate_note(note)

    def _op():
        variant = _lock_variant(variant_id)
        movement = StockMovement(
            variant_id=variant.id,
            type=MOVEMENT_ADJUST,
            qty=delta,
            unit_cost_cents=None,
            note=note,
        )
        db.session.add(movement)
        db.session.flush()
        return movement

    movement = run_in_transaction(_op)
    current_app.logger.info("Stock adjusted: variant=%s qty=%s", variant_id, delta)
    return movement


def _aggregate_batch_lines(items) -> dict[tuple[str, str], dict]:
    """
    Merge batch lines by trimmed (color, size).

    Lines without color/size or with qty <= 0 are skipped. Quantities add up;
    the last explicit unit cost for a key wins.
    """
    if not isinstance(items, list):
        raise StockError("EMPTY_ITEMS", "items must be a list")

    merged: dict[tuple[str, str], dict] = {}
    for raw in items:
        if not isinstance(raw, dict):
            continue
        color = str(raw.get("color") or "").strip()
        size = str(raw.get("size") or "").strip()
        if not color or not size:
            continue
        try:
            qty = coerce_int(raw.get("qty", 0), "qty", code="INVALID_QTY")
        except ValidationError:
            continue
        if qty <= 0:
            continue
        if qty > MAX_QTY:
            raise StockError("INVALID_QTY", f"Quantity cannot exceed {MAX_QTY}")
        unit_cost = _validate_unit_cost(raw.get("unit_cost_cents"))

        entry = merged.setdefault((color, size), {"qty": 0, "unit_cost_cents": None})
        entry["qty"] += qty
        if unit_cost is not None:
            entry["unit_cost_cents"] = unit_cost
    return merged


def batch_receive(*, product_id: int, items, note: str | None = None) -> dict:
    """
    Receive several color/size lines of one product in one transaction.

    Returns {"ok": True, "count": n, "movements": [...]} where n is the
    number of distinct (color, size) keys received.
    """
    merged = _aggregate_batch_lines(items)
    if not merged:
        raise StockError("EMPTY_ITEMS", "Add at least one line with color, size and quantity")
    note = _validate_note(note)

    def _op():
        product = _lock_live_product(product_id)
        movements = []
        for (color, size), entry in merged.items():
            variant, _ = ensure_variant(product, color, size)
            variant = _lock_variant(variant.id)
            movements.append(_receive_inner(variant, entry["qty"], entry["unit_cost_cents"], note))
        return movements

    movements = run_in_transaction(_op)
    current_app.logger.info("Batch stock-in: product=%s lines=%s", product_id, len(movements))
    return {
        "ok": True,
        "count": len(movements),
        "movements": [m.to_dict() for m in movements],
    }
