# Overview: Flask API routes for stock operations; parses input and returns JSON responses.

# backend/clothstock/routes/stock.py
"""
Stock routes: summary, movement history, manual movements, batch stock-in.

Quantities are always ledger-derived; see services/ledger_service.py.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import inventory_service, ledger_service
from ..services.ledger_service import StockError
from ..decorators import error_response, json_object_body, require_auth
from ..models import Variant
from ..extensions import db


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("/summary")
@require_auth
def stock_summary_route():
    """
    Query params:
    - category_id: int (optional)
    - keyword: matches product name or base code (optional)
    """
    category_id = request.args.get("category_id", type=int)
    keyword = request.args.get("keyword")
    return jsonify(ledger_service.get_stock_summary(category_id=category_id, keyword=keyword)), 200


@stock_bp.get("/movements")
@require_auth
def list_movements_route():
    variant_id = request.args.get("variant_id", type=int)
    limit = request.args.get("limit", default=200, type=int)
    items = ledger_service.list_movements(variant_id=variant_id, limit=limit)
    return jsonify({"items": items, "count": len(items)}), 200


@stock_bp.post("/movements")
@require_auth
def create_movement_route():
    """
    Manual movement.

    Body: {type: "IN"|"ADJUST", qty, unit_cost_cents?, note?} plus either
    variant_id or product_id + color + size (IN only).
    """
    data, invalid = json_object_body()
    if invalid:
        return invalid
    movement_type = str(data.get("type") or "").strip().upper()

    try:
        if movement_type == "IN" and data.get("variant_id") is None:
            movement = inventory_service.receive_stock(
                product_id=data.get("product_id"),
                color=data.get("color"),
                size=data.get("size"),
                qty=data.get("qty"),
                unit_cost_cents=data.get("unit_cost_cents"),
                note=data.get("note"),
            )
        else:
            movement = inventory_service.create_movement(
                variant_id=data.get("variant_id"),
                movement_type=movement_type,
                qty=data.get("qty"),
                unit_cost_cents=data.get("unit_cost_cents"),
                note=data.get("note"),
            )
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create stock movement")
        return jsonify({"error": "Internal server error"}), 500

    variant = db.session.get(Variant, movement.variant_id)
    return jsonify({
        "movement": movement.to_dict(),
        "variant": variant.to_dict(),
        "current_qty": ledger_service.get_current_quantity(variant.id),
    }), 201


@stock_bp.post("/batch-in")
@require_auth
def batch_in_route():
    """
    Body: {product_id, items: [{color, size, qty, unit_cost_cents?}], note?}
    """
    data, invalid = json_object_body()
    if invalid:
        return invalid
    try:
        result = inventory_service.batch_receive(
            product_id=data.get("product_id"),
            items=data.get("items"),
            note=data.get("note"),
        )
    except StockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to batch receive stock")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(result), 201


@stock_bp.get("/variants/<int:variant_id>")
@require_auth
def variant_stock_route(variant_id: int):
    try:
        current_qty = ledger_service.get_current_quantity(variant_id)
    except StockError as e:
        return error_response(e)

    variant = db.session.get(Variant, variant_id)
    data = variant.to_dict()
    data["current_qty"] = current_qty
    data["total_cost_cents"] = current_qty * variant.cost_price_cents
    return jsonify(data), 200
