# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/clothstock/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..services import sales_service
from ..services.sales_service import SaleError
from ..services.document_service import DocumentSequenceError
from ..time_utils import parse_range_bound
from ..decorators import error_response, json_object_body, require_auth


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Query params:
    - start, end: sold_at range (YYYY-MM-DD or ISO-8601); a bare end date is inclusive
    """
    try:
        start = parse_range_bound(request.args.get("start"))
        end = parse_range_bound(request.args.get("end"), end=True)
    except ValueError:
        return jsonify({"error": "start/end must be YYYY-MM-DD or ISO-8601", "code": "VALIDATION_ERROR"}), 400

    sales = sales_service.list_sales(start=start, end=end)
    items = [sales_service.serialize_sale(s) for s in sales]
    return jsonify({"items": items, "count": len(items)}), 200


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Create a sale.

    Body: {items: [{variant_id, qty, unit_price_cents}], sold_at?, note?}

    Errors: EMPTY_ITEMS, MISSING_VARIANT, INVALID_QTY, INVALID_PRICE (400),
    VARIANT_NOT_FOUND (404), INSUFFICIENT_STOCK (409), NUMBERING_FAILED (409)
    """
    data, invalid = json_object_body()
    if invalid:
        return invalid
    try:
        sale = sales_service.create_sale(
            data.get("items"),
            sold_at=data.get("sold_at"),
            note=data.get("note"),
        )
    except (SaleError, DocumentSequenceError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(sales_service.serialize_sale(sale)), 201


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except SaleError as e:
        return error_response(e)
    return jsonify(sales_service.serialize_sale(sale)), 200


@sales_bp.delete("/<int:sale_id>")
@require_auth
def delete_sale_route(sale_id: int):
    """
    Delete a sale with its items and stock movements.

    Refused with SALE_HAS_RETURNS (409) while returns reference it.
    """
    try:
        result = sales_service.delete_sale(sale_id)
    except SaleError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete sale %s", sale_id)
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(result), 200
