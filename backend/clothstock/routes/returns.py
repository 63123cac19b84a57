# Overview: Flask API routes for return operations; parses input and returns JSON responses.

# backend/clothstock/routes/returns.py
"""Returns API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..services import return_service
from ..services.return_service import ReturnError
from ..services.document_service import DocumentSequenceError
from ..time_utils import parse_range_bound
from ..decorators import error_response, json_object_body, require_auth


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.get("")
@require_auth
def list_returns_route():
    try:
        start = parse_range_bound(request.args.get("start"))
        end = parse_range_bound(request.args.get("end"), end=True)
    except ValueError:
        return jsonify({"error": "start/end must be YYYY-MM-DD or ISO-8601", "code": "VALIDATION_ERROR"}), 400

    returns = return_service.list_returns(start=start, end=end)
    items = [return_service.serialize_return(r) for r in returns]
    return jsonify({"items": items, "count": len(items)}), 200


@returns_bp.post("")
@require_auth
def create_return_route():
    """
    Create a return against a sale.

    Body: {sale_id, items: [{variant_id, qty, unit_price_cents}], returned_at?, note?}

    Errors: SALE_NOT_FOUND (404), EMPTY_ITEMS / MISSING_VARIANT / INVALID_QTY /
    INVALID_PRICE (400), OVER_RETURN (409), NUMBERING_FAILED (409)
    """
    data, invalid = json_object_body()
    if invalid:
        return invalid
    try:
        ret = return_service.create_return(
            data.get("sale_id"),
            data.get("items"),
            returned_at=data.get("returned_at"),
            note=data.get("note"),
        )
    except (ReturnError, DocumentSequenceError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create return")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(return_service.serialize_return(ret)), 201


@returns_bp.get("/<int:return_id>")
@require_auth
def get_return_route(return_id: int):
    try:
        ret = return_service.get_return(return_id)
    except ReturnError as e:
        return error_response(e)
    return jsonify(return_service.serialize_return(ret)), 200


@returns_bp.delete("/<int:return_id>")
@require_auth
def delete_return_route(return_id: int):
    try:
        result = return_service.delete_return(return_id)
    except ReturnError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete return %s", return_id)
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(result), 200
