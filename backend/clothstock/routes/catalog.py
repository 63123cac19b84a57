# Overview: Flask API routes for categories and sizes; parses input and returns JSON responses.

# backend/clothstock/routes/catalog.py
"""
Category and size lookup lists.

Both resources share the same shape (name + is_active) and the same rules,
so one set of handlers serves two blueprints.
"""

from flask import Blueprint, request, jsonify, current_app

from ..models import Category, Size
from ..services import catalog_service
from ..services.catalog_service import CatalogError
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from ..decorators import require_auth, error_response


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")
sizes_bp = Blueprint("sizes", __name__, url_prefix="/api/sizes")

LOOKUP_POLICY = ModelValidationPolicy(
    writable_fields={"name", "is_active"},
    required_on_create={"name"},
)


def _list(model):
    active_only = request.args.get("active") == "true"
    rows = catalog_service.list_entries(model, active_only=active_only)
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)}), 200


def _create(model):
    try:
        patch = validate_payload(
            model=model, payload=request.get_json(silent=True), policy=LOOKUP_POLICY, partial=False
        )
        row = catalog_service.create_entry(model, patch.get("name"))
        return jsonify(row.to_dict()), 201
    except (ValidationError, CatalogError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create %s", model.__tablename__)
        return jsonify({"error": "Internal server error"}), 500


def _update(model, row_id: int):
    try:
        patch = validate_payload(
            model=model, payload=request.get_json(silent=True), policy=LOOKUP_POLICY, partial=True
        )
        row = catalog_service.update_entry(model, row_id, patch)
        return jsonify(row.to_dict()), 200
    except (ValidationError, CatalogError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update %s %s", model.__tablename__, row_id)
        return jsonify({"error": "Internal server error"}), 500


def _deactivate(model, row_id: int):
    try:
        row = catalog_service.deactivate_entry(model, row_id)
        return jsonify(row.to_dict()), 200
    except CatalogError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to deactivate %s %s", model.__tablename__, row_id)
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.get("")
@require_auth
def list_categories_route():
    return _list(Category)


@categories_bp.post("")
@require_auth
def create_category_route():
    return _create(Category)


@categories_bp.patch("/<int:category_id>")
@require_auth
def update_category_route(category_id: int):
    return _update(Category, category_id)


@categories_bp.delete("/<int:category_id>")
@require_auth
def delete_category_route(category_id: int):
    """Soft delete: the category is deactivated, products keep their link."""
    return _deactivate(Category, category_id)


@sizes_bp.get("")
@require_auth
def list_sizes_route():
    return _list(Size)


@sizes_bp.post("")
@require_auth
def create_size_route():
    return _create(Size)


@sizes_bp.patch("/<int:size_id>")
@require_auth
def update_size_route(size_id: int):
    return _update(Size, size_id)


@sizes_bp.delete("/<int:size_id>")
@require_auth
def delete_size_route(size_id: int):
    return _deactivate(Size, size_id)
