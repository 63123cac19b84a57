# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/clothstock/routes/products.py
"""
Product management routes.

A product is entered together with its color/size variants. Products are
soft-deleted (DELETE or PATCH is_deleted=true) and can be restored.

SECURITY: All routes require authentication.
"""
from flask import Blueprint, request, jsonify, current_app

from ..services import products_service
from ..services.catalog_service import CatalogError
from ..models import Product
from ..time_utils import parse_range_bound
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    parse_variant_inputs,
    ValidationError,
    ConflictError,
)
from ..decorators import error_response, json_object_body, require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "base_code", "category_id", "tags", "image_url"},
    required_on_create={"name", "base_code"},
)

PRODUCT_PATCH_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category_id", "tags", "image_url", "is_deleted"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products with their variants.

    Query params:
    - deleted: "true" (deleted only) | "all" | omitted (live only)
    - keyword: matches name or base code
    - start, end: deleted_at range (YYYY-MM-DD or ISO-8601), only with deleted=true
    """
    try:
        start = parse_range_bound(request.args.get("start"))
        end = parse_range_bound(request.args.get("end"), end=True)
    except ValueError:
        return jsonify({"error": "start/end must be YYYY-MM-DD or ISO-8601", "code": "VALIDATION_ERROR"}), 400

    products = products_service.list_products(
        deleted=request.args.get("deleted"),
        keyword=request.args.get("keyword"),
        start=start,
        end=end,
    )
    items = [products_service.serialize_product(p) for p in products]
    return jsonify({"items": items, "count": len(items)}), 200


@products_bp.post("")
@require_auth
def create_product_route():
    """
    Create a product with its variants.

    Body: name, base_code, category_id?, tags?, image_url?, variants: [
      {color, size, qty, cost_price_cents, sale_price_cents, sku?}
    ]
    """
    payload, invalid = json_object_body()
    if invalid:
        return invalid

    header = {k: v for k, v in payload.items() if k != "variants"}
    try:
        patch = validate_payload(model=Product, payload=header, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        variants = parse_variant_inputs(payload.get("variants"))
        product = products_service.create_product(patch=patch, variants=variants)
    except (ValidationError, ConflictError, CatalogError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Product created: %s", product.base_code)
    return jsonify(products_service.serialize_product(product)), 201


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except CatalogError as e:
        return error_response(e)
    return jsonify(products_service.serialize_product(product)), 200


@products_bp.patch("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    """
    Edit header fields and/or soft delete / restore (is_deleted).
    """
    try:
        patch = validate_payload(
            model=Product,
            payload=request.get_json(silent=True),
            policy=PRODUCT_PATCH_POLICY,
            partial=True,
        )
        enforce_rules_product(patch)
        is_deleted = patch.pop("is_deleted", None)

        product = products_service.update_product(product_id, patch)
        if is_deleted is not None:
            product = products_service.set_product_deleted(product_id, is_deleted)
    except (ValidationError, CatalogError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(products_service.serialize_product(product)), 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """Soft delete; history and stock movements stay intact."""
    try:
        product = products_service.set_product_deleted(product_id, True)
    except CatalogError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(products_service.serialize_product(product)), 200
