# backend/clothstock/services/products_service.py
"""
Products Service

Products are entered together with their variants (color x size). The
quantity typed on entry becomes the variant's immutable base_qty; all later
stock changes go through the movement ledger.

Products are soft-deleted: is_deleted hides them from listings and the stock
summary while keeping sale/return history intact.
"""
from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, Variant, build_sku
from ..validation import ConflictError, ValidationError
from ..time_utils import utcnow
from .catalog_service import CatalogError, require_category
from .concurrency import run_in_transaction

PRODUCT_MUTABLE_FIELDS = {"name", "category_id", "tags", "image_url"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def get_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None:
        raise CatalogError("PRODUCT_NOT_FOUND", "Product not found", {"product_id": product_id}, status=404)
    return product


def serialize_product(product: Product) -> dict:
    data = product.to_dict(include_variants=True)
    data["category_name"] = product.category.name if product.category else None
    return data


def list_products(
    deleted: str | None = None,
    keyword: str | None = None,
    start=None,
    end=None,
) -> list[Product]:
    """
    Product listing.

    deleted:
    - None (default): live products only
    - "true": deleted products only; start/end then filter on deleted_at
    - "all": everything, no keyword/date filtering
    """
    q = db.session.query(Product)
    if deleted == "all":
        return q.order_by(Product.created_at.desc(), Product.id.desc()).all()

    deleted_only = deleted == "true"
    q = q.filter(Product.is_deleted.is_(deleted_only))

    kw = (keyword or "").strip()
    if kw:
        like = f"%{kw}%"
        q = q.filter(or_(Product.name.ilike(like), Product.base_code.ilike(like)))

    if deleted_only:
        if start is not None:
            q = q.filter(Product.deleted_at >= start)
        if end is not None:
            q = q.filter(Product.deleted_at <= end)
        return q.order_by(Product.deleted_at.desc(), Product.id.desc()).all()

    return q.order_by(Product.created_at.desc(), Product.id.desc()).all()


def ensure_variant(
    product: Product,
    color: str,
    size: str,
    *,
    base_qty: int = 0,
    cost_price_cents: int = 0,
    sale_price_cents: int = 0,
    sku: str | None = None,
) -> tuple[Variant, bool]:
    """
    Return the (product, color, size) variant, creating it if missing.

    Returns (variant, created). An existing variant is never modified here.
    """
    color = color.strip()
    size = size.strip()
    variant = (
        db.session.query(Variant)
        .filter_by(product_id=product.id, color=color, size=size)
        .first()
    )
    if variant is not None:
        return variant, False

    variant = Variant(
        product_id=product.id,
        color=color,
        size=size,
        base_qty=base_qty,
        cost_price_cents=cost_price_cents,
        sale_price_cents=sale_price_cents,
        sku=sku or build_sku(product.base_code, color, size),
    )
    db.session.add(variant)
    db.session.flush()
    return variant, True


def _merge_variant_lines(variants: list[dict]) -> list[dict]:
    """Lines with the same (color, size) become one variant: quantities add, last prices win."""
    merged: dict[tuple[str, str], dict] = {}
    for line in variants:
        key = (line["color"], line["size"])
        existing = merged.get(key)
        if existing is None:
            merged[key] = dict(line)
            continue
        existing["qty"] += line["qty"]
        existing["cost_price_cents"] = line["cost_price_cents"]
        existing["sale_price_cents"] = line["sale_price_cents"]
        if line.get("sku"):
            existing["sku"] = line["sku"]
    return list(merged.values())


def create_product(*, patch: dict, variants: list[dict]) -> Product:
    """
    Create a product with its variants in one transaction.

    patch: validated header fields (name, base_code, category_id, tags, image_url)
    variants: normalized lines from validation.parse_variant_inputs

    Raises:
        ValidationError: no usable variant line
        CatalogError: unknown category
        ConflictError: base code already used (DUPLICATE_BASE_CODE)
    """
    lines = _merge_variant_lines(variants)
    if not lines:
        raise ValidationError("Add at least one variant with color and size", code="EMPTY_ITEMS")

    base_code = patch["base_code"]

    def _op():
        if patch.get("category_id") is not None:
            require_category(patch["category_id"])

        existing = db.session.query(Product.id).filter(Product.base_code == base_code).first()
        if existing:
            raise ConflictError(
                "Base code already exists",
                code="DUPLICATE_BASE_CODE",
                details={"base_code": base_code},
            )

        product = Product(base_code=base_code, tags=[])
        apply_product_patch(product, patch)
        db.session.add(product)
        db.session.flush()

        for line in lines:
            ensure_variant(
                product,
                line["color"],
                line["size"],
                base_qty=line["qty"],
                cost_price_cents=line["cost_price_cents"],
                sale_price_cents=line["sale_price_cents"],
                sku=line.get("sku"),
            )
        return product

    try:
        return run_in_transaction(_op)
    except IntegrityError as exc:
        # A concurrent entry won the unique base code
        if "base_code" in str(exc.orig):
            raise ConflictError(
                "Base code already exists",
                code="DUPLICATE_BASE_CODE",
                details={"base_code": base_code},
            )
        if "sku" in str(exc.orig):
            raise ConflictError("Two variants share the same SKU")
        raise


def update_product(product_id: int, patch: dict) -> Product:
    """Edit header fields. base_code is fixed once variants carry SKUs derived from it."""
    product = get_product(product_id)
    if patch.get("category_id") is not None:
        require_category(patch["category_id"])
    apply_product_patch(product, patch)
    db.session.commit()
    return product


def set_product_deleted(product_id: int, is_deleted: bool) -> Product:
    """Soft delete (is_deleted=True) or restore (False) a product."""
    product = get_product(product_id)
    product.is_deleted = bool(is_deleted)
    product.deleted_at = utcnow() if is_deleted else None
    db.session.commit()
    return product
