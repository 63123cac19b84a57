from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Category(db.Model):
    """Product category (tops, pants, ...). Deactivated rather than deleted."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Size(db.Model):
    """Size label offered when entering variants (S, M, L, ...)."""
    __tablename__ = "sizes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data (one style, identified by its base code).

    SOFT DELETE: products are never hard-deleted. is_deleted hides a product
    from listings and the stock summary, while its variants, movements and
    sale/return history stay referenced.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("base_code", name="uq_products_base_code"),
        db.Index("ix_products_deleted_created", "is_deleted", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    base_code = db.Column(db.String(64), nullable=False)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    image_url = db.Column(db.String(512), nullable=True)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} base_code={self.base_code!r} name={self.name!r}>"

    def to_dict(self, include_variants: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "base_code": self.base_code,
            "category_id": self.category_id,
            "tags": list(self.tags or []),
            "image_url": self.image_url,
            "is_deleted": self.is_deleted,
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_variants:
            data["variants"] = [v.to_dict() for v in self.variants]
        return data


class Variant(db.Model):
    """
    One color/size combination of a product; the unit stock is tracked at.

    base_qty is the quantity recorded when the variant was entered and never
    changes. Current stock is always base_qty + SUM(stock_movements.qty),
    see services/ledger_service.py. cost_price_cents is the running
    weighted-average cost, updated on every inbound receipt.
    """
    __tablename__ = "variants"
    __table_args__ = (
        db.UniqueConstraint("product_id", "color", "size", name="uq_variants_product_color_size"),
        db.UniqueConstraint("product_id", "sku", name="uq_variants_product_sku"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    color = db.Column(db.String(64), nullable=False)
    size = db.Column(db.String(32), nullable=False)

    base_qty = db.Column(db.Integer, nullable=False, default=0)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)

    sku = db.Column(db.String(160), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship(
        "Product",
        backref=db.backref("variants", lazy=True, order_by="Variant.id"),
    )

    def __repr__(self) -> str:
        return f"<Variant id={self.id} sku={self.sku!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "color": self.color,
            "size": self.size,
            "base_qty": self.base_qty,
            "cost_price_cents": self.cost_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "sku": self.sku,
            "created_at": to_utc_z(self.created_at),
        }


def build_sku(base_code: str, color: str, size: str) -> str:
    return f"{base_code}-{color}-{size}"
