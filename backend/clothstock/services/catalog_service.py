# Overview: Service-layer operations for categories and sizes (the lookup lists behind product entry).

from __future__ import annotations

from ..extensions import db
from ..models import Category, Size

DEFAULT_CATEGORIES = [
    "Tops",
    "Pants",
    "Outerwear",
    "Dresses",
    "Skirts",
    "Sportswear",
    "Underwear",
    "Accessories",
]

DEFAULT_SIZES = ["S", "M", "L", "XL", "2XL"]

# model -> (not found code, label)
_LOOKUPS = {
    Category: ("CATEGORY_NOT_FOUND", "Category"),
    Size: ("SIZE_NOT_FOUND", "Size"),
}


class CatalogError(Exception):
    """Raised for catalog lookups and product maintenance failures."""

    def __init__(self, code: str, message: str, details: dict | None = None, status: int = 400):
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.status = status


def _require(model, row_id: int):
    row = db.session.query(model).filter_by(id=row_id).first()
    if row is None:
        code, label = _LOOKUPS[model]
        raise CatalogError(code, f"{label} not found", {"id": row_id}, status=404)
    return row


def _clean_name(model, name) -> str:
    cleaned = str(name or "").strip()
    if not cleaned:
        _, label = _LOOKUPS[model]
        raise CatalogError("VALIDATION_ERROR", f"{label} name cannot be blank")
    return cleaned


def list_entries(model, *, active_only: bool = False) -> list:
    q = db.session.query(model)
    if active_only:
        q = q.filter(model.is_active.is_(True))
    return q.order_by(model.created_at.asc(), model.id.asc()).all()


def create_entry(model, name):
    row = model(name=_clean_name(model, name), is_active=True)
    db.session.add(row)
    db.session.commit()
    return row


def update_entry(model, row_id: int, patch: dict):
    """Rename and/or toggle is_active. Only keys present in patch change."""
    row = _require(model, row_id)
    if "name" in patch:
        row.name = _clean_name(model, patch["name"])
    if "is_active" in patch and patch["is_active"] is not None:
        row.is_active = bool(patch["is_active"])
    db.session.commit()
    return row


def deactivate_entry(model, row_id: int):
    """
    Deactivate instead of delete.

    WHY: Products keep pointing at their category; deleting the row would
    orphan them in the stock summary rollups.
    """
    row = _require(model, row_id)
    row.is_active = False
    db.session.commit()
    return row


def require_category(category_id: int) -> Category:
    return _require(Category, category_id)


def seed_defaults() -> dict:
    """
    Seed default categories and sizes when their tables are empty.

    Safe to call repeatedly (idempotent).
    """
    created = {"categories": 0, "sizes": 0}
    if db.session.query(Category).count() == 0:
        for name in DEFAULT_CATEGORIES:
            db.session.add(Category(name=name, is_active=True))
        created["categories"] = len(DEFAULT_CATEGORIES)
    if db.session.query(Size).count() == 0:
        for name in DEFAULT_SIZES:
            db.session.add(Size(name=name, is_active=True))
        created["sizes"] = len(DEFAULT_SIZES)
    db.session.commit()
    return created
