# Overview: Request payload validation shared by the product, catalog, stock and document routes.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# 999,999,999 cents; keeps line totals well inside a 64-bit integer
MAX_PRICE_CENTS = 999_999_999

# Upper bound for a single line / movement quantity
MAX_QTY = 1_000_000

# Document and movement notes share one VARCHAR(255) column width
MAX_NOTE_LENGTH = 255

_BOOL_STRINGS = {"true": True, "1": True, "false": False, "0": False}


class ValidationError(ValueError):
    """400-level input problem."""
    status = 400

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", details: dict | None = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate base code)."""
    status = 409

    def __init__(self, message: str, code: str = "CONFLICT", details: dict | None = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns of a model a route accepts.

    writable_fields is the allowlist; anything else in the body is rejected.
    required_on_create lists the keys a POST body must carry.
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


@dataclass(frozen=True)
class LineItemInput:
    """One validated sale/return line."""
    variant_id: int
    qty: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.qty * self.unit_price_cents


def coerce_int(value: Any, field: str, *, code: str = "VALIDATION_ERROR") -> int:
    """
    Strict integer coercion.

    Accepts ints and strings of optionally signed digits. Rejects bools,
    floats, "12.5", "1e3" and blanks, so a quantity or cent amount is never
    silently truncated.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", code=code)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{field} must be a whole number", code=code)
    if isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text[:1] in "+-" else text
        if digits.isdigit() and digits.isascii():
            return int(text)
        raise ValidationError(f"{field} must be a whole number", code=code)
    raise ValidationError(f"{field} must be an integer", code=code)


def _coerce_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _BOOL_STRINGS:
        return _BOOL_STRINGS[value.strip().lower()]
    raise ValidationError(f"{field} must be true or false")


def _coerce_column(col, value: Any):
    """Normalize one non-null body value to the column's Python type."""
    if isinstance(col.type, Boolean):
        return _coerce_bool(value, col.key)
    if isinstance(col.type, Integer):
        return coerce_int(value, col.key)
    if isinstance(col.type, (String, Text)):
        text = str(value).strip()
        if not text and not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        limit = getattr(col.type, "length", None)
        if limit and len(text) > limit:
            raise ValidationError(f"{col.key} exceeds max length {limit}")
        return text
    # JSON columns (tags) are checked by the model-specific rules
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn a JSON body into a patch dict for `model`.

    Keys must be in policy.writable_fields and be real columns. Values are
    coerced using the column type; NOT NULL columns refuse null and blank
    strings; String(n) lengths are enforced. With partial=False the keys in
    policy.required_on_create must be present.
    """
    body = {} if payload is None else payload
    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted((policy.required_on_create or set()) - body.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}
    for key, raw in body.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        col = columns.get(key)
        if col is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _coerce_column(col, raw)
    return patch


def clean_note(note: Any) -> str | None:
    """Stripped note text, None when absent or blank. Over-long notes are rejected, not cut."""
    if note is None:
        return None
    text = str(note).strip()
    if len(text) > MAX_NOTE_LENGTH:
        raise ValidationError(
            f"note exceeds max length {MAX_NOTE_LENGTH}",
            details={"length": len(text), "max_length": MAX_NOTE_LENGTH},
        )
    return text or None


def _check_price(price: int, field: str, code: str) -> None:
    if price < 0:
        raise ValidationError(f"{field} must be >= 0", code=code)
    if price > MAX_PRICE_CENTS:
        raise ValidationError(
            f"{field} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})",
            code=code,
        )


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "tags" in patch and patch["tags"] is not None:
        tags = patch["tags"]
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise ValidationError("tags must be a list of strings")
        # Set semantics, first occurrence wins
        seen: list[str] = []
        for tag in (t.strip() for t in tags):
            if tag and tag not in seen:
                seen.append(tag)
        patch["tags"] = seen


def parse_variant_inputs(raw_variants: Any) -> list[dict]:
    """
    Normalize the variants of a product-entry payload.

    Lines missing color or size are dropped (the entry form sends blank rows).
    Prices and quantities on the remaining lines are validated strictly.
    """
    if raw_variants is None:
        return []
    if not isinstance(raw_variants, list):
        raise ValidationError("variants must be a list")

    variants = []
    for raw in raw_variants:
        if not isinstance(raw, dict):
            raise ValidationError("each variant must be an object")
        color = str(raw.get("color") or "").strip()
        size = str(raw.get("size") or "").strip()
        if not color or not size:
            continue

        qty = coerce_int(raw.get("qty", 0), "qty", code="INVALID_QTY")
        if qty < 0 or qty > MAX_QTY:
            raise ValidationError("qty must be between 0 and 1000000", code="INVALID_QTY")

        cost = coerce_int(raw.get("cost_price_cents", 0), "cost_price_cents", code="INVALID_PRICE")
        _check_price(cost, "cost_price_cents", "INVALID_PRICE")
        sale_price = coerce_int(raw.get("sale_price_cents", 0), "sale_price_cents", code="INVALID_PRICE")
        _check_price(sale_price, "sale_price_cents", "INVALID_PRICE")

        sku = raw.get("sku")
        variants.append({
            "color": color,
            "size": size,
            "qty": qty,
            "cost_price_cents": cost,
            "sale_price_cents": sale_price,
            "sku": str(sku).strip() if sku else None,
        })
    return variants


def parse_line_items(raw_items: Any, *, allow_zero_price: bool) -> list[LineItemInput]:
    """
    Validate sale/return lines before any transaction is opened.

    Checks run field by field over the whole list so the first error reported
    is the most basic one (missing variant before bad quantity before bad price).

    allow_zero_price: sales accept free items (unit price >= 0); returns
    require a positive refund price.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Add at least one item", code="EMPTY_ITEMS")

    for raw in raw_items:
        if not isinstance(raw, dict):
            raise ValidationError("Each item must be an object", code="MISSING_VARIANT")

    variant_ids: list[int] = []
    for raw in raw_items:
        value = raw.get("variant_id")
        if value is None or value == "":
            raise ValidationError("Select a variant for every item", code="MISSING_VARIANT")
        try:
            variant_ids.append(coerce_int(value, "variant_id", code="MISSING_VARIANT"))
        except ValidationError:
            raise ValidationError("Select a variant for every item", code="MISSING_VARIANT")

    quantities: list[int] = []
    for raw in raw_items:
        qty = coerce_int(raw.get("qty", 0), "qty", code="INVALID_QTY")
        if qty <= 0:
            raise ValidationError("Quantity must be greater than 0", code="INVALID_QTY")
        if qty > MAX_QTY:
            raise ValidationError(f"Quantity cannot exceed {MAX_QTY}", code="INVALID_QTY")
        quantities.append(qty)

    prices: list[int] = []
    for raw in raw_items:
        price = coerce_int(raw.get("unit_price_cents", 0), "unit_price_cents", code="INVALID_PRICE")
        if allow_zero_price:
            if price < 0:
                raise ValidationError("Unit price cannot be negative", code="INVALID_PRICE")
        elif price <= 0:
            raise ValidationError("Unit price must be greater than 0", code="INVALID_PRICE")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"Unit price cannot exceed {MAX_PRICE_CENTS}", code="INVALID_PRICE")
        prices.append(price)

    return [
        LineItemInput(variant_id=v, qty=q, unit_price_cents=p)
        for v, q, p in zip(variant_ids, quantities, prices)
    ]


def sum_by_variant(items) -> dict[int, int]:
    """Total requested quantity per variant across (possibly repeated) lines."""
    totals: dict[int, int] = {}
    for item in items:
        totals[item.variant_id] = totals.get(item.variant_id, 0) + item.qty
    return totals
