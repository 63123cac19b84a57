from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Return(db.Model):
    """
    Return document against one sale.

    Returned quantity per variant is capped, cumulatively across all returns
    of the same sale, by what that sale sold (services/return_service.py).
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.UniqueConstraint("return_no", name="uq_returns_return_no"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    # e.g. R20240115-0001
    return_no = db.Column(db.String(32), nullable=False)

    returned_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("returns", lazy=True))

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "sale_id": self.sale_id,
            "sale_no": self.sale.sale_no if self.sale else None,
            "return_no": self.return_no,
            "returned_at": to_utc_z(self.returned_at),
            "total_amount_cents": self.total_amount_cents,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ReturnItem(db.Model):
    __tablename__ = "return_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)

    qty = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    return_doc = db.relationship("Return", backref=db.backref("items", lazy=True, order_by="ReturnItem.id"))
    variant = db.relationship("Variant")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "variant_id": self.variant_id,
            "qty": self.qty,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class DocumentCounter(db.Model):
    """
    Last sequence used per (document type, business day).

    WHY: Incrementing this row inside the document's own transaction
    serializes concurrent writers on the row and rolls back with them.
    """
    __tablename__ = "document_counters"
    __table_args__ = (
        db.UniqueConstraint("document_type", "date_key", name="uq_document_counters_type_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(16), nullable=False)
    date_key = db.Column(db.String(8), nullable=False)  # YYYYMMDD
    last_seq = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "date_key": self.date_key,
            "last_seq": self.last_seq,
            "updated_at": to_utc_z(self.updated_at),
        }
