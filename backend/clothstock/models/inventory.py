from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"
MOVEMENT_RETURN = "RETURN"
MOVEMENT_ADJUST = "ADJUST"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_RETURN, MOVEMENT_ADJUST)


class StockMovement(db.Model):
    """
    Append-only stock ledger entry.

    Sign convention: IN and RETURN are positive, OUT is negative, ADJUST is
    either sign but never zero. Rows are only removed together with their
    parent sale or return.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("qty <> 0", name="ck_stock_movements_qty_nonzero"),
        db.Index("ix_stock_movements_variant_created", "variant_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("variants.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)
    qty = db.Column(db.Integer, nullable=False)

    # Only meaningful for IN
    unit_cost_cents = db.Column(db.Integer, nullable=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=True, index=True)

    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    variant = db.relationship("Variant", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "type": self.type,
            "qty": self.qty,
            "unit_cost_cents": self.unit_cost_cents,
            "sale_id": self.sale_id,
            "return_id": self.return_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
