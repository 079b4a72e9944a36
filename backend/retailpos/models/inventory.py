from __future__ import annotations

from ..extensions import db
from ..money import qty_str
from ..time_utils import to_utc_z, utcnow
from .base import QUANTITY


MOVEMENT_TYPES = (
    "OPENING",
    "SALE",
    "PURCHASE",
    "PURCHASE_REVERSAL",
    "ADJUSTMENT",
    "DAMAGE",
    "EXPIRED",
    "LOST",
    "RETURN",
    "IMPORT",
)


class StockMovement(db.Model):
    """
    Append-only stock ledger.

    quantity is signed (negative = outflow). For any product the sum of its
    movements equals its current stock. Rows are never updated or deleted
    outside the administrative transaction wipe.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        db.Index("ix_stock_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    movement_type = db.Column(db.String(24), nullable=False)
    quantity = db.Column(QUANTITY, nullable=False)
    reference_type = db.Column(db.String(32), nullable=True)  # Sale, Purchase, StockAdjustment, SalesReturn, ...
    reference_id = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    product = db.relationship("Product")
    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "user_id": self.user_id,
            "user_name": self.user.full_name if self.user else None,
            "movement_type": self.movement_type,
            "quantity": qty_str(self.quantity),
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class StockAdjustment(db.Model):
    """Manual stock correction with before/after snapshot."""
    __tablename__ = "stock_adjustments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    reason = db.Column(db.String(16), nullable=False)
    before_qty = db.Column(QUANTITY, nullable=False)
    after_qty = db.Column(QUANTITY, nullable=False)
    difference = db.Column(QUANTITY, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "user_id": self.user_id,
            "reason": self.reason,
            "before_qty": qty_str(self.before_qty),
            "after_qty": qty_str(self.after_qty),
            "difference": qty_str(self.difference),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
