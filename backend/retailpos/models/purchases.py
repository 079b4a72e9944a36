from __future__ import annotations

from ..extensions import db
from ..money import money_str, qty_str
from ..time_utils import to_utc_z, utcnow
from .base import MONEY, QUANTITY


class Purchase(db.Model):
    """Supplier purchase order. Stock is received when the purchase is created."""
    __tablename__ = "purchases"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    po_number = db.Column(db.String(64), nullable=False, unique=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    subtotal = db.Column(MONEY, nullable=False, default=0)
    discount = db.Column(MONEY, nullable=False, default=0)
    tax = db.Column(MONEY, nullable=False, default=0)
    total = db.Column(MONEY, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="RECEIVED", index=True)  # PENDING, RECEIVED, CANCELLED
    notes = db.Column(db.Text, nullable=True)
    purchase_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    received_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy="dynamic"))
    items = db.relationship("PurchaseItem", back_populates="purchase", order_by="PurchaseItem.id")
    payments = db.relationship("PurchasePayment", back_populates="purchase", order_by="PurchasePayment.id")

    @property
    def paid_amount(self):
        return sum((p.amount for p in self.payments), start=0)

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "po_number": self.po_number,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "user_id": self.user_id,
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount),
            "tax": money_str(self.tax),
            "total": money_str(self.total),
            "paid_amount": money_str(self.paid_amount),
            "status": self.status,
            "notes": self.notes,
            "purchase_date": to_utc_z(self.purchase_date),
            "received_at": to_utc_z(self.received_at),
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class PurchaseItem(db.Model):
    __tablename__ = "purchase_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(QUANTITY, nullable=False)
    unit_price = db.Column(MONEY, nullable=False)
    total = db.Column(MONEY, nullable=False)
    received_qty = db.Column(QUANTITY, nullable=False, default=0)

    purchase = db.relationship("Purchase", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": qty_str(self.quantity),
            "unit_price": money_str(self.unit_price),
            "total": money_str(self.total),
            "received_qty": qty_str(self.received_qty),
        }


class PurchasePayment(db.Model):
    __tablename__ = "purchase_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    amount = db.Column(MONEY, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, default="CASH")
    notes = db.Column(db.Text, nullable=True)
    paid_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    purchase = db.relationship("Purchase", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "supplier_id": self.supplier_id,
            "amount": money_str(self.amount),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "paid_at": to_utc_z(self.paid_at),
        }
