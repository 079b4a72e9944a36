from __future__ import annotations

from ..extensions import db
from ..money import money_str, qty_str
from ..time_utils import to_utc_z, utcnow
from .base import MONEY, QUANTITY


PAYMENT_METHODS = ("CASH", "CARD", "MOBILE", "CREDIT", "SPLIT")


class Sale(db.Model):
    """
    Completed checkout (or debt collection) document.

    invoice_no is the sequential unique key; sale_number is the display form
    derived from it. A voided sale keeps its row with status VOID.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_no = db.Column(db.Integer, nullable=False, unique=True)
    sale_number = db.Column(db.String(32), nullable=False, unique=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    subtotal = db.Column(MONEY, nullable=False, default=0)
    discount = db.Column(MONEY, nullable=False, default=0)
    discount_percent = db.Column(MONEY, nullable=False, default=0)
    tax = db.Column(MONEY, nullable=False, default=0)
    total = db.Column(MONEY, nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False, default="CASH")
    payment_status = db.Column(db.String(16), nullable=False, default="PAID", index=True)  # PAID, UNPAID, PARTIAL
    amount_paid = db.Column(MONEY, nullable=False, default=0)  # settled part of a CREDIT sale
    sale_type = db.Column(db.String(24), nullable=False, default="SALE")  # SALE, DEBT_COLLECTION
    status = db.Column(db.String(16), nullable=False, default="COMPLETED", index=True)  # COMPLETED, HOLD, VOID, RETURNED

    cash_received = db.Column(MONEY, nullable=True)
    change = db.Column(MONEY, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    voided_at = db.Column(db.DateTime, nullable=True)

    user = db.relationship("User")
    customer = db.relationship("Customer", backref=db.backref("sales", lazy="dynamic"))
    items = db.relationship("SaleItem", back_populates="sale", order_by="SaleItem.id")

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_no": self.invoice_no,
            "sale_number": self.sale_number,
            "user_id": self.user_id,
            "cashier_name": self.user.full_name if self.user else None,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount),
            "discount_percent": money_str(self.discount_percent),
            "tax": money_str(self.tax),
            "total": money_str(self.total),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "amount_paid": money_str(self.amount_paid),
            "sale_type": self.sale_type,
            "status": self.status,
            "cash_received": money_str(self.cash_received),
            "change": money_str(self.change),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "voided_at": to_utc_z(self.voided_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(QUANTITY, nullable=False)
    unit_price = db.Column(MONEY, nullable=False)
    discount = db.Column(MONEY, nullable=False, default=0)
    tax = db.Column(MONEY, nullable=False, default=0)
    total = db.Column(MONEY, nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": qty_str(self.quantity),
            "unit_price": money_str(self.unit_price),
            "discount": money_str(self.discount),
            "tax": money_str(self.tax),
            "total": money_str(self.total),
        }


class SalesReturn(db.Model):
    """Refund document compensating (part of) a sale."""
    __tablename__ = "sales_returns"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_number = db.Column(db.String(32), nullable=False, unique=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    total = db.Column(MONEY, nullable=False)
    refund_method = db.Column(db.String(16), nullable=False, default="CASH")
    reason = db.Column(db.String(255), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    sale = db.relationship("Sale", backref=db.backref("returns", lazy=True))
    items = db.relationship("SalesReturnItem", back_populates="sales_return")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_number": self.return_number,
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "user_id": self.user_id,
            "total": money_str(self.total),
            "refund_method": self.refund_method,
            "reason": self.reason,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class SalesReturnItem(db.Model):
    __tablename__ = "sales_return_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sales_return_id = db.Column(db.Integer, db.ForeignKey("sales_returns.id"), nullable=False, index=True)
    sale_item_id = db.Column(db.Integer, db.ForeignKey("sale_items.id"), nullable=False, unique=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(QUANTITY, nullable=False)
    unit_price = db.Column(MONEY, nullable=False)
    total = db.Column(MONEY, nullable=False)

    sales_return = db.relationship("SalesReturn", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_item_id": self.sale_item_id,
            "product_id": self.product_id,
            "quantity": qty_str(self.quantity),
            "unit_price": money_str(self.unit_price),
            "total": money_str(self.total),
        }
