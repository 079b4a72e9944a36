from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z, utcnow
from .base import MONEY, LifecycleMixin


class Customer(LifecycleMixin, db.Model):
    """
    Customer with running credit/spend statistics.

    credit_balance is outstanding debt from CREDIT sales. The walk-in record
    (is_walk_in=True) is a placeholder and never accumulates statistics.
    """
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True, unique=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)

    credit_limit = db.Column(MONEY, nullable=False, default=0)
    opening_balance = db.Column(MONEY, nullable=False, default=0)
    credit_balance = db.Column(MONEY, nullable=False, default=0)
    total_spent = db.Column(MONEY, nullable=False, default=0)
    visit_count = db.Column(db.Integer, nullable=False, default=0)

    is_walk_in = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "credit_limit": money_str(self.credit_limit),
            "opening_balance": money_str(self.opening_balance),
            "credit_balance": money_str(self.credit_balance),
            "total_spent": money_str(self.total_spent),
            "visit_count": self.visit_count,
            "is_walk_in": self.is_walk_in,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class CustomerPayment(db.Model):
    """Debt repayment received from a customer."""
    __tablename__ = "customer_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    amount = db.Column(MONEY, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, default="CASH")
    notes = db.Column(db.Text, nullable=True)
    paid_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    customer = db.relationship("Customer", backref=db.backref("payments", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "user_id": self.user_id,
            "amount": money_str(self.amount),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "paid_at": to_utc_z(self.paid_at),
        }


class Supplier(LifecycleMixin, db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    company_name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)

    credit_limit = db.Column(MONEY, nullable=False, default=0)
    opening_balance = db.Column(MONEY, nullable=False, default=0)
    # Amount we owe the supplier
    credit_balance = db.Column(MONEY, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "company_name": self.company_name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "credit_limit": money_str(self.credit_limit),
            "opening_balance": money_str(self.opening_balance),
            "credit_balance": money_str(self.credit_balance),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
