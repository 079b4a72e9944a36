from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z, utcnow
from .base import MONEY


class StoreSettings(db.Model):
    """Single-row store profile used on receipts and reports."""
    __tablename__ = "store_settings"

    id = db.Column(db.Integer, primary_key=True)
    store_name = db.Column(db.String(255), nullable=False, default="My Store")
    address = db.Column(db.Text, nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    currency = db.Column(db.String(8), nullable=False, default="MMK")
    tax_rate = db.Column(MONEY, nullable=False, default=0)
    receipt_footer = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "store_name": self.store_name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "currency": self.currency,
            "tax_rate": money_str(self.tax_rate),
            "receipt_footer": self.receipt_footer,
            "updated_at": to_utc_z(self.updated_at),
        }
