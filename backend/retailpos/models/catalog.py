from __future__ import annotations

from ..extensions import db
from ..money import money_str, qty_str
from ..time_utils import to_utc_z, utcnow
from .base import MONEY, QUANTITY, LifecycleMixin


class Category(LifecycleMixin, db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "lifecycle_state": self.lifecycle_state,
            "created_at": to_utc_z(self.created_at),
        }


class Unit(LifecycleMixin, db.Model):
    """Unit of measure; products reference it by short name (e.g. 'pcs')."""
    __tablename__ = "units"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    short_name = db.Column(db.String(16), nullable=False, unique=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "short_name": self.short_name,
            "is_active": self.is_active,
            "lifecycle_state": self.lifecycle_state,
        }


class Product(LifecycleMixin, db.Model):
    """
    Sellable catalog item.

    `stock` is only changed by sales, purchases, returns, adjustments and
    imports, and every change writes a StockMovement row.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(64), nullable=True, unique=True)
    sku = db.Column(db.String(64), nullable=True, unique=True)
    description = db.Column(db.Text, nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    purchase_price = db.Column(MONEY, nullable=False, default=0)
    selling_price = db.Column(MONEY, nullable=False, default=0)
    stock = db.Column(QUANTITY, nullable=False, default=0)
    min_stock_level = db.Column(QUANTITY, nullable=False, default=5)
    unit = db.Column(db.String(16), nullable=False, default="pcs")
    expiry_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    category = db.relationship("Category", backref=db.backref("products", lazy="dynamic"))

    @property
    def is_low_stock(self) -> bool:
        if self.stock is None or self.min_stock_level is None:
            return False
        return self.stock <= self.min_stock_level

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "barcode": self.barcode,
            "sku": self.sku,
            "description": self.description,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "purchase_price": money_str(self.purchase_price),
            "selling_price": money_str(self.selling_price),
            "stock": qty_str(self.stock),
            "min_stock_level": qty_str(self.min_stock_level),
            "unit": self.unit,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "is_active": self.is_active,
            "is_low_stock": self.is_low_stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PriceHistory(db.Model):
    """Audit row for every cost or selling price change."""
    __tablename__ = "price_history"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    price_type = db.Column(db.String(16), nullable=False)  # COST, SELLING
    old_price = db.Column(MONEY, nullable=False)
    new_price = db.Column(MONEY, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "user_id": self.user_id,
            "price_type": self.price_type,
            "old_price": money_str(self.old_price),
            "new_price": money_str(self.new_price),
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }
