# Overview: Categories, units and products; uniqueness rules, price history and retirement.

from __future__ import annotations

import math
from decimal import Decimal

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Category, PriceHistory, Product, Unit
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_amount,
    parse_date_arg,
    parse_int_id,
    require_text,
)
from . import lifecycle_service
from .stock_service import apply_movement

PRODUCTS_PAGE_SIZE = 10
DEFAULT_MIN_STOCK = Decimal("5")
DEFAULT_UNIT = "pcs"


# Categories

def list_categories(include_inactive: bool = False) -> list[Category]:
    q = db.session.query(Category)
    if not include_inactive:
        q = q.filter(Category.active())
    return q.order_by(Category.name.asc()).all()


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


def _category_name_taken(name: str, exclude_id: int | None = None) -> bool:
    q = db.session.query(Category).filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    return q.first() is not None


def create_category(data: dict) -> Category:
    name = require_text(data, "name", label="Category name")
    if _category_name_taken(name):
        raise ConflictError("Category with this name already exists")
    category = Category(name=name, description=optional_text(data, "description"))
    db.session.add(category)
    db.session.commit()
    return category


def update_category(category_id: int, data: dict) -> Category:
    category = get_category(category_id)
    if "name" in data:
        name = require_text(data, "name", label="Category name")
        if _category_name_taken(name, exclude_id=category.id):
            raise ConflictError("Category with this name already exists")
        category.name = name
    if "description" in data:
        category.description = optional_text(data, "description")
    db.session.commit()
    return category


def delete_category(category_id: int) -> None:
    lifecycle_service.retire(get_category(category_id))
    db.session.commit()


# Units

def list_units(include_inactive: bool = False) -> list[Unit]:
    q = db.session.query(Unit)
    if not include_inactive:
        q = q.filter(Unit.active())
    return q.order_by(Unit.name.asc()).all()


def get_unit(unit_id: int) -> Unit:
    unit = db.session.get(Unit, unit_id)
    if unit is None:
        raise NotFoundError("Unit not found")
    return unit


def _check_unit_unique(name: str, short_name: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Unit)
    if exclude_id is not None:
        q = q.filter(Unit.id != exclude_id)
    if q.filter(func.lower(Unit.name) == name.lower()).first():
        raise ConflictError("Unit with this name already exists")
    if q.filter(func.lower(Unit.short_name) == short_name.lower()).first():
        raise ConflictError("Unit with this short name already exists")


def create_unit(data: dict) -> Unit:
    name = require_text(data, "name", label="Unit name")
    short_name = require_text(data, "short_name", label="Short name")
    _check_unit_unique(name, short_name)
    unit = Unit(name=name, short_name=short_name)
    db.session.add(unit)
    db.session.commit()
    return unit


def update_unit(unit_id: int, data: dict) -> Unit:
    unit = get_unit(unit_id)
    name = require_text(data, "name", label="Unit name") if "name" in data else unit.name
    short_name = require_text(data, "short_name", label="Short name") if "short_name" in data else unit.short_name
    _check_unit_unique(name, short_name, exclude_id=unit.id)
    unit.name = name
    unit.short_name = short_name
    db.session.commit()
    return unit


def delete_unit(unit_id: int) -> None:
    lifecycle_service.retire(get_unit(unit_id))
    db.session.commit()


# Products

def list_products(query: str | None = None, page: int = 1, category_id=None) -> dict:
    page = max(1, int(page or 1))
    q = db.session.query(Product).filter(Product.active())
    if query and query.strip():
        term = f"%{query.strip()}%"
        q = q.filter(or_(Product.name.ilike(term), Product.barcode.ilike(term), Product.sku.ilike(term)))
    if category_id not in (None, "", "all"):
        q = q.filter(Product.category_id == parse_int_id(category_id, "category_id"))

    total = q.count()
    products = (
        q.order_by(Product.created_at.desc(), Product.id.desc())
        .offset((page - 1) * PRODUCTS_PAGE_SIZE)
        .limit(PRODUCTS_PAGE_SIZE)
        .all()
    )
    return {
        "products": [p.to_dict() for p in products],
        "total": total,
        "page": page,
        "total_pages": math.ceil(total / PRODUCTS_PAGE_SIZE),
    }


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def _check_identifiers(barcode: str | None, sku: str | None, exclude_id: int | None = None) -> None:
    q = db.session.query(Product)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if barcode and q.filter(Product.barcode == barcode).first():
        raise ConflictError("Barcode already exists. Please use a different barcode.")
    if sku and q.filter(Product.sku == sku).first():
        raise ConflictError("SKU already exists. Please use a different SKU.")


def _resolve_category(category_id, current_id: int | None = None) -> int | None:
    if category_id in (None, ""):
        return None
    category_id = parse_int_id(category_id, "category_id")
    if category_id == current_id:
        return category_id
    category = db.session.get(Category, category_id)
    if category is None or not category.is_active:
        raise ValidationError("Category not found")
    return category.id


def _product_fields(data: dict, current_category_id: int | None = None) -> dict:
    return {
        "name": require_text(data, "name", label="Product name"),
        "barcode": optional_text(data, "barcode"),
        "sku": optional_text(data, "sku"),
        "description": optional_text(data, "description"),
        "category_id": _resolve_category(data.get("category_id"), current_category_id),
        "purchase_price": parse_amount(data.get("purchase_price"), "purchase_price", required=True),
        "selling_price": parse_amount(data.get("selling_price"), "selling_price", required=True),
        "min_stock_level": parse_amount(data.get("min_stock_level"), "min_stock_level")
        if data.get("min_stock_level") not in (None, "") else DEFAULT_MIN_STOCK,
        "unit": optional_text(data, "unit") or DEFAULT_UNIT,
        "expiry_date": parse_date_arg(data.get("expiry_date"), "expiry_date"),
    }


def create_product(data: dict, user_id: int | None) -> Product:
    """Create a product. A non-zero initial stock is recorded as an OPENING movement."""
    fields = _product_fields(data)
    _check_identifiers(fields["barcode"], fields["sku"])
    opening = parse_amount(data.get("stock"), "stock")

    product = Product(stock=0, **fields)
    db.session.add(product)
    db.session.flush()
    if opening > 0:
        apply_movement(product, opening, "OPENING", user_id,
                       reference_type="Product", reference_id=product.id, notes="Opening stock")
    db.session.commit()
    return product


def record_price_change(product: Product, price_type: str, old, new, user_id: int | None, reason: str) -> None:
    if Decimal(old) == Decimal(new):
        return
    db.session.add(PriceHistory(
        product_id=product.id,
        user_id=user_id,
        price_type=price_type,
        old_price=old,
        new_price=new,
        reason=reason,
    ))


def update_product(product_id: int, data: dict, user_id: int | None) -> Product:
    """
    Update catalog fields. Stock is never changed here; use purchases or
    adjustments. Price changes are written to PriceHistory.
    """
    product = get_product(product_id)
    merged = product.to_dict()
    merged.update({k: v for k, v in data.items() if k != "stock"})
    fields = _product_fields(merged, current_category_id=product.category_id)
    _check_identifiers(fields["barcode"], fields["sku"], exclude_id=product.id)

    record_price_change(product, "COST", product.purchase_price, fields["purchase_price"], user_id, "Manual Update")
    record_price_change(product, "SELLING", product.selling_price, fields["selling_price"], user_id, "Manual Update")
    for key, value in fields.items():
        setattr(product, key, value)
    db.session.commit()
    return product


def delete_product(product_id: int) -> None:
    lifecycle_service.retire(get_product(product_id))
    db.session.commit()


def list_price_history(product_id: int) -> list[PriceHistory]:
    get_product(product_id)
    return (
        db.session.query(PriceHistory)
        .filter(PriceHistory.product_id == product_id)
        .order_by(PriceHistory.created_at.desc(), PriceHistory.id.desc())
        .all()
    )
