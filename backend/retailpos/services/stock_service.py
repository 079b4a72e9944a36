# Overview: Stock ledger writes, manual adjustments, stock overview and history.

"""
Stock service.

`apply_movement` is the single entry point for changing a product's stock
outside checkout and refunds: it updates the quantity and appends exactly one
StockMovement with the signed delta.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Product, StockAdjustment, StockMovement
from ..money import ZERO, qty_str, round2
from ..validation import NotFoundError, ValidationError, parse_choice, parse_int_id, parse_positive
from .concurrency import atomic, lock_for_update, run_with_retry

ADJUSTMENT_REASONS = ("DAMAGE", "EXPIRED", "LOST", "FOUND", "COUNT", "CORRECTION", "OTHER")
REASON_LABELS = {
    "DAMAGE": "Damaged",
    "EXPIRED": "Expired",
    "LOST": "Lost",
    "FOUND": "Found",
    "COUNT": "Audit Correction",
    "CORRECTION": "Correction",
    "OTHER": "Other",
}
# Reasons that keep their own movement type; everything else is ADJUSTMENT
REASON_MOVEMENT_TYPES = {"DAMAGE": "DAMAGE", "EXPIRED": "EXPIRED", "LOST": "LOST"}
HISTORY_LIMIT = 100


class StockError(Exception):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def apply_movement(
    product: Product,
    delta: Decimal,
    movement_type: str,
    user_id: int | None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    notes: str | None = None,
    allow_negative: bool = False,
) -> StockMovement:
    """Change stock by `delta` and append the matching ledger row. Does not commit."""
    current = product.stock if product.stock is not None else ZERO
    new_stock = current + delta
    if new_stock < 0 and not allow_negative:
        raise StockError(
            f"Insufficient stock for {product.name}. Current: {qty_str(current)}, Requested: {qty_str(-delta)}",
            {"product_id": product.id, "available": str(current), "requested": str(-delta)},
        )
    product.stock = new_stock
    movement = StockMovement(
        product_id=product.id,
        user_id=user_id,
        movement_type=movement_type,
        quantity=delta,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
    )
    db.session.add(movement)
    return movement


def _locked_product(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def adjust_stock(product_id, adjustment_type, quantity, reason, notes: str | None, user_id: int) -> StockAdjustment:
    """
    Manually add or remove stock.

    REMOVE may not take stock below zero. Records a StockAdjustment with the
    before/after snapshot and one movement typed by the reason.
    """
    product_id = parse_int_id(product_id, "product_id")
    adjustment_type = parse_choice(adjustment_type, "type", ("ADD", "REMOVE"))
    try:
        quantity = parse_positive(quantity, "quantity")
    except ValidationError:
        raise ValidationError("Quantity must be greater than 0")
    reason = parse_choice(reason, "reason", ADJUSTMENT_REASONS)

    def _op():
        with atomic():
            product = _locked_product(product_id)
            before = product.stock
            if adjustment_type == "REMOVE" and before < quantity:
                raise StockError(
                    f"Insufficient stock. Current: {qty_str(before)}, Requested: {qty_str(quantity)}",
                    {"product_id": product.id},
                )
            delta = quantity if adjustment_type == "ADD" else -quantity

            adjustment = StockAdjustment(
                product_id=product.id,
                user_id=user_id,
                reason=reason,
                before_qty=before,
                after_qty=before + delta,
                difference=delta,
                notes=notes or None,
            )
            db.session.add(adjustment)
            db.session.flush()

            apply_movement(
                product,
                delta,
                REASON_MOVEMENT_TYPES.get(reason, "ADJUSTMENT"),
                user_id,
                reference_type="StockAdjustment",
                reference_id=adjustment.id,
                notes=notes or f"Stock {'added' if delta > 0 else 'removed'}: {reason}",
            )
            return adjustment

    return run_with_retry(_op)


def get_stock_overview() -> dict:
    products = db.session.query(Product).filter(Product.active()).all()
    value = ZERO
    low = 0
    for product in products:
        value += product.purchase_price * product.stock
        if product.is_low_stock:
            low += 1
    return {
        "total_items": len(products),
        "total_inventory_value": str(round2(value)),
        "low_stock_item_count": low,
    }


def get_stock_products(query: str | None = None, category_id=None, low_stock_only: bool = False) -> list[dict]:
    q = db.session.query(Product).filter(Product.active())
    if query and query.strip():
        term = f"%{query.strip()}%"
        q = q.filter(or_(Product.name.ilike(term), Product.barcode.ilike(term), Product.sku.ilike(term)))
    if category_id not in (None, "", "all"):
        q = q.filter(Product.category_id == parse_int_id(category_id, "category_id"))
    if low_stock_only:
        q = q.filter(Product.stock <= Product.min_stock_level)

    rows = []
    for product in q.order_by(Product.name.asc()).all():
        data = product.to_dict()
        data["total_value"] = str(round2(product.purchase_price * product.stock))
        rows.append(data)
    return rows


def _describe(movement: StockMovement, unit: str) -> str:
    qty = qty_str(abs(movement.quantity))
    kind = movement.movement_type
    if kind == "SALE":
        return f"Sold {qty} {unit}"
    if kind == "PURCHASE":
        return f"Purchased {qty} {unit}"
    if kind == "RETURN":
        return f"Returned {qty} {unit}"
    if kind == "OPENING":
        return f"Opening stock {qty} {unit}"
    sign = "+" if movement.quantity > 0 else "-"
    label = REASON_LABELS.get(kind, kind.replace("_", " ").title())
    return f"{label}: {sign}{qty}"


def get_stock_history(product_id: int) -> list[dict]:
    """Most recent ledger entries for a product, newest first."""
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    movements = (
        db.session.query(StockMovement)
        .filter(StockMovement.product_id == product_id)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(HISTORY_LIMIT)
        .all()
    )
    history = []
    for movement in movements:
        entry = movement.to_dict()
        entry["description"] = _describe(movement, product.unit or "units")
        history.append(entry)
    return history


def reconcile_product(product_id: int) -> dict:
    """Compare the ledger sum with the stored stock quantity."""
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    ledger = db.session.query(func.coalesce(func.sum(StockMovement.quantity), 0)).filter(
        StockMovement.product_id == product_id
    ).scalar()
    ledger = Decimal(str(ledger))
    return {
        "product_id": product.id,
        "stock": qty_str(product.stock),
        "ledger_total": qty_str(ledger),
        "in_sync": ledger == product.stock,
    }
