# Overview: Supplier purchases: stock receipt, cost price updates, supplier credit and payments.

"""
Purchase service.

A purchase receives its items into stock when it is created, whatever its
status. Supplier credit tracks the unpaid part of each purchase:

- with a payment: total - paid (when positive)
- RECEIVED and unpaid: the full total
- PENDING and unpaid: nothing yet

Void, payment and edit all move the supplier's credit_balance by the
difference between the old and the new owed amount, so the balance always
equals the sum over open purchases (plus the opening balance).
"""

from __future__ import annotations

import math
from datetime import datetime, time
from decimal import Decimal

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Product, Purchase, PurchaseItem, PurchasePayment, Supplier
from ..money import ZERO, money_str, qty_str, round2
from ..time_utils import day_window, utcnow
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_amount,
    parse_choice,
    parse_date_arg,
    parse_int_id,
    parse_positive,
)
from .catalog_service import record_price_change
from .concurrency import atomic, lock_for_update, run_with_retry
from .stock_service import StockError, apply_movement

PURCHASES_PAGE_SIZE = 20
PURCHASE_STATUSES = ("RECEIVED", "PENDING")
PAYMENT_METHODS = ("CASH", "CARD", "MOBILE", "BANK")


class PurchaseError(Exception):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _owed(status: str, total: Decimal, paid: Decimal) -> Decimal:
    if status == "CANCELLED":
        return ZERO
    if paid > 0:
        return max(ZERO, round2(total - paid))
    if status == "RECEIVED":
        return total
    return ZERO


def _parse_items(raw_items) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required")
    items = []
    for index, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {index} must be an object")
        items.append({
            "product_id": parse_int_id(raw.get("product_id"), f"items[{index}].product_id"),
            "quantity": parse_positive(raw.get("quantity"), f"items[{index}].quantity"),
            "unit_price": round2(parse_amount(raw.get("unit_price"), f"items[{index}].unit_price", required=True)),
            "expiry_date": parse_date_arg(raw.get("expiry_date"), f"items[{index}].expiry_date"),
        })
    return items


def _subtotal(items: list[dict]) -> Decimal:
    subtotal = ZERO
    for item in items:
        subtotal = round2(subtotal + item["quantity"] * item["unit_price"])
    return subtotal


def _purchase_datetime(value) -> datetime:
    day = parse_date_arg(value, "purchase_date")
    if day is None:
        return utcnow()
    return datetime.combine(day, time.min)


def _next_po_number() -> str:
    current = db.session.query(func.max(Purchase.id)).scalar() or 0
    return f"PO-{utcnow():%Y%m%d}-{current + 1:05d}"


def _check_po_number(po_number: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Purchase).filter(Purchase.po_number == po_number)
    if exclude_id is not None:
        q = q.filter(Purchase.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("PO number already exists")


def _active_supplier(supplier_id) -> Supplier:
    if supplier_id in (None, ""):
        raise ValidationError("Supplier is required")
    supplier = lock_for_update(
        db.session.query(Supplier).filter_by(id=parse_int_id(supplier_id, "supplier_id"))
    ).first()
    if supplier is None or not supplier.is_active:
        raise NotFoundError("Supplier not found")
    return supplier


def _receive_items(purchase: Purchase, items: list[dict], user_id: int | None, note: str, reason: str,
                   allow_negative: bool = False) -> None:
    for item in items:
        product = lock_for_update(db.session.query(Product).filter_by(id=item["product_id"])).first()
        if product is None:
            raise PurchaseError(f"Product {item['product_id']} not found", {"product_id": item["product_id"]})

        db.session.add(PurchaseItem(
            purchase_id=purchase.id,
            product_id=product.id,
            quantity=item["quantity"],
            unit_price=item["unit_price"],
            total=round2(item["quantity"] * item["unit_price"]),
            received_qty=item["quantity"] if purchase.status == "RECEIVED" else ZERO,
        ))
        try:
            apply_movement(product, item["quantity"], "PURCHASE", user_id,
                           reference_type="Purchase", reference_id=purchase.id, notes=note,
                           allow_negative=allow_negative)
        except StockError as e:
            raise PurchaseError(str(e), e.details)

        record_price_change(product, "COST", product.purchase_price, item["unit_price"], user_id, reason)
        product.purchase_price = item["unit_price"]
        if item["expiry_date"] is not None:
            product.expiry_date = item["expiry_date"]
        db.session.flush()


def _reverse_items(purchase: Purchase, user_id: int | None, note: str, allow_negative: bool = False) -> set[int]:
    touched = set()
    for item in purchase.items:
        product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
        try:
            apply_movement(product, -item.quantity, "PURCHASE_REVERSAL", user_id,
                           reference_type="Purchase", reference_id=purchase.id, notes=note,
                           allow_negative=allow_negative)
        except StockError as e:
            raise PurchaseError(
                f"Cannot reverse {qty_str(item.quantity)} of {product.name}: "
                f"only {qty_str(product.stock)} left in stock",
                e.details,
            )
        touched.add(product.id)
    return touched


def create_purchase(data: dict, user_id: int | None) -> Purchase:
    items = _parse_items(data.get("items"))
    status = parse_choice(data.get("status"), "status", PURCHASE_STATUSES, default="RECEIVED")
    paid = round2(parse_amount(data.get("paid_amount"), "paid_amount"))
    payment_method = parse_choice(data.get("payment_method"), "payment_method", PAYMENT_METHODS, default="CASH")
    purchase_date = _purchase_datetime(data.get("purchase_date"))
    reference = optional_text(data, "reference_no")

    subtotal = _subtotal(items)
    if paid > subtotal:
        raise ValidationError("Paid amount cannot exceed the purchase total")

    def _op():
        with atomic():
            supplier = _active_supplier(data.get("supplier_id"))
            po_number = reference or _next_po_number()
            _check_po_number(po_number)

            purchase = Purchase(
                po_number=po_number,
                supplier_id=supplier.id,
                user_id=user_id,
                subtotal=subtotal,
                discount=ZERO,
                tax=ZERO,
                total=subtotal,
                status=status,
                notes=optional_text(data, "notes"),
                purchase_date=purchase_date,
                received_at=purchase_date if status == "RECEIVED" else None,
            )
            db.session.add(purchase)
            db.session.flush()

            _receive_items(purchase, items, user_id, f"Purchase {po_number}", "Purchase Update")

            if paid > 0:
                db.session.add(PurchasePayment(
                    purchase_id=purchase.id,
                    supplier_id=supplier.id,
                    user_id=user_id,
                    amount=paid,
                    payment_method=payment_method,
                    paid_at=purchase_date,
                ))
            supplier.credit_balance = round2(supplier.credit_balance + _owed(status, purchase.total, paid))
            return purchase

    return run_with_retry(_op)


def list_purchases(query: str | None = None, page: int = 1, status: str | None = None,
                   start_date=None, end_date=None) -> dict:
    page = max(1, int(page or 1))
    q = db.session.query(Purchase).join(Supplier, Purchase.supplier_id == Supplier.id)
    if query and query.strip():
        term = f"%{query.strip()}%"
        q = q.filter(or_(Purchase.po_number.ilike(term), Supplier.name.ilike(term)))
    if status and status != "all":
        q = q.filter(Purchase.status == status.upper())
    start = parse_date_arg(start_date, "start_date")
    end = parse_date_arg(end_date, "end_date")
    if start:
        q = q.filter(Purchase.created_at >= day_window(start)[0])
    if end:
        q = q.filter(Purchase.created_at < day_window(end)[1])

    total = q.count()
    purchases = (
        q.order_by(Purchase.created_at.desc(), Purchase.id.desc())
        .offset((page - 1) * PURCHASES_PAGE_SIZE)
        .limit(PURCHASES_PAGE_SIZE)
        .all()
    )
    return {
        "purchases": [p.to_dict() for p in purchases],
        "total": total,
        "page": page,
        "total_pages": math.ceil(total / PURCHASES_PAGE_SIZE),
    }


def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        raise NotFoundError("Purchase not found")
    return purchase


def _locked_purchase(purchase_id: int) -> Purchase:
    purchase = lock_for_update(db.session.query(Purchase).filter_by(id=purchase_id)).first()
    if purchase is None:
        raise NotFoundError("Purchase not found")
    return purchase


def _paid(purchase: Purchase) -> Decimal:
    return round2(purchase.paid_amount)


def void_purchase(purchase_id: int, user_id: int | None) -> Purchase:
    """Cancel a purchase, take its stock back out and drop what is still owed."""

    def _op():
        with atomic():
            purchase = _locked_purchase(purchase_id)
            if purchase.status == "CANCELLED":
                raise ConflictError("Purchase is already voided")
            owed = _owed(purchase.status, purchase.total, _paid(purchase))

            _reverse_items(purchase, user_id, f"Stock reversed from voided purchase {purchase.po_number}")
            purchase.status = "CANCELLED"
            supplier = lock_for_update(db.session.query(Supplier).filter_by(id=purchase.supplier_id)).first()
            supplier.credit_balance = round2(supplier.credit_balance - owed)
            return purchase

    return run_with_retry(_op)


def mark_purchase_paid(purchase_id: int, user_id: int | None, payment_method: str | None = None) -> Purchase:
    method = parse_choice(payment_method, "payment_method", PAYMENT_METHODS, default="CASH")

    def _op():
        with atomic():
            purchase = _locked_purchase(purchase_id)
            if purchase.status == "CANCELLED":
                raise ConflictError("Cannot mark a cancelled purchase as paid")
            paid = _paid(purchase)
            remaining = round2(purchase.total - paid)
            if remaining <= 0:
                raise ConflictError("Purchase is already fully paid")
            owed = _owed(purchase.status, purchase.total, paid)

            db.session.add(PurchasePayment(
                purchase_id=purchase.id,
                supplier_id=purchase.supplier_id,
                user_id=user_id,
                amount=remaining,
                payment_method=method,
            ))
            if purchase.status != "RECEIVED":
                purchase.status = "RECEIVED"
                purchase.received_at = utcnow()
                for item in purchase.items:
                    item.received_qty = item.quantity
            supplier = lock_for_update(db.session.query(Supplier).filter_by(id=purchase.supplier_id)).first()
            supplier.credit_balance = round2(supplier.credit_balance - owed)
            return purchase

    return run_with_retry(_op)


def update_purchase(purchase_id: int, data: dict, user_id: int | None) -> Purchase:
    """
    Edit a purchase in place.

    When items are given the old items are reversed out of stock and the new
    ones received; the stock of every touched product must end non-negative.
    Supplier credit follows the change in what is owed, including a move to
    another supplier.
    """
    items = _parse_items(data["items"]) if data.get("items") else None
    status = parse_choice(data.get("status"), "status", PURCHASE_STATUSES) if data.get("status") else None

    def _op():
        with atomic():
            purchase = _locked_purchase(purchase_id)
            if purchase.status == "CANCELLED":
                raise ConflictError("Cannot update a cancelled purchase")
            paid = _paid(purchase)
            old_owed = _owed(purchase.status, purchase.total, paid)
            old_supplier = lock_for_update(db.session.query(Supplier).filter_by(id=purchase.supplier_id)).first()

            if data.get("supplier_id") not in (None, ""):
                new_supplier = _active_supplier(data.get("supplier_id"))
            else:
                new_supplier = old_supplier

            if "reference_no" in data:
                reference = optional_text(data, "reference_no")
                if reference and reference != purchase.po_number:
                    _check_po_number(reference, exclude_id=purchase.id)
                    purchase.po_number = reference
            if "notes" in data:
                purchase.notes = optional_text(data, "notes")
            if status and status != purchase.status:
                purchase.status = status
                if status == "RECEIVED" and purchase.received_at is None:
                    purchase.received_at = _purchase_datetime(data.get("purchase_date"))

            if items is not None:
                touched = _reverse_items(purchase, user_id,
                                         f"Stock reversed from purchase edit {purchase.po_number}",
                                         allow_negative=True)
                for old in list(purchase.items):
                    db.session.delete(old)
                db.session.flush()
                db.session.expire(purchase, ["items"])

                _receive_items(purchase, items, user_id, f"Purchase edit {purchase.po_number}",
                               "Purchase Edit Update", allow_negative=True)
                touched.update(item["product_id"] for item in items)
                for product in db.session.query(Product).filter(Product.id.in_(touched)).all():
                    if product.stock < 0:
                        raise PurchaseError(
                            f"Edit would leave {product.name} with negative stock ({qty_str(product.stock)})",
                            {"product_id": product.id},
                        )

                purchase.subtotal = _subtotal(items)
                purchase.total = max(ZERO, round2(purchase.subtotal - purchase.discount + purchase.tax))
                if paid > purchase.total:
                    raise PurchaseError(
                        f"Purchase total cannot drop below the amount already paid ({money_str(paid)})"
                    )

            new_owed = _owed(purchase.status, purchase.total, paid)
            old_supplier.credit_balance = round2(old_supplier.credit_balance - old_owed)
            new_supplier.credit_balance = round2(new_supplier.credit_balance + new_owed)
            purchase.supplier_id = new_supplier.id
            return purchase

    return run_with_retry(_op)

