# Overview: Checkout transaction (invoice numbering, stock decrement, customer stats) and POS lookups.

"""
Sale transaction processor.

`process_sale` turns a validated checkout request into a Sale, its items,
stock decrements and SALE stock movements in one unit of work. Stock is
re-read inside the transaction for every line; any shortfall aborts the
whole sale with no observable side effects.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Category, Customer, PAYMENT_METHODS, Product, Sale, SaleItem, StockMovement
from ..money import ZERO, round2
from ..validation import ValidationError, parse_amount, parse_choice, parse_int_id, parse_positive
from .activity_service import log_activity
from .concurrency import SEQUENCE_RACE_ERRORS, atomic, lock_for_update, run_with_retry

WALK_IN_NAMES = ("Walk-in Customer", "Walk-in")
POS_PRODUCT_LIMIT = 100


class SaleError(Exception):
    """Checkout could not be completed; nothing was written."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class SaleLineRequest:
    product_id: int
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal
    tax: Decimal


@dataclass(frozen=True)
class SaleRequest:
    items: tuple[SaleLineRequest, ...]
    subtotal: Decimal
    discount: Decimal
    discount_percent: Decimal
    tax: Decimal
    total: Decimal
    payment_method: str
    customer_id: Optional[int]
    cash_received: Optional[Decimal]
    change: Optional[Decimal]
    notes: Optional[str]


def next_invoice_no() -> int:
    """Current maximum + 1, or 1 for the first sale. Call inside the writing transaction."""
    current = db.session.query(func.max(Sale.invoice_no)).scalar()
    return (current or 0) + 1


def format_sale_number(invoice_no: int) -> str:
    return f"INV-{invoice_no:06d}"


def is_walk_in(customer: Customer | None) -> bool:
    if customer is None:
        return True
    return bool(customer.is_walk_in) or customer.name in WALK_IN_NAMES


def parse_sale_request(data: dict) -> SaleRequest:
    """
    Validate a checkout payload before any storage is touched.

    Aggregate amounts must agree with the lines: the subtotal is the running
    2-decimal sum of quantity * unit_price and the total is
    max(0, subtotal - discount + tax).
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be an object")

    raw_items = data.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Cart is empty")

    items = []
    for index, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {index} must be an object")
        items.append(SaleLineRequest(
            product_id=parse_int_id(raw.get("product_id"), f"items[{index}].product_id"),
            quantity=parse_positive(raw.get("quantity"), f"items[{index}].quantity"),
            unit_price=parse_amount(raw.get("unit_price"), f"items[{index}].unit_price", required=True),
            discount=parse_amount(raw.get("discount"), f"items[{index}].discount"),
            tax=parse_amount(raw.get("tax"), f"items[{index}].tax"),
        ))

    subtotal = ZERO
    for item in items:
        subtotal = round2(subtotal + item.quantity * item.unit_price)

    discount = round2(parse_amount(data.get("discount"), "discount"))
    tax = round2(parse_amount(data.get("tax"), "tax"))
    expected_total = max(ZERO, round2(subtotal - min(discount, subtotal) + tax))

    supplied_subtotal = data.get("subtotal")
    if supplied_subtotal not in (None, "") and round2(parse_amount(supplied_subtotal, "subtotal")) != subtotal:
        raise ValidationError("Subtotal does not match the cart items")
    supplied_total = data.get("total")
    if supplied_total not in (None, "") and round2(parse_amount(supplied_total, "total")) != expected_total:
        raise ValidationError("Total does not match subtotal, discount and tax")

    payment_method = parse_choice(data.get("payment_method"), "payment_method", PAYMENT_METHODS, default="CASH")

    cash_received = None
    change = None
    if data.get("cash_received") not in (None, ""):
        cash_received = round2(parse_amount(data.get("cash_received"), "cash_received"))
        change = max(ZERO, round2(cash_received - expected_total))

    notes = data.get("notes")
    return SaleRequest(
        items=tuple(items),
        subtotal=subtotal,
        discount=min(discount, subtotal),
        discount_percent=round2(parse_amount(data.get("discount_percent"), "discount_percent")),
        tax=tax,
        total=expected_total,
        payment_method=payment_method,
        customer_id=parse_int_id(data.get("customer_id"), "customer_id", required=False),
        cash_received=cash_received,
        change=change,
        notes=notes.strip() if isinstance(notes, str) and notes.strip() else None,
    )


def _line_total(line: SaleLineRequest) -> Decimal:
    return round2(round2(line.quantity * line.unit_price) - line.discount + line.tax)


def _write_sale(request: SaleRequest, user_id: int) -> Sale:
    customer = None
    if request.customer_id is not None:
        customer = lock_for_update(db.session.query(Customer).filter_by(id=request.customer_id)).first()
        if customer is None:
            raise SaleError("Customer not found", {"customer_id": request.customer_id})

    invoice_no = next_invoice_no()
    sale_number = format_sale_number(invoice_no)

    sale = Sale(
        invoice_no=invoice_no,
        sale_number=sale_number,
        user_id=user_id,
        customer_id=customer.id if customer else None,
        subtotal=request.subtotal,
        discount=request.discount,
        discount_percent=request.discount_percent,
        tax=request.tax,
        total=request.total,
        payment_method=request.payment_method,
        payment_status="UNPAID" if request.payment_method == "CREDIT" else "PAID",
        amount_paid=ZERO if request.payment_method == "CREDIT" else request.total,
        sale_type="SALE",
        status="COMPLETED",
        cash_received=request.cash_received,
        change=request.change,
        notes=request.notes,
    )
    db.session.add(sale)
    db.session.flush()

    for line in request.items:
        # Live stock, not the snapshot the cashier saw when building the cart
        product = lock_for_update(db.session.query(Product).filter_by(id=line.product_id)).first()
        if product is None:
            raise SaleError(f"Product {line.product_id} not found", {"product_id": line.product_id})
        if product.stock < line.quantity:
            raise SaleError(
                f"Insufficient stock for {product.name}. "
                f"Available: {product.stock.normalize():f}, Requested: {line.quantity.normalize():f}",
                {
                    "product_id": product.id,
                    "available": str(product.stock),
                    "requested": str(line.quantity),
                },
            )

        db.session.add(SaleItem(
            sale_id=sale.id,
            product_id=product.id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            discount=line.discount,
            tax=line.tax,
            total=_line_total(line),
        ))
        product.stock = product.stock - line.quantity
        db.session.add(StockMovement(
            product_id=product.id,
            user_id=user_id,
            movement_type="SALE",
            quantity=-line.quantity,
            reference_type="Sale",
            reference_id=sale.id,
            notes=f"Sale {sale_number}",
        ))
        # Flush per line so a repeated product sees its own decrement
        db.session.flush()

    if not is_walk_in(customer):
        customer.total_spent = customer.total_spent + request.total
        customer.visit_count = customer.visit_count + 1
        if request.payment_method == "CREDIT":
            customer.credit_balance = customer.credit_balance + request.total

    return sale


def process_sale(data: dict, user_id: int) -> dict:
    """
    Record a checkout as one unit of work and return the receipt payload.

    Raises ValidationError for malformed input and SaleError for stock or
    reference failures; in both cases nothing is persisted.
    """
    request = parse_sale_request(data)

    def _op():
        with atomic():
            return _write_sale(request, user_id)

    sale = run_with_retry(_op, retry_on=SEQUENCE_RACE_ERRORS)
    log_activity("SALE", f"Completed sale {sale.sale_number} ({sale.total})", user_id=user_id,
                 entity_type="Sale", entity_id=sale.id)
    return build_receipt(sale)


def build_receipt(sale: Sale) -> dict:
    receipt = sale.to_dict(include_items=True)
    receipt["cashier_name"] = (sale.user.full_name or sale.user.username) if sale.user else None
    for item, sale_item in zip(receipt["items"], sale.items):
        item["barcode"] = sale_item.product.barcode if sale_item.product else None
        item["sku"] = sale_item.product.sku if sale_item.product else None
    return receipt


def get_pos_products(query: str | None = None, category_id: Any = None) -> list[Product]:
    """Active products for the register grid, zero-stock included."""
    q = db.session.query(Product).filter(Product.active())
    if query and query.strip():
        term = f"%{query.strip()}%"
        q = q.filter(or_(Product.name.ilike(term), Product.barcode.ilike(term), Product.sku.ilike(term)))
    if category_id not in (None, ""):
        q = q.filter(Product.category_id == parse_int_id(category_id, "category_id"))
    return q.order_by(Product.name.asc()).limit(POS_PRODUCT_LIMIT).all()


def get_pos_categories() -> list[Category]:
    """Categories that currently have at least one active product."""
    has_products = (
        db.session.query(Product.id)
        .filter(Product.category_id == Category.id, Product.active())
        .exists()
    )
    return (
        db.session.query(Category)
        .filter(Category.active(), has_products)
        .order_by(Category.name.asc())
        .all()
    )
