# Overview: Sales history, metadata edits, voids and refunds; each write is a single unit of work.

from __future__ import annotations

import math
from decimal import Decimal

from sqlalchemy import or_
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Customer, PAYMENT_METHODS, Product, Sale, SalesReturn, SalesReturnItem, StockMovement
from ..money import ZERO, round2
from ..time_utils import date_range_window, utcnow
from ..validation import NotFoundError, ValidationError, parse_choice, parse_date_arg, parse_int_id
from .activity_service import log_activity
from .concurrency import atomic, lock_for_update, run_with_retry
from .pos_service import is_walk_in

SALES_PAGE_SIZE = 20
SALE_STATUSES = ("COMPLETED", "HOLD", "VOID", "RETURNED")


class SaleStateError(Exception):
    """Operation not allowed in the sale's current state."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def list_sales(
    query: str | None = None,
    page: int = 1,
    status: str | None = None,
    payment_method: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> dict:
    """Newest-first sales page (20 per page) with search and filters. 'all' disables a filter."""
    page = max(1, int(page or 1))
    q = db.session.query(Sale).outerjoin(Customer, Sale.customer_id == Customer.id)

    if query and query.strip():
        term = f"%{query.strip()}%"
        q = q.filter(or_(Sale.sale_number.ilike(term), Customer.name.ilike(term)))
    if status and status != "all":
        q = q.filter(Sale.status == parse_choice(status, "status", SALE_STATUSES))
    if payment_method and payment_method != "all":
        q = q.filter(Sale.payment_method == parse_choice(payment_method, "payment_method", PAYMENT_METHODS))

    start = parse_date_arg(start_date, "start_date")
    end = parse_date_arg(end_date, "end_date")
    if start:
        q = q.filter(Sale.created_at >= date_range_window(start, start)[0])
    if end:
        q = q.filter(Sale.created_at < date_range_window(end, end)[1])

    total = q.count()
    sales = (
        q.options(joinedload(Sale.user), joinedload(Sale.customer))
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * SALES_PAGE_SIZE)
        .limit(SALES_PAGE_SIZE)
        .all()
    )
    return {
        "sales": [s.to_dict(include_items=True) for s in sales],
        "total": total,
        "page": page,
        "total_pages": math.ceil(total / SALES_PAGE_SIZE),
    }


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def _refunded_item_ids(sale: Sale) -> set[int]:
    rows = (
        db.session.query(SalesReturnItem.sale_item_id)
        .join(SalesReturn, SalesReturn.id == SalesReturnItem.sales_return_id)
        .filter(SalesReturn.sale_id == sale.id)
        .all()
    )
    return {row[0] for row in rows}


def update_sale_metadata(sale_id: int, data: dict, user_id: int) -> Sale:
    """
    Change customer, payment method or notes of a recorded sale.

    Customer statistics move with the sale. CREDIT sales keep their customer
    and method because they carry outstanding debt.
    """
    with atomic():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise NotFoundError("Sale not found")
        if sale.status == "VOID":
            raise SaleStateError("Cannot update a voided sale")

        if "payment_method" in data:
            method = parse_choice(data.get("payment_method"), "payment_method", PAYMENT_METHODS)
            if method != sale.payment_method and "CREDIT" in (method, sale.payment_method):
                raise SaleStateError("Cannot change payment method to or from CREDIT")
            sale.payment_method = method

        if "customer_id" in data:
            new_id = parse_int_id(data.get("customer_id"), "customer_id", required=False)
            if new_id != sale.customer_id:
                if sale.payment_method == "CREDIT":
                    raise SaleStateError("Cannot change the customer of a credit sale")
                new_customer = None
                if new_id is not None:
                    new_customer = db.session.get(Customer, new_id)
                    if new_customer is None:
                        raise NotFoundError("Customer not found")
                if sale.status == "COMPLETED" and sale.sale_type == "SALE":
                    old_customer = sale.customer
                    if not is_walk_in(old_customer):
                        old_customer.total_spent = old_customer.total_spent - sale.total
                        old_customer.visit_count = max(0, old_customer.visit_count - 1)
                    if not is_walk_in(new_customer):
                        new_customer.total_spent = new_customer.total_spent + sale.total
                        new_customer.visit_count = new_customer.visit_count + 1
                sale.customer_id = new_id

        if "notes" in data:
            notes = data.get("notes")
            sale.notes = notes.strip() if isinstance(notes, str) and notes.strip() else None

    return sale


def void_sale(sale_id: int, user_id: int) -> Sale:
    """
    Void a sale: status VOID, unrefunded stock returned, customer totals reversed.

    The part of a CREDIT sale not yet settled by repayments is removed from
    the customer's debt as well.
    """
    def _op():
        with atomic():
            sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
            if not sale:
                raise NotFoundError("Sale not found")
            if sale.status == "VOID":
                raise SaleStateError("Sale is already voided")
            if sale.status == "RETURNED":
                raise SaleStateError("Cannot void a fully returned sale")
            if sale.sale_type != "SALE":
                raise SaleStateError("Debt collection records cannot be voided")

            refunded = _refunded_item_ids(sale)
            sale.status = "VOID"
            sale.voided_at = utcnow()

            customer = sale.customer
            if not is_walk_in(customer):
                already_refunded = sum((r.total for r in sale.returns), ZERO)
                customer.total_spent = customer.total_spent - (sale.total - already_refunded)
                customer.visit_count = max(0, customer.visit_count - 1)
                if sale.payment_method == "CREDIT":
                    outstanding = max(ZERO, round2(sale.total - sale.amount_paid))
                    customer.credit_balance = max(ZERO, round2(customer.credit_balance - outstanding))

            for item in sale.items:
                if item.id in refunded:
                    continue
                product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
                product.stock = product.stock + item.quantity
                db.session.add(StockMovement(
                    product_id=item.product_id,
                    user_id=user_id,
                    movement_type="RETURN",
                    quantity=item.quantity,
                    reference_type="Sale",
                    reference_id=sale.id,
                    notes=f"Stock reversed from voided sale {sale.sale_number}",
                ))
            return sale

    sale = run_with_retry(_op)
    log_activity("VOID", f"Voided sale {sale.sale_number}", user_id=user_id, entity_type="Sale", entity_id=sale.id)
    return sale


def _next_return_number() -> str:
    last = db.session.query(SalesReturn.id).order_by(SalesReturn.id.desc()).first()
    return f"RET-{(last[0] if last else 0) + 1:06d}"


def process_refund(sale_id: int, item_ids: list, reason: str, notes: str | None, user_id: int) -> SalesReturn:
    """
    Refund selected lines of a sale.

    Refunded quantities go back to stock with RETURN movements, the customer's
    total spent is reduced (visit count is kept), and the sale becomes
    RETURNED once every line has been refunded.
    """
    if not isinstance(item_ids, list) or not item_ids:
        raise ValidationError("No items selected for refund")
    item_ids = {parse_int_id(i, "item_ids") for i in item_ids}
    if not reason or not str(reason).strip():
        raise ValidationError("Refund reason is required")

    def _op():
        with atomic():
            sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
            if not sale:
                raise NotFoundError("Sale not found")
            if sale.status == "VOID":
                raise SaleStateError("Cannot refund a voided sale")

            already = _refunded_item_ids(sale)
            selected = [item for item in sale.items if item.id in item_ids]
            if not selected:
                raise ValidationError("No items selected for refund")
            repeated = [item.id for item in selected if item.id in already]
            if repeated:
                raise SaleStateError("Some items were already refunded", {"item_ids": repeated})

            refund_total = round2(sum((item.total for item in selected), Decimal("0")))
            salesreturn = SalesReturn(
                return_number=_next_return_number(),
                sale_id=sale.id,
                customer_id=sale.customer_id,
                user_id=user_id,
                total=refund_total,
                refund_method="CASH",
                reason=str(reason).strip(),
                notes=notes or None,
            )
            db.session.add(salesreturn)
            db.session.flush()

            for item in selected:
                db.session.add(SalesReturnItem(
                    sales_return_id=salesreturn.id,
                    sale_item_id=item.id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total=item.total,
                ))
                product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
                product.stock = product.stock + item.quantity
                db.session.add(StockMovement(
                    product_id=item.product_id,
                    user_id=user_id,
                    movement_type="RETURN",
                    quantity=item.quantity,
                    reference_type="SalesReturn",
                    reference_id=salesreturn.id,
                    notes=f"Stock returned from refund {salesreturn.return_number}",
                ))

            if len(already) + len(selected) >= len(sale.items):
                sale.status = "RETURNED"

            if not is_walk_in(sale.customer):
                sale.customer.total_spent = sale.customer.total_spent - refund_total
            return salesreturn

    salesreturn = run_with_retry(_op)
    log_activity("REFUND", f"Refund {salesreturn.return_number} for sale {sale_id}", user_id=user_id,
                 entity_type="SalesReturn", entity_id=salesreturn.id)
    return salesreturn

