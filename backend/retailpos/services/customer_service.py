# Overview: Customer records, credit statistics and debt repayment.

from __future__ import annotations

import math

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Customer, CustomerPayment, Sale
from ..money import ZERO, money_str, round2
from ..time_utils import to_utc_z
from ..validation import ConflictError, NotFoundError, ValidationError, optional_text, parse_amount, require_text
from . import lifecycle_service
from .activity_service import log_activity
from .concurrency import SEQUENCE_RACE_ERRORS, atomic, lock_for_update, run_with_retry
from .pos_service import WALK_IN_NAMES, format_sale_number, next_invoice_no

CUSTOMERS_PAGE_SIZE = 20
RECENT_SALES_LIMIT = 10
WALK_IN_CUSTOMER = WALK_IN_NAMES[0]


def list_customers(query: str | None = None, page: int = 1) -> dict:
    """Active customers, biggest spenders first, with their last visit date."""
    page = max(1, int(page or 1))
    q = db.session.query(Customer).filter(Customer.active())
    if query and query.strip():
        term = f"%{query.strip()}%"
        q = q.filter(or_(Customer.name.ilike(term), Customer.phone.ilike(term)))

    total = q.count()
    customers = (
        q.order_by(Customer.total_spent.desc(), Customer.id.asc())
        .offset((page - 1) * CUSTOMERS_PAGE_SIZE)
        .limit(CUSTOMERS_PAGE_SIZE)
        .all()
    )

    last_visits = {}
    if customers:
        rows = (
            db.session.query(Sale.customer_id, func.max(Sale.created_at))
            .filter(Sale.customer_id.in_([c.id for c in customers]))
            .group_by(Sale.customer_id)
            .all()
        )
        last_visits = dict(rows)

    items = []
    for customer in customers:
        data = customer.to_dict()
        data["last_visit"] = to_utc_z(last_visits.get(customer.id))
        items.append(data)

    return {
        "customers": items,
        "total": total,
        "page": page,
        "total_pages": math.ceil(total / CUSTOMERS_PAGE_SIZE),
    }


def get_customer_options() -> list[dict]:
    customers = db.session.query(Customer).filter(Customer.active()).order_by(Customer.name.asc()).all()
    return [{"id": c.id, "name": c.name, "phone": c.phone} for c in customers]


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def _check_phone(phone: str | None, exclude_id: int | None = None) -> None:
    if not phone:
        return
    existing = db.session.query(Customer).filter(Customer.phone == phone).first()
    if existing is not None and existing.id != exclude_id:
        raise ConflictError("A customer with this phone number already exists")


def create_customer(data: dict) -> Customer:
    name = require_text(data, "name", label="Customer name")
    phone = optional_text(data, "phone")
    _check_phone(phone)
    opening = round2(parse_amount(data.get("opening_balance"), "opening_balance"))

    customer = Customer(
        name=name,
        phone=phone,
        email=optional_text(data, "email"),
        address=optional_text(data, "address"),
        credit_limit=round2(parse_amount(data.get("credit_limit"), "credit_limit")),
        opening_balance=opening,
        credit_balance=opening,
    )
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(customer_id: int, data: dict) -> Customer:
    """Contact details and credit limit. Balances and statistics are not editable."""
    customer = get_customer(customer_id)
    if "name" in data:
        customer.name = require_text(data, "name", label="Customer name")
    if "phone" in data:
        phone = optional_text(data, "phone")
        _check_phone(phone, exclude_id=customer.id)
        customer.phone = phone
    if "email" in data:
        customer.email = optional_text(data, "email")
    if "address" in data:
        customer.address = optional_text(data, "address")
    if "credit_limit" in data:
        customer.credit_limit = round2(parse_amount(data.get("credit_limit"), "credit_limit"))
    db.session.commit()
    return customer


def delete_customer(customer_id: int) -> None:
    customer = get_customer(customer_id)
    if customer.name in WALK_IN_NAMES:
        raise ConflictError("Cannot delete the walk-in customer")
    lifecycle_service.retire(customer)
    db.session.commit()


def get_customer_details(customer_id: int) -> dict:
    customer = get_customer(customer_id)
    sales = (
        db.session.query(Sale)
        .filter(Sale.customer_id == customer.id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(RECENT_SALES_LIMIT)
        .all()
    )
    data = customer.to_dict()
    data["sales"] = [
        {
            "id": s.id,
            "sale_number": s.sale_number,
            "total": money_str(s.total),
            "status": s.status,
            "payment_status": s.payment_status,
            "sale_type": s.sale_type,
            "created_at": to_utc_z(s.created_at),
        }
        for s in sales
    ]
    return data


def get_or_create_walk_in() -> Customer:
    customer = (
        db.session.query(Customer)
        .filter(or_(Customer.is_walk_in.is_(True), Customer.name == WALK_IN_CUSTOMER))
        .order_by(Customer.id.asc())
        .first()
    )
    if customer is None:
        customer = Customer(name=WALK_IN_CUSTOMER, is_walk_in=True)
        db.session.add(customer)
        db.session.commit()
    return customer


def repay_debt(customer_id: int, amount, user_id: int | None) -> dict:
    """
    Record a debt repayment.

    The amount settles the customer's open credit sales oldest first: a sale
    whose outstanding part the remaining amount covers becomes PAID, the first
    one it only partly covers becomes PARTIAL. Each sale keeps the settled
    running amount in amount_paid. A DEBT_COLLECTION sale and a
    CustomerPayment document the money received.
    """
    try:
        amount = round2(parse_amount(amount, "amount", required=True, allow_zero=False))
    except ValidationError:
        raise ValidationError("Repayment amount must be greater than 0")

    def _op():
        with atomic():
            customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
            if customer is None:
                raise NotFoundError("Customer not found")
            debt = customer.credit_balance or ZERO
            if amount > debt:
                raise ValidationError(
                    f"Repayment amount ({money_str(amount)}) cannot exceed current debt ({money_str(debt)})"
                )

            unpaid = (
                db.session.query(Sale)
                .filter(
                    Sale.customer_id == customer.id,
                    Sale.payment_status.in_(("UNPAID", "PARTIAL")),
                    Sale.status != "VOID",
                )
                .order_by(Sale.created_at.asc(), Sale.id.asc())
                .all()
            )
            remaining = amount
            settled = 0
            for sale in unpaid:
                if remaining <= 0:
                    break
                settled += 1
                outstanding = round2(sale.total - sale.amount_paid)
                if remaining >= outstanding:
                    sale.payment_status = "PAID"
                    sale.amount_paid = sale.total
                    remaining = remaining - outstanding
                else:
                    sale.payment_status = "PARTIAL"
                    sale.amount_paid = round2(sale.amount_paid + remaining)
                    remaining = ZERO

            customer.credit_balance = round2(debt - amount)

            invoice_no = next_invoice_no()
            collection = Sale(
                invoice_no=invoice_no,
                sale_number=format_sale_number(invoice_no),
                user_id=user_id,
                customer_id=customer.id,
                subtotal=amount,
                discount=ZERO,
                discount_percent=ZERO,
                tax=ZERO,
                total=amount,
                payment_method="CASH",
                payment_status="PAID",
                amount_paid=amount,
                sale_type="DEBT_COLLECTION",
                status="COMPLETED",
                cash_received=amount,
                change=ZERO,
                notes=f"Debt repayment - Settled {settled} invoice(s)",
            )
            db.session.add(collection)
            db.session.add(CustomerPayment(
                customer_id=customer.id,
                user_id=user_id,
                amount=amount,
                payment_method="CASH",
                notes=f"Debt repayment - {money_str(amount)} (Settled {settled} invoice(s))",
            ))
            db.session.flush()
            return customer, collection, settled

    customer, collection, settled = run_with_retry(_op, retry_on=SEQUENCE_RACE_ERRORS)
    log_activity("DEBT_COLLECTION", f"Collected {money_str(amount)} from {customer.name}",
                 user_id=user_id, entity_type="Customer", entity_id=customer.id)
    return {
        "customer": customer.to_dict(),
        "sale": collection.to_dict(),
        "settled_count": settled,
        "message": f"Debt repayment of {money_str(amount)} recorded successfully. {settled} invoice(s) settled.",
    }
