from __future__ import annotations

from ..extensions import db
from ..models import Supplier
from ..money import round2
from ..validation import NotFoundError, optional_text, parse_amount, require_text
from . import lifecycle_service


def list_suppliers(include_inactive: bool = False) -> list[Supplier]:
    q = db.session.query(Supplier)
    if not include_inactive:
        q = q.filter(Supplier.active())
    return q.order_by(Supplier.name.asc()).all()


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError("Supplier not found")
    return supplier


def create_supplier(data: dict) -> Supplier:
    opening = round2(parse_amount(data.get("opening_balance"), "opening_balance"))
    supplier = Supplier(
        name=require_text(data, "name", label="Supplier name"),
        company_name=optional_text(data, "company_name"),
        phone=optional_text(data, "phone"),
        email=optional_text(data, "email"),
        address=optional_text(data, "address"),
        credit_limit=round2(parse_amount(data.get("credit_limit"), "credit_limit")),
        opening_balance=opening,
        credit_balance=opening,
    )
    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(supplier_id: int, data: dict) -> Supplier:
    """Contact details and credit limit. credit_balance only moves through purchases."""
    supplier = get_supplier(supplier_id)
    if "name" in data:
        supplier.name = require_text(data, "name", label="Supplier name")
    for key in ("company_name", "phone", "email", "address"):
        if key in data:
            setattr(supplier, key, optional_text(data, key))
    if "credit_limit" in data:
        supplier.credit_limit = round2(parse_amount(data.get("credit_limit"), "credit_limit"))
    db.session.commit()
    return supplier


def delete_supplier(supplier_id: int) -> None:
    lifecycle_service.retire(get_supplier(supplier_id))
    db.session.commit()
