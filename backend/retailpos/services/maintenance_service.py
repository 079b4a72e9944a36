# Overview: Administrative wipe of transactional history; catalog, users, roles and settings survive.

from __future__ import annotations

from ..extensions import db
from ..models import (
    Customer,
    CustomerPayment,
    PriceHistory,
    Purchase,
    PurchaseItem,
    PurchasePayment,
    Sale,
    SaleItem,
    SalesReturn,
    SalesReturnItem,
    StockAdjustment,
    StockMovement,
)
from .activity_service import log_activity
from .auth_service import verify_admin_password
from .concurrency import atomic

# Children before parents so foreign keys hold at every step
WIPE_ORDER = (
    SalesReturnItem,
    SalesReturn,
    SaleItem,
    Sale,
    PurchasePayment,
    PurchaseItem,
    Purchase,
    StockAdjustment,
    StockMovement,
    CustomerPayment,
    PriceHistory,
)


def reset_transactions(user_id: int, password: str) -> dict:
    """
    Delete all transactional history after re-checking the caller's password.

    Customer statistics and credit balances are zeroed in the same transaction.
    Product stock quantities are left as they are.
    """
    verify_admin_password(user_id, password)

    deleted = {}
    with atomic():
        for model in WIPE_ORDER:
            deleted[model.__tablename__] = db.session.query(model).delete(synchronize_session=False)
        db.session.query(Customer).update(
            {
                Customer.total_spent: 0,
                Customer.visit_count: 0,
                Customer.credit_balance: 0,
            },
            synchronize_session=False,
        )
    db.session.expire_all()

    log_activity("RESET", "Transactional data wiped", user_id=user_id)
    return deleted
