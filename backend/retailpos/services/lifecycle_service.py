# Overview: Declared retirement (delete/archive) policies for catalog, party and role entities.

"""
Entity retirement.

Each entity type declares how it leaves the system:

- "archive": lifecycle_state becomes ARCHIVED; the row stays so history keeps
  resolving (categories, units, products).
- "delete": the row is removed, but only when nothing references it
  (suppliers, customers, roles).

Blocking references are counted before anything is changed; the first
non-zero count raises ConflictError with a readable message.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from ..extensions import db
from ..models import (
    Category,
    Customer,
    CustomerPayment,
    LifecycleState,
    Product,
    Purchase,
    PurchasePayment,
    Role,
    Sale,
    Supplier,
    Unit,
    User,
)
from ..validation import ConflictError

ARCHIVE = "archive"
DELETE = "delete"


@dataclass(frozen=True)
class BlockingReference:
    """`count(entity)` returns how many rows still depend on the entity."""
    count: Callable[[Any], int]
    message: str  # formatted with {count}


@dataclass(frozen=True)
class RetirementPolicy:
    mode: str
    references: tuple[BlockingReference, ...] = field(default_factory=tuple)
    guard: Callable[[Any], str | None] | None = None


def _count(model, *criteria) -> int:
    return db.session.query(model).filter(*criteria).count()


POLICIES: dict[type, RetirementPolicy] = {
    Category: RetirementPolicy(
        mode=ARCHIVE,
        references=(
            BlockingReference(
                lambda c: _count(Product, Product.category_id == c.id, Product.active()),
                "Cannot delete category with {count} active product(s)",
            ),
        ),
    ),
    Unit: RetirementPolicy(
        mode=ARCHIVE,
        references=(
            BlockingReference(
                lambda u: _count(Product, Product.unit == u.short_name, Product.active()),
                "Cannot delete unit used by {count} active product(s)",
            ),
        ),
    ),
    Product: RetirementPolicy(mode=ARCHIVE),
    Supplier: RetirementPolicy(
        mode=DELETE,
        references=(
            BlockingReference(
                lambda s: _count(Purchase, Purchase.supplier_id == s.id),
                "Cannot delete supplier with {count} purchase(s)",
            ),
            BlockingReference(
                lambda s: _count(PurchasePayment, PurchasePayment.supplier_id == s.id),
                "Cannot delete supplier with {count} payment(s)",
            ),
        ),
    ),
    Customer: RetirementPolicy(
        mode=DELETE,
        guard=lambda c: "Cannot delete the walk-in customer" if c.is_walk_in else None,
        references=(
            BlockingReference(
                lambda c: _count(Sale, Sale.customer_id == c.id),
                "Cannot delete customer with {count} sale(s)",
            ),
            BlockingReference(
                lambda c: _count(CustomerPayment, CustomerPayment.customer_id == c.id),
                "Cannot delete customer with {count} payment(s)",
            ),
        ),
    ),
    Role: RetirementPolicy(
        mode=DELETE,
        guard=lambda r: "Cannot delete system roles" if r.is_system else None,
        references=(
            BlockingReference(
                lambda r: _count(User, User.role_id == r.id),
                "Cannot delete role: it is assigned to {count} user(s)",
            ),
        ),
    ),
}


def policy_for(entity) -> RetirementPolicy:
    try:
        return POLICIES[type(entity)]
    except KeyError:
        raise ValueError(f"No retirement policy declared for {type(entity).__name__}")


def check_retirement(entity) -> RetirementPolicy:
    """Raise ConflictError if the entity may not be retired right now."""
    policy = policy_for(entity)
    if policy.guard is not None:
        reason = policy.guard(entity)
        if reason:
            raise ConflictError(reason)
    for ref in policy.references:
        count = ref.count(entity)
        if count:
            raise ConflictError(ref.message.format(count=count))
    return policy


def retire(entity) -> str:
    """
    Apply the entity's policy. Does not commit.

    Returns the mode that was applied ("archive" or "delete").
    """
    policy = check_retirement(entity)
    if policy.mode == ARCHIVE:
        entity.lifecycle_state = LifecycleState.ARCHIVED
    else:
        db.session.delete(entity)
    return policy.mode
