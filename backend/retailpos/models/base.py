from __future__ import annotations

from ..extensions import db

MONEY = db.Numeric(14, 2)
QUANTITY = db.Numeric(14, 3)


class LifecycleState:
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class LifecycleMixin:
    """Explicit lifecycle column shared by catalog and party entities."""

    lifecycle_state = db.Column(db.String(16), nullable=False, default=LifecycleState.ACTIVE, index=True)

    @property
    def is_active(self) -> bool:
        return self.lifecycle_state == LifecycleState.ACTIVE

    @classmethod
    def active(cls):
        return cls.lifecycle_state == LifecycleState.ACTIVE
