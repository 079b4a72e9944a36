# Overview: Typed role permission matrix (module -> action -> bool) with shape validation.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

SUPER_ADMIN_ROLE = "Super Admin"
CASHIER_ROLE = "Cashier"

# Canonical module/action vocabulary. Anything outside it is rejected on read.
MODULE_ACTIONS: dict[str, tuple[str, ...]] = {
    "dashboard": ("view",),
    "pos": ("access", "discount", "void"),
    "products": ("view", "create", "edit", "delete"),
    "categories": ("view", "create", "edit", "delete"),
    "purchases": ("view", "create", "edit", "delete"),
    "sales": ("view", "edit", "void", "refund"),
    "stock": ("view", "adjust"),
    "customers": ("view", "create", "edit", "delete"),
    "reports": ("view", "export"),
    "settings": ("view", "edit", "system"),
}


class MatrixError(ValueError):
    """Stored or submitted permission matrix does not have the expected shape."""


@dataclass(frozen=True)
class PermissionMatrix:
    """
    Immutable module -> action -> bool mapping.

    Always complete: every known module/action pair is present, and absent
    input entries are stored as False (deny by default).
    """
    grants: Mapping[str, Mapping[str, bool]] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Any) -> "PermissionMatrix":
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise MatrixError("Permission matrix must be an object")

        grants: dict[str, dict[str, bool]] = {
            module: {action: False for action in actions}
            for module, actions in MODULE_ACTIONS.items()
        }
        for module, actions in raw.items():
            if module not in MODULE_ACTIONS:
                raise MatrixError(f"Unknown permission module: {module}")
            if not isinstance(actions, Mapping):
                raise MatrixError(f"Permissions for {module} must be an object")
            for action, allowed in actions.items():
                if action not in MODULE_ACTIONS[module]:
                    raise MatrixError(f"Unknown action '{action}' for module {module}")
                if not isinstance(allowed, bool):
                    raise MatrixError(f"Permission {module}.{action} must be true or false")
                grants[module][action] = allowed
        return cls(grants=grants)

    @classmethod
    def full_access(cls) -> "PermissionMatrix":
        return cls.from_raw({
            module: {action: True for action in actions}
            for module, actions in MODULE_ACTIONS.items()
        })

    def allows(self, module: str, action: str) -> bool:
        return bool(self.grants.get(module, {}).get(action, False))

    def to_dict(self) -> dict[str, dict[str, bool]]:
        return {module: dict(actions) for module, actions in self.grants.items()}


CASHIER_GRANTS = {
    "dashboard": {"view": True},
    "pos": {"access": True, "discount": False, "void": False},
    "products": {"view": True},
    "sales": {"view": True},
    "stock": {"view": True},
    "customers": {"view": True, "create": True},
}


def default_role_matrices() -> dict[str, PermissionMatrix]:
    """System roles seeded at initialization."""
    return {
        SUPER_ADMIN_ROLE: PermissionMatrix.full_access(),
        CASHIER_ROLE: PermissionMatrix.from_raw(CASHIER_GRANTS),
    }
