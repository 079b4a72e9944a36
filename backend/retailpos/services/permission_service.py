# Overview: Permission checks against the live role matrix.

"""
Permission evaluation.

DESIGN PRINCIPLES:
- Fail closed: unknown modules/actions and missing entries deny
- A stored matrix that no longer parses denies everything
- "Super Admin" is a universal bypass
- Always re-read the user's role from storage; never trust the matrix
  snapshot embedded in the session token
- Denials surface as a generic message that never names the missing permission
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Role, User
from ..permissions import MODULE_ACTIONS, MatrixError, PermissionMatrix, SUPER_ADMIN_ROLE

logger = logging.getLogger(__name__)

DENIED_MESSAGE = "Permission denied"


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""

    def __init__(self, message: str = DENIED_MESSAGE):
        super().__init__(message)


def _load_role(user_id: int) -> Role | None:
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user.role


def role_matrix(role: Role) -> PermissionMatrix:
    try:
        return role.matrix
    except MatrixError as e:
        logger.error("Stored permissions for role %s are invalid: %s", role.name, e)
        return PermissionMatrix.from_raw({})


def get_user_permissions(user_id: int) -> PermissionMatrix:
    role = _load_role(user_id)
    if role is None:
        return PermissionMatrix.from_raw({})
    return role_matrix(role)


def has_permission(user_id: int, module: str, action: str) -> bool:
    role = _load_role(user_id)
    if role is None:
        return False
    if role.name == SUPER_ADMIN_ROLE:
        return True
    if action not in MODULE_ACTIONS.get(module, ()):
        return False
    return role_matrix(role).allows(module, action)


def require_permission(user_id: int, module: str, action: str) -> None:
    if not has_permission(user_id, module, action):
        logger.info("Permission denied: user=%s %s.%s", user_id, module, action)
        raise PermissionDeniedError()
