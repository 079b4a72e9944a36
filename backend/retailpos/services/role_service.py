# Overview: Role CRUD with whole-matrix permission updates.

from __future__ import annotations

from ..extensions import db
from ..models import Role
from ..permissions import PermissionMatrix, default_role_matrices
from ..validation import ConflictError, NotFoundError, ValidationError
from . import lifecycle_service


def list_roles() -> list[Role]:
    return db.session.query(Role).order_by(Role.is_system.desc(), Role.name.asc()).all()


def get_role(role_id: int) -> Role:
    role = db.session.get(Role, role_id)
    if role is None:
        raise NotFoundError("Role not found")
    return role


def _clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Role name is required")
    return name.strip()


def _ensure_unique(name: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Role).filter(db.func.lower(Role.name) == name.lower())
    if exclude_id is not None:
        q = q.filter(Role.id != exclude_id)
    if q.first():
        raise ConflictError("A role with this name already exists")


def create_role(name: str, permissions: dict, description: str | None = None) -> Role:
    name = _clean_name(name)
    _ensure_unique(name)
    matrix = PermissionMatrix.from_raw(permissions)
    role = Role(name=name, description=description, permissions=matrix.to_dict(), is_system=False)
    db.session.add(role)
    db.session.commit()
    return role


def update_role(role_id: int, name: str | None = None, permissions: dict | None = None,
                description: str | None = None) -> Role:
    """Rename and/or replace the entire matrix. Partial matrices are completed with False."""
    role = get_role(role_id)
    if name is not None:
        name = _clean_name(name)
        if role.is_system and name != role.name:
            raise ConflictError("System roles cannot be renamed")
        _ensure_unique(name, exclude_id=role.id)
        role.name = name
    if permissions is not None:
        role.permissions = PermissionMatrix.from_raw(permissions).to_dict()
    if description is not None:
        role.description = description or None
    db.session.commit()
    return role


def delete_role(role_id: int) -> None:
    role = get_role(role_id)
    lifecycle_service.retire(role)
    db.session.commit()


def seed_system_roles() -> dict[str, Role]:
    """Create (or return) the built-in roles. Does not commit."""
    roles = {}
    for name, matrix in default_role_matrices().items():
        role = db.session.query(Role).filter_by(name=name).first()
        if role is None:
            role = Role(name=name, permissions=matrix.to_dict(), is_system=True)
            db.session.add(role)
        roles[name] = role
    db.session.flush()
    return roles
