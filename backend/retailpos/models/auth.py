from __future__ import annotations

from ..extensions import db
from ..permissions import PermissionMatrix, SUPER_ADMIN_ROLE
from ..time_utils import to_utc_z, utcnow


class Role(db.Model):
    """
    Named role carrying a full permission matrix.

    The JSON column is only ever written as a whole matrix and is re-validated
    through PermissionMatrix on every read.
    """
    __tablename__ = "roles"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=True)
    permissions = db.Column(db.JSON, nullable=False, default=dict)
    # System roles are seeded at initialization and cannot be deleted
    is_system = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @property
    def matrix(self) -> PermissionMatrix:
        if self.name == SUPER_ADMIN_ROLE:
            return PermissionMatrix.full_access()
        return PermissionMatrix.from_raw(self.permissions)

    @property
    def is_super_admin(self) -> bool:
        return self.name == SUPER_ADMIN_ROLE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "permissions": self.matrix.to_dict(),
            "is_system": self.is_system,
            "user_count": len(self.users),
            "created_at": to_utc_z(self.created_at),
        }


class User(db.Model):
    """
    Staff account. Every sale, adjustment and purchase is attributed to one.

    The account with is_system_account=True is the inactive 'system' user used
    only to attribute audit entries that have no real actor.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    full_name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="ACTIVE")  # ACTIVE, INACTIVE
    is_system_account = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)

    role = db.relationship("Role", backref=db.backref("users", lazy=True))

    @property
    def is_active(self) -> bool:
        return self.status == "ACTIVE"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "role_id": self.role_id,
            "role_name": self.role.name if self.role else None,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at),
        }
