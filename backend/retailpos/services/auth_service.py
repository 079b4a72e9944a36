# Overview: Password hashing, login, and staff account management.

"""
Authentication and user accounts.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, 12 by default)
- Minimum 6 characters
- Failed logins are recorded in the activity log on a best-effort basis
- The first account ever created (excluding the system account) can never be
  deleted or deactivated
"""

from __future__ import annotations

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..models import Role, Sale, User
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError
from .activity_service import SYSTEM_USERNAME, log_activity

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


class AuthenticationError(Exception):
    """Login rejected. Message is safe to show to the caller."""


class PasswordValidationError(ValidationError):
    """Raised when a password doesn't meet the minimum requirements."""


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    return 12


def hash_password(password: str) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except (ValueError, TypeError):
        return False


def authenticate(username: str, password: str, ip_address: str | None = None) -> User:
    """
    Validate credentials and return the user.

    Raises AuthenticationError with a generic message for unknown users and
    wrong passwords, and a specific one for inactive accounts.
    """
    if not username or not password:
        raise AuthenticationError("Invalid input. Please check your username and password.")

    user = db.session.query(User).filter_by(username=username.strip()).first()
    if user is None or user.is_system_account:
        log_activity(
            "LOGIN_FAILED",
            f"Failed login attempt for username: {username}",
            entity_type="User",
            ip_address=ip_address,
        )
        raise AuthenticationError("Invalid username or password.")

    if not user.is_active:
        raise AuthenticationError("Your account is inactive. Please contact administrator.")

    if not verify_password(password, user.password_hash):
        log_activity(
            "LOGIN_FAILED",
            f"Failed login attempt for user: {user.username}",
            user_id=user.id,
            entity_type="User",
            entity_id=user.id,
            ip_address=ip_address,
        )
        raise AuthenticationError("Invalid username or password.")

    user.last_login_at = utcnow()
    db.session.commit()
    log_activity("LOGIN", f"User logged in: {user.username}", user_id=user.id,
                 entity_type="User", entity_id=user.id, ip_address=ip_address)
    return user


def verify_admin_password(user_id: int, password: str) -> bool:
    """Re-entry check before destructive actions. Raises on mismatch."""
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if not password or not verify_password(password, user.password_hash):
        raise ValidationError("Incorrect Password")
    return True


def first_user() -> User | None:
    return (
        db.session.query(User)
        .filter(User.username != SYSTEM_USERNAME)
        .order_by(User.created_at.asc(), User.id.asc())
        .first()
    )


def list_users() -> list[User]:
    return (
        db.session.query(User)
        .filter(User.is_system_account.is_(False))
        .order_by(User.created_at.asc(), User.id.asc())
        .all()
    )


def create_user(
    username: str,
    password: str,
    full_name: str,
    role_id: int,
    email: str | None = None,
    phone: str | None = None,
    status: str = "ACTIVE",
) -> User:
    """Create a staff account. Does not commit."""
    if not username or len(username.strip()) < MIN_USERNAME_LENGTH:
        raise ValidationError(f"Username must be at least {MIN_USERNAME_LENGTH} characters")
    username = username.strip()
    if not full_name or not full_name.strip():
        raise ValidationError("Full name is required")
    if status not in ("ACTIVE", "INACTIVE"):
        raise ValidationError("Status must be ACTIVE or INACTIVE")

    if db.session.query(User).filter_by(username=username).first():
        raise ConflictError("Username already exists")
    role = db.session.get(Role, role_id) if role_id is not None else None
    if role is None:
        raise NotFoundError("Role not found")

    user = User(
        username=username,
        full_name=full_name.strip(),
        email=email or None,
        phone=phone or None,
        password_hash=hash_password(password),
        role_id=role.id,
        status=status,
    )
    db.session.add(user)
    db.session.flush()
    return user


def update_user(user_id: int, data: dict, acting_user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None or user.is_system_account:
        raise NotFoundError("User not found")

    if "full_name" in data:
        if not data["full_name"] or not str(data["full_name"]).strip():
            raise ValidationError("Full name is required")
        user.full_name = str(data["full_name"]).strip()
    if "email" in data:
        user.email = data["email"] or None
    if "phone" in data:
        user.phone = data["phone"] or None
    if "role_id" in data:
        role = db.session.get(Role, data["role_id"])
        if role is None:
            raise NotFoundError("Role not found")
        user.role_id = role.id
    if data.get("password"):
        user.password_hash = hash_password(data["password"])
    if "status" in data:
        set_user_status(user, data["status"], acting_user_id)

    db.session.commit()
    return user


def set_user_status(user: User, status: str, acting_user_id: int) -> None:
    if status not in ("ACTIVE", "INACTIVE"):
        raise ValidationError("Status must be ACTIVE or INACTIVE")
    if status == "INACTIVE":
        if user.id == acting_user_id:
            raise ConflictError("You cannot deactivate your own account")
        first = first_user()
        if first is not None and first.id == user.id:
            raise ConflictError("The first administrator account cannot be deactivated")
    user.status = status


def delete_user(user_id: int, acting_user_id: int) -> str:
    """
    Delete a staff account.

    Accounts with recorded sales are deactivated instead so attribution
    survives. Returns "deleted" or "deactivated".
    """
    user = db.session.get(User, user_id)
    if user is None or user.is_system_account:
        raise NotFoundError("User not found")
    if user.id == acting_user_id:
        raise ConflictError("You cannot delete your own account")
    first = first_user()
    if first is not None and first.id == user.id:
        raise ConflictError("The first administrator account cannot be deleted")

    if db.session.query(Sale).filter_by(user_id=user.id).count():
        user.status = "INACTIVE"
        db.session.commit()
        return "deactivated"

    db.session.delete(user)
    db.session.commit()
    return "deleted"
