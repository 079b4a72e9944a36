# Overview: One-time system initialization (roles, first administrator, base catalog data).

"""
First-run setup.

Runs only while no real user exists. Everything is created in one
transaction: the two system roles, the administrator, store settings, base
units, the default category, the walk-in customer and the inactive 'system'
account used to attribute audit entries with no actor.
"""

from __future__ import annotations

import secrets

from ..extensions import db
from ..models import Category, Customer, Unit, User
from ..permissions import CASHIER_ROLE, SUPER_ADMIN_ROLE
from ..validation import ConflictError, ValidationError
from .activity_service import SYSTEM_USERNAME
from .auth_service import MIN_PASSWORD_LENGTH, MIN_USERNAME_LENGTH, create_user, hash_password
from .concurrency import atomic
from .role_service import seed_system_roles
from .settings_service import get_settings

BASE_UNITS = (("Piece", "pcs"), ("Kilogram", "kg"))
DEFAULT_CATEGORY = "General"
WALK_IN_CUSTOMER = "Walk-in Customer"


class SetupError(ConflictError):
    """Setup is no longer available."""


def real_user_count() -> int:
    return db.session.query(User).filter(User.is_system_account.is_(False)).count()


def is_system_initialized() -> bool:
    return real_user_count() > 0


def validate_setup(username, password, confirm_password, store_name) -> None:
    if not username or not password or not confirm_password or not store_name:
        raise ValidationError("All fields are required.")
    if len(username.strip()) < MIN_USERNAME_LENGTH:
        raise ValidationError(f"Username must be at least {MIN_USERNAME_LENGTH} characters long.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")
    if password != confirm_password:
        raise ValidationError("Passwords do not match.")
    if len(store_name.strip()) < 2:
        raise ValidationError("Store name must be at least 2 characters long.")


def initialize_system(username: str, password: str, confirm_password: str, store_name: str) -> User:
    """Bootstrap the store and return the administrator account."""
    validate_setup(username, password, confirm_password, store_name)
    if is_system_initialized():
        raise SetupError("System has already been initialized. Please log in instead.")

    with atomic():
        roles = seed_system_roles()

        admin = create_user(
            username=username.strip(),
            password=password,
            full_name="Administrator",
            role_id=roles[SUPER_ADMIN_ROLE].id,
        )

        settings = get_settings()
        settings.store_name = store_name.strip()

        for name, short_name in BASE_UNITS:
            if not db.session.query(Unit).filter_by(short_name=short_name).first():
                db.session.add(Unit(name=name, short_name=short_name))

        if not db.session.query(Category).filter_by(name=DEFAULT_CATEGORY).first():
            db.session.add(Category(name=DEFAULT_CATEGORY, description="Default category"))

        if not db.session.query(Customer).filter_by(is_walk_in=True).first():
            db.session.add(Customer(name=WALK_IN_CUSTOMER, is_walk_in=True))

        if not db.session.query(User).filter_by(username=SYSTEM_USERNAME).first():
            db.session.add(User(
                username=SYSTEM_USERNAME,
                full_name="System",
                # Unusable credential; the account is never allowed to log in
                password_hash=hash_password(secrets.token_urlsafe(32)),
                role_id=roles[CASHIER_ROLE].id,
                status="INACTIVE",
                is_system_account=True,
            ))

    return admin
