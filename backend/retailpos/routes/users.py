# Overview: Flask API routes for staff accounts.

"""
User management routes.

Listing requires settings.view; every write requires settings.edit. The
acting user can never deactivate or delete their own account, and the first
administrator is protected the same way.
"""

from flask import Blueprint, request, jsonify, g

from ..extensions import db
from ..services import auth_service
from ..services.activity_service import log_activity
from ..decorators import require_auth, require_permission

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_permission("settings", "view")
def list_users():
    return jsonify({"users": [u.to_dict() for u in auth_service.list_users()]})


@users_bp.post("")
@require_auth
@require_permission("settings", "edit")
def create_user():
    data = request.get_json(silent=True) or {}
    password = data.get("password") or ""
    auth_service.validate_password_strength(password)

    user = auth_service.create_user(
        username=data.get("username"),
        password=password,
        full_name=data.get("full_name"),
        role_id=data.get("role_id"),
        email=data.get("email"),
        phone=data.get("phone"),
        status=data.get("status") or "ACTIVE",
    )
    db.session.commit()

    log_activity("USER_CREATE", f"Created user: {user.username}", user_id=g.current_user.id,
                 entity_type="User", entity_id=user.id)
    return jsonify({"message": "User created", "user": user.to_dict()}), 201


@users_bp.put("/<int:user_id>")
@require_auth
@require_permission("settings", "edit")
def update_user(user_id: int):
    data = request.get_json(silent=True) or {}
    if data.get("password"):
        auth_service.validate_password_strength(data["password"])
    user = auth_service.update_user(user_id, data, g.current_user.id)
    log_activity("USER_UPDATE", f"Updated user: {user.username}", user_id=g.current_user.id,
                 entity_type="User", entity_id=user.id)
    return jsonify({"message": "User updated", "user": user.to_dict()})


@users_bp.delete("/<int:user_id>")
@require_auth
@require_permission("settings", "edit")
def delete_user(user_id: int):
    outcome = auth_service.delete_user(user_id, g.current_user.id)
    log_activity("USER_DELETE", f"User #{user_id} {outcome}", user_id=g.current_user.id,
                 entity_type="User", entity_id=user_id)
    if outcome == "deactivated":
        return jsonify({"message": "User has recorded sales and was deactivated instead", "outcome": outcome})
    return jsonify({"message": "User deleted", "outcome": outcome})
