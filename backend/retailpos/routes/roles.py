# Overview: Flask API routes for roles and their permission matrices.

from flask import Blueprint, request, jsonify, g

from ..permissions import MODULE_ACTIONS
from ..services import role_service
from ..services.activity_service import log_activity
from ..decorators import require_auth, require_permission

roles_bp = Blueprint("roles", __name__, url_prefix="/api/roles")


@roles_bp.get("")
@require_auth
@require_permission("settings", "view")
def list_roles():
    return jsonify({"roles": [r.to_dict() for r in role_service.list_roles()]})


@roles_bp.get("/modules")
@require_auth
@require_permission("settings", "view")
def list_modules():
    """The module/action vocabulary a matrix may contain."""
    return jsonify({"modules": {module: list(actions) for module, actions in MODULE_ACTIONS.items()}})


@roles_bp.get("/<int:role_id>")
@require_auth
@require_permission("settings", "view")
def get_role(role_id: int):
    return jsonify({"role": role_service.get_role(role_id).to_dict()})


@roles_bp.post("")
@require_auth
@require_permission("settings", "edit")
def create_role():
    data = request.get_json(silent=True) or {}
    role = role_service.create_role(data.get("name"), data.get("permissions") or {}, data.get("description"))
    log_activity("ROLE_CREATE", f"Created role: {role.name}", user_id=g.current_user.id,
                 entity_type="Role", entity_id=role.id)
    return jsonify({"message": "Role created", "role": role.to_dict()}), 201


@roles_bp.put("/<int:role_id>")
@require_auth
@require_permission("settings", "edit")
def update_role(role_id: int):
    """Permissions, when given, replace the whole matrix; omitted actions become false."""
    data = request.get_json(silent=True) or {}
    role = role_service.update_role(
        role_id,
        name=data.get("name"),
        permissions=data.get("permissions"),
        description=data.get("description"),
    )
    log_activity("ROLE_UPDATE", f"Updated role: {role.name}", user_id=g.current_user.id,
                 entity_type="Role", entity_id=role.id)
    return jsonify({"message": "Role updated", "role": role.to_dict()})


@roles_bp.delete("/<int:role_id>")
@require_auth
@require_permission("settings", "edit")
def delete_role(role_id: int):
    role_service.delete_role(role_id)
    log_activity("ROLE_DELETE", f"Deleted role #{role_id}", user_id=g.current_user.id,
                 entity_type="Role", entity_id=role_id)
    return jsonify({"message": "Role deleted"})
