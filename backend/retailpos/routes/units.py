# Overview: Flask API routes for units of measure; gated by the products permissions.

from flask import Blueprint, request, jsonify

from ..services import catalog_service
from ..decorators import require_auth, require_permission

units_bp = Blueprint("units", __name__, url_prefix="/api/units")


@units_bp.get("")
@require_auth
@require_permission("products", "view")
def list_units():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    return jsonify({"units": [u.to_dict() for u in catalog_service.list_units(include_inactive)]})


@units_bp.post("")
@require_auth
@require_permission("products", "create")
def create_unit():
    unit = catalog_service.create_unit(request.get_json(silent=True) or {})
    return jsonify({"message": "Unit created", "unit": unit.to_dict()}), 201


@units_bp.put("/<int:unit_id>")
@require_auth
@require_permission("products", "edit")
def update_unit(unit_id: int):
    unit = catalog_service.update_unit(unit_id, request.get_json(silent=True) or {})
    return jsonify({"message": "Unit updated", "unit": unit.to_dict()})


@units_bp.delete("/<int:unit_id>")
@require_auth
@require_permission("products", "delete")
def delete_unit(unit_id: int):
    catalog_service.delete_unit(unit_id)
    return jsonify({"message": "Unit deleted"})
