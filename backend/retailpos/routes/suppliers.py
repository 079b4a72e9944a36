# Overview: Flask API routes for suppliers; gated by the purchases permissions.

from flask import Blueprint, request, jsonify

from ..services import supplier_service
from ..decorators import require_auth, require_permission

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_permission("purchases", "view")
def list_suppliers():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    suppliers = supplier_service.list_suppliers(include_inactive=include_inactive)
    return jsonify({"suppliers": [s.to_dict() for s in suppliers]})


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_permission("purchases", "view")
def get_supplier(supplier_id: int):
    return jsonify({"supplier": supplier_service.get_supplier(supplier_id).to_dict()})


@suppliers_bp.post("")
@require_auth
@require_permission("purchases", "create")
def create_supplier():
    supplier = supplier_service.create_supplier(request.get_json(silent=True) or {})
    return jsonify({"message": "Supplier created", "supplier": supplier.to_dict()}), 201


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
@require_permission("purchases", "edit")
def update_supplier(supplier_id: int):
    supplier = supplier_service.update_supplier(supplier_id, request.get_json(silent=True) or {})
    return jsonify({"message": "Supplier updated", "supplier": supplier.to_dict()})


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_permission("purchases", "delete")
def delete_supplier(supplier_id: int):
    supplier_service.delete_supplier(supplier_id)
    return jsonify({"message": "Supplier deleted"})
