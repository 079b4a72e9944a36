# Overview: Flask API routes for customers, their history and credit repayments.

from flask import Blueprint, request, jsonify, g

from ..services import customer_service
from ..decorators import require_auth, require_permission

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission("customers", "view")
def list_customers():
    result = customer_service.list_customers(
        query=request.args.get("q"),
        page=request.args.get("page", 1, type=int),
    )
    return jsonify(result)


@customers_bp.get("/options")
@require_auth
@require_permission("customers", "view")
def customer_options():
    return jsonify({"customers": customer_service.get_customer_options()})


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission("customers", "view")
def get_customer(customer_id: int):
    """Customer profile plus the 10 most recent sales."""
    return jsonify({"customer": customer_service.get_customer_details(customer_id)})


@customers_bp.post("")
@require_auth
@require_permission("customers", "create")
def create_customer():
    customer = customer_service.create_customer(request.get_json(silent=True) or {})
    return jsonify({"message": "Customer created", "customer": customer.to_dict()}), 201


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_permission("customers", "edit")
def update_customer(customer_id: int):
    customer = customer_service.update_customer(customer_id, request.get_json(silent=True) or {})
    return jsonify({"message": "Customer updated", "customer": customer.to_dict()})


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_permission("customers", "delete")
def delete_customer(customer_id: int):
    customer_service.delete_customer(customer_id)
    return jsonify({"message": "Customer deleted"})


@customers_bp.post("/<int:customer_id>/repay")
@require_auth
@require_permission("customers", "edit")
def repay_debt(customer_id: int):
    data = request.get_json(silent=True) or {}
    result = customer_service.repay_debt(customer_id, data.get("amount"), g.current_user.id)
    return jsonify(result), 201
