# Overview: Flask API routes for sales history, metadata edits, voids and refunds.

from flask import Blueprint, request, jsonify, g

from ..services import sales_service
from ..services.sales_service import SaleStateError
from ..decorators import require_auth, require_permission

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _state_error(e):
    return jsonify({"error": str(e), "details": e.details}), 400


@sales_bp.get("")
@require_auth
@require_permission("sales", "view")
def list_sales():
    """
    Query params:
    - q: sale number or customer name
    - page: 1-indexed, 20 per page
    - status / payment_method: exact match, "all" disables
    - start_date / end_date: inclusive ISO dates
    """
    result = sales_service.list_sales(
        query=request.args.get("q"),
        page=request.args.get("page", 1, type=int),
        status=request.args.get("status"),
        payment_method=request.args.get("payment_method"),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
    )
    return jsonify(result)


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("sales", "view")
def get_sale(sale_id: int):
    sale = sales_service.get_sale(sale_id)
    payload = sale.to_dict(include_items=True)
    payload["returns"] = [r.to_dict() for r in sale.returns]
    return jsonify({"sale": payload})


@sales_bp.put("/<int:sale_id>")
@require_auth
@require_permission("sales", "edit")
def update_sale(sale_id: int):
    data = request.get_json(silent=True) or {}
    try:
        sale = sales_service.update_sale_metadata(sale_id, data, g.current_user.id)
    except SaleStateError as e:
        return _state_error(e)
    return jsonify({"message": "Sale updated", "sale": sale.to_dict(include_items=True)})


@sales_bp.post("/<int:sale_id>/void")
@require_auth
@require_permission("sales", "void")
def void_sale(sale_id: int):
    try:
        sale = sales_service.void_sale(sale_id, g.current_user.id)
    except SaleStateError as e:
        return _state_error(e)
    return jsonify({"message": "Sale voided", "sale": sale.to_dict(include_items=True)})


@sales_bp.post("/<int:sale_id>/refund")
@require_auth
@require_permission("sales", "refund")
def refund_sale(sale_id: int):
    data = request.get_json(silent=True) or {}
    try:
        sales_return = sales_service.process_refund(
            sale_id,
            data.get("item_ids"),
            data.get("reason"),
            data.get("notes"),
            g.current_user.id,
        )
    except SaleStateError as e:
        return _state_error(e)
    return jsonify({"message": "Refund processed", "return": sales_return.to_dict()}), 201
