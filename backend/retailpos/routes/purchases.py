# Overview: Flask API routes for purchase orders: receive, list, edit, pay off and void.

from flask import Blueprint, request, jsonify, g

from ..services import purchase_service
from ..services.purchase_service import PurchaseError
from ..decorators import require_auth, require_permission

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


def _purchase_error(e: PurchaseError):
    return jsonify({"error": str(e), "details": e.details}), 400


@purchases_bp.get("")
@require_auth
@require_permission("purchases", "view")
def list_purchases():
    result = purchase_service.list_purchases(
        query=request.args.get("q"),
        page=request.args.get("page", 1, type=int),
        status=request.args.get("status"),
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
    )
    return jsonify(result)


@purchases_bp.get("/<int:purchase_id>")
@require_auth
@require_permission("purchases", "view")
def get_purchase(purchase_id: int):
    purchase = purchase_service.get_purchase(purchase_id)
    return jsonify({"purchase": purchase.to_dict(include_items=True)})


@purchases_bp.post("")
@require_auth
@require_permission("purchases", "create")
def create_purchase():
    """
    Record goods bought from a supplier.

    Every item is added to stock and its product cost price updated; the
    unpaid part of a RECEIVED purchase is added to the supplier balance.
    """
    data = request.get_json(silent=True) or {}
    try:
        purchase = purchase_service.create_purchase(data, g.current_user.id)
    except PurchaseError as e:
        return _purchase_error(e)
    return jsonify({"message": "Purchase created", "purchase": purchase.to_dict(include_items=True)}), 201


@purchases_bp.put("/<int:purchase_id>")
@require_auth
@require_permission("purchases", "edit")
def update_purchase(purchase_id: int):
    data = request.get_json(silent=True) or {}
    try:
        purchase = purchase_service.update_purchase(purchase_id, data, g.current_user.id)
    except PurchaseError as e:
        return _purchase_error(e)
    return jsonify({"message": "Purchase updated", "purchase": purchase.to_dict(include_items=True)})


@purchases_bp.post("/<int:purchase_id>/pay")
@require_auth
@require_permission("purchases", "edit")
def mark_paid(purchase_id: int):
    data = request.get_json(silent=True) or {}
    purchase = purchase_service.mark_purchase_paid(purchase_id, g.current_user.id, data.get("payment_method"))
    return jsonify({"message": "Purchase marked as paid", "purchase": purchase.to_dict(include_items=True)})


@purchases_bp.post("/<int:purchase_id>/void")
@require_auth
@require_permission("purchases", "delete")
def void_purchase(purchase_id: int):
    try:
        purchase = purchase_service.void_purchase(purchase_id, g.current_user.id)
    except PurchaseError as e:
        return _purchase_error(e)
    return jsonify({"message": "Purchase voided", "purchase": purchase.to_dict(include_items=True)})
