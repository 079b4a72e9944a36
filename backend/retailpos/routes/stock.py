# Overview: Flask API routes for stock levels, manual adjustments and the movement ledger.

from flask import Blueprint, request, jsonify, g

from ..services import stock_service
from ..services.stock_service import StockError, ADJUSTMENT_REASONS
from ..decorators import require_auth, require_permission

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("/overview")
@require_auth
@require_permission("stock", "view")
def stock_overview():
    return jsonify(stock_service.get_stock_overview())


@stock_bp.get("/products")
@require_auth
@require_permission("stock", "view")
def stock_products():
    low_stock_only = request.args.get("low_stock", "false").lower() == "true"
    products = stock_service.get_stock_products(
        query=request.args.get("q"),
        category_id=request.args.get("category_id"),
        low_stock_only=low_stock_only,
    )
    return jsonify({"products": products})


@stock_bp.get("/reasons")
@require_auth
@require_permission("stock", "view")
def adjustment_reasons():
    return jsonify({"reasons": list(ADJUSTMENT_REASONS)})


@stock_bp.post("/adjust")
@require_auth
@require_permission("stock", "adjust")
def adjust_stock():
    """
    Body: product_id, type (ADD/REMOVE), quantity, reason, notes.

    REMOVE beyond the current quantity fails with 400 and no change.
    """
    data = request.get_json(silent=True) or {}
    try:
        adjustment = stock_service.adjust_stock(
            data.get("product_id"),
            data.get("type"),
            data.get("quantity"),
            data.get("reason"),
            data.get("notes"),
            g.current_user.id,
        )
    except StockError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    return jsonify({"message": "Stock adjusted successfully", "adjustment": adjustment.to_dict()}), 201


@stock_bp.get("/history/<int:product_id>")
@require_auth
@require_permission("stock", "view")
def stock_history(product_id: int):
    return jsonify({"history": stock_service.get_stock_history(product_id)})


@stock_bp.get("/reconcile/<int:product_id>")
@require_auth
@require_permission("stock", "view")
def reconcile(product_id: int):
    return jsonify(stock_service.reconcile_product(product_id))
