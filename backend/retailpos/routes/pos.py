# Overview: Flask API routes for the register: product grid, cart quotes and checkout.

from decimal import Decimal

from flask import Blueprint, request, jsonify, g, current_app

from ..services import cart_service, customer_service, permission_service, pos_service, settings_service
from ..services.pos_service import SaleError
from ..money import to_decimal
from ..validation import ValidationError, parse_amount
from ..decorators import require_auth, require_permission

pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


def _default_tax() -> Decimal:
    rate = settings_service.get_settings().tax_rate
    # A zero store rate falls back to the configured register default
    if not rate:
        return to_decimal(current_app.config.get("DEFAULT_TAX_PERCENT", 0))
    return to_decimal(rate)


@pos_bp.get("/products")
@require_auth
@require_permission("pos", "access")
def pos_products():
    products = pos_service.get_pos_products(
        query=request.args.get("q"),
        category_id=request.args.get("category_id"),
    )
    return jsonify({"products": [p.to_dict() for p in products]})


@pos_bp.get("/categories")
@require_auth
@require_permission("pos", "access")
def pos_categories():
    return jsonify({"categories": [c.to_dict() for c in pos_service.get_pos_categories()]})


@pos_bp.get("/customers")
@require_auth
@require_permission("pos", "access")
def pos_customers():
    return jsonify({"customers": customer_service.get_customer_options()})


@pos_bp.post("/cart/quote")
@require_auth
@require_permission("pos", "access")
def quote_cart():
    """Recompute a client cart's totals and change. Nothing is persisted."""
    data = request.get_json(silent=True) or {}
    cart = cart_service.Cart.from_dict(data, default_tax=_default_tax())
    return jsonify(cart.to_dict())


@pos_bp.post("/sales")
@require_auth
@require_permission("pos", "access")
def create_sale():
    """
    Complete a checkout.

    Accepts either a sale payload or {"cart": {...}, "notes": "..."}; a cart
    is recalculated server-side before it is turned into a sale payload.
    Discounts need pos.discount on top of pos.access.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be an object")
    if isinstance(data.get("cart"), dict):
        cart = cart_service.Cart.from_dict(data["cart"], default_tax=_default_tax())
        payload = cart_service.build_sale_request(cart, notes=data.get("notes"))
    else:
        payload = data

    if parse_amount(payload.get("discount"), "discount") > 0:
        permission_service.require_permission(g.current_user.id, "pos", "discount")

    try:
        receipt = pos_service.process_sale(payload, g.current_user.id)
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400

    return jsonify({"message": "Sale completed", "sale": receipt}), 201
