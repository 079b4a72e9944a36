# Overview: Flask API routes for dashboard widgets; every figure counts COMPLETED sales only.

from flask import Blueprint, jsonify

from ..services import analytics_service
from ..decorators import require_auth, require_permission

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/analytics")
@require_auth
@require_permission("dashboard", "view")
def dashboard_analytics():
    """Day/week/month totals with growth versus the previous period, plus a 30-day series."""
    return jsonify(analytics_service.get_dashboard_analytics())


@dashboard_bp.get("/stats")
@require_auth
@require_permission("dashboard", "view")
def dashboard_stats():
    return jsonify(analytics_service.get_dashboard_stats())


@dashboard_bp.get("/hourly-sales")
@require_auth
@require_permission("dashboard", "view")
def hourly_sales():
    return jsonify({"hourly_sales": analytics_service.get_hourly_sales()})


@dashboard_bp.get("/payment-methods")
@require_auth
@require_permission("dashboard", "view")
def payment_methods():
    return jsonify({"payment_methods": analytics_service.get_payment_method_distribution()})


@dashboard_bp.get("/recent-sales")
@require_auth
@require_permission("dashboard", "view")
def recent_sales():
    return jsonify({"recent_sales": analytics_service.get_recent_sales()})


@dashboard_bp.get("/low-stock")
@require_auth
@require_permission("dashboard", "view")
def low_stock():
    return jsonify({"low_stock_products": analytics_service.get_low_stock_products()})
