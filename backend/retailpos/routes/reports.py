# Overview: Flask API routes for date-range financial reports and dead stock.

from flask import Blueprint, request, jsonify

from ..services import reporting_service
from ..validation import parse_date_arg
from ..decorators import require_auth, require_permission

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _range_args():
    return (
        parse_date_arg(request.args.get("start_date"), "start_date"),
        parse_date_arg(request.args.get("end_date"), "end_date"),
    )


@reports_bp.get("/summary")
@require_auth
@require_permission("reports", "view")
def report_summary():
    """
    Query params (both required, inclusive, YYYY-MM-DD):
    - start_date
    - end_date
    """
    start_date, end_date = _range_args()
    return jsonify(reporting_service.get_report_data(start_date, end_date))


@reports_bp.get("/dead-stock")
@require_auth
@require_permission("reports", "view")
def dead_stock():
    start_date, end_date = _range_args()
    return jsonify({"products": reporting_service.get_dead_stock(start_date, end_date)})
