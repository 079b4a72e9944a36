# Overview: Flask API routes for the product catalog, price history and spreadsheet import/export.

"""
Product routes.

Read operations require products.view; writes require products.create,
products.edit or products.delete. Spreadsheet export counts as a read.
"""

import io

from flask import Blueprint, request, jsonify, g, send_file

from ..services import catalog_service, product_excel_service
from ..services.product_excel_service import XLSX_MIMETYPE
from ..time_utils import utcnow
from ..decorators import require_auth, require_permission

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("products", "view")
def list_products():
    """
    Query params:
    - q: name, barcode or SKU fragment
    - category_id: int or "all"
    - page: 1-indexed, 10 per page
    """
    result = catalog_service.list_products(
        query=request.args.get("q"),
        page=request.args.get("page", 1, type=int),
        category_id=request.args.get("category_id"),
    )
    return jsonify(result)


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("products", "view")
def get_product(product_id: int):
    return jsonify({"product": catalog_service.get_product(product_id).to_dict()})


@products_bp.post("")
@require_auth
@require_permission("products", "create")
def create_product():
    data = request.get_json(silent=True) or {}
    product = catalog_service.create_product(data, g.current_user.id)
    return jsonify({"message": "Product created", "product": product.to_dict()}), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("products", "edit")
def update_product(product_id: int):
    data = request.get_json(silent=True) or {}
    product = catalog_service.update_product(product_id, data, g.current_user.id)
    return jsonify({"message": "Product updated", "product": product.to_dict()})


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("products", "delete")
def delete_product(product_id: int):
    catalog_service.delete_product(product_id)
    return jsonify({"message": "Product deleted"})


@products_bp.get("/<int:product_id>/price-history")
@require_auth
@require_permission("products", "view")
def price_history(product_id: int):
    entries = catalog_service.list_price_history(product_id)
    return jsonify({"history": [e.to_dict() for e in entries]})


def _xlsx_response(content: bytes, filename: str):
    return send_file(
        io.BytesIO(content),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
    )


@products_bp.get("/export")
@require_auth
@require_permission("products", "view")
def export_products():
    content = product_excel_service.export_products_workbook()
    return _xlsx_response(content, f"products_{utcnow():%Y%m%d}.xlsx")


@products_bp.get("/template")
@require_auth
@require_permission("products", "view")
def download_template():
    return _xlsx_response(product_excel_service.build_template_workbook(), "product_import_template.xlsx")


@products_bp.post("/import")
@require_auth
@require_permission("products", "create")
def import_products():
    """
    Bulk upsert from an uploaded .xlsx (multipart field "file").

    All-or-nothing: one bad row rejects the whole file.
    """
    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400
    upload = request.files["file"]
    if not upload.filename:
        return jsonify({"error": "No file selected"}), 400
    if not upload.filename.lower().endswith(".xlsx"):
        return jsonify({"error": "File must be an .xlsx workbook"}), 400

    rows = product_excel_service.read_product_rows(io.BytesIO(upload.read()))
    result = product_excel_service.bulk_import_products(rows, g.current_user.id)
    return jsonify({
        "message": f"Import complete: {result['imported']} created, {result['updated']} updated",
        **result,
    })
