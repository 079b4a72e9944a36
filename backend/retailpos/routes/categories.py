# Overview: Flask API routes for product categories.

from flask import Blueprint, request, jsonify

from ..services import catalog_service
from ..decorators import require_auth, require_permission

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
@require_permission("categories", "view")
def list_categories():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    categories = catalog_service.list_categories(include_inactive=include_inactive)
    return jsonify({"categories": [c.to_dict() for c in categories]})


@categories_bp.post("")
@require_auth
@require_permission("categories", "create")
def create_category():
    category = catalog_service.create_category(request.get_json(silent=True) or {})
    return jsonify({"message": "Category created", "category": category.to_dict()}), 201


@categories_bp.put("/<int:category_id>")
@require_auth
@require_permission("categories", "edit")
def update_category(category_id: int):
    category = catalog_service.update_category(category_id, request.get_json(silent=True) or {})
    return jsonify({"message": "Category updated", "category": category.to_dict()})


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_permission("categories", "delete")
def delete_category(category_id: int):
    """Archived instead of removed while active products still use it."""
    catalog_service.delete_category(category_id)
    return jsonify({"message": "Category deleted"})
