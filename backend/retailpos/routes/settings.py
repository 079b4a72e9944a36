# Overview: Flask API routes for the single store settings record.

from flask import Blueprint, request, jsonify, g

from ..extensions import db
from ..services import settings_service
from ..services.activity_service import log_activity
from ..decorators import require_auth, require_permission

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
@require_permission("settings", "view")
def get_settings():
    settings = settings_service.get_settings()
    db.session.commit()
    return jsonify({"settings": settings.to_dict()})


@settings_bp.put("")
@require_auth
@require_permission("settings", "edit")
def update_settings():
    data = request.get_json(silent=True) or {}
    settings = settings_service.update_settings(data)
    log_activity("SETTINGS_UPDATE", "Store settings updated", user_id=g.current_user.id,
                 entity_type="StoreSettings", entity_id=settings.id)
    return jsonify({"message": "Settings updated", "settings": settings.to_dict()})
