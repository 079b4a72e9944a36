# Overview: Flask API routes for the activity log, the transactional data wipe and backup/restore.

import json

from flask import Blueprint, request, jsonify, g, current_app, send_file

from ..services import backup_service, maintenance_service
from ..time_utils import utcnow
from ..validation import ValidationError
from ..services.activity_service import list_activity
from ..decorators import require_auth, require_permission

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/activity")
@require_auth
@require_permission("settings", "view")
def activity_log():
    """
    Query params:
    - limit: int (default 100, max 500)
    - type: activity type filter (e.g. LOGIN_FAILED)
    """
    limit = min(max(request.args.get("limit", 100, type=int), 1), 500)
    entries = list_activity(limit=limit, activity_type=request.args.get("type"))
    return jsonify({"activity": [e.to_dict() for e in entries]})


@admin_bp.post("/reset")
@require_auth
@require_permission("settings", "system")
def reset_transactions():
    """
    Delete sales, returns, purchases, stock ledger, customer payments and
    price history. Requires the caller's password in the body.
    """
    data = request.get_json(silent=True) or {}
    deleted = maintenance_service.reset_transactions(g.current_user.id, data.get("password"))
    current_app.logger.warning("Transactional data wiped by user %s", g.current_user.id)
    return jsonify({"message": "Transactional data has been reset", "deleted": deleted})


@admin_bp.get("/backup")
@require_auth
@require_permission("settings", "system")
def download_backup():
    """Whole-store JSON backup as a file download. Password hashes are left out."""
    backup = backup_service.generate_backup()
    response = jsonify(backup)
    filename = f"retailpos_backup_{utcnow():%Y%m%d_%H%M%S}.json"
    response.headers["Content-Disposition"] = f"attachment; filename={filename}"
    return response


@admin_bp.get("/backup/db")
@require_auth
@require_permission("settings", "system")
def download_database_file():
    path = backup_service.database_file_path()
    return send_file(path, mimetype="application/octet-stream", as_attachment=True,
                     download_name="retailpos.sqlite3")


@admin_bp.post("/restore")
@require_auth
@require_permission("settings", "system")
def restore_backup():
    """
    Replace all store data with a backup.

    Accepts either a JSON body {"password": ..., "backup": {...}} or a
    multipart upload with a "file" part and a "password" field.
    """
    upload = request.files.get("file")
    if upload is not None:
        password = request.form.get("password")
        try:
            payload = json.load(upload.stream)
        except ValueError:
            raise ValidationError("Backup file is not valid JSON")
    else:
        data = request.get_json(silent=True) or {}
        password = data.get("password")
        payload = data.get("backup")

    restored = backup_service.restore_backup(g.current_user.id, password, payload)
    current_app.logger.warning("Database restored from backup by user %s", g.current_user.id)
    return jsonify({"message": "Database restored", "restored": restored})
