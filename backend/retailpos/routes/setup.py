# Overview: Flask API routes for first-run setup; available only while no real user exists.

from flask import Blueprint, request, jsonify

from ..services import session_service, setup_service
from ..services.setup_service import SetupError

setup_bp = Blueprint("setup", __name__, url_prefix="/api/setup")


@setup_bp.get("/status")
def setup_status():
    return jsonify({"initialized": setup_service.is_system_initialized()})


@setup_bp.post("")
def run_setup():
    """
    Create the administrator, seed roles/units/category/walk-in and log in.

    Returns 409 once any real user exists.
    """
    data = request.get_json(silent=True) or {}
    try:
        admin = setup_service.initialize_system(
            username=data.get("username"),
            password=data.get("password"),
            confirm_password=data.get("confirm_password"),
            store_name=data.get("store_name"),
        )
    except SetupError as e:
        return jsonify({"error": str(e)}), 409

    token = session_service.create_token(admin)
    response = jsonify({"message": "System initialized", "user": admin.to_dict()})
    response.status_code = 201
    return session_service.set_session_cookie(response, token)
