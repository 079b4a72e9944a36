# Overview: Flask API routes for login, logout and the current session; sets the HttpOnly cookie.

"""
Authentication API routes.

The session token travels only in an HttpOnly cookie; it is never returned in
a response body. Self-registration does not exist: staff accounts are created
under /api/users by a user with settings.edit.
"""

from flask import Blueprint, request, jsonify, g

from ..services import auth_service, session_service, permission_service
from ..services.auth_service import AuthenticationError
from ..decorators import require_auth

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")

    try:
        user = auth_service.authenticate(username, password, ip_address=request.remote_addr)
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401

    token = session_service.create_token(user)
    response = jsonify({
        "user": user.to_dict(),
        "permissions": permission_service.get_user_permissions(user.id).to_dict(),
    })
    return session_service.set_session_cookie(response, token)


@auth_bp.post("/logout")
def logout_route():
    """Always succeeds; clears the cookie whether or not it was valid."""
    response = jsonify({"message": "Logged out"})
    return session_service.clear_session_cookie(response)


@auth_bp.get("/session")
@require_auth
def session_route():
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "permissions": permission_service.get_user_permissions(user.id).to_dict(),
        "expires_at": g.session_context.claims.get("exp"),
    })
