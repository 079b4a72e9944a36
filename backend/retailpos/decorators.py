# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, permission_service
from .services.permission_service import DENIED_MESSAGE, PermissionDeniedError


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a valid session cookie.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object

    Returns 401 if:
    - No session cookie
    - Invalid, tampered or expired token
    - User account deleted or deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = session_service.read_session_cookie(request)
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired session"}), 401

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_permission(module: str, action: str):
    """
    Require a module/action grant on the caller's live role.

    The 403 body never names the missing permission.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require_permission(g.current_user.id, module, action)
            except PermissionDeniedError:
                return jsonify({"error": DENIED_MESSAGE}), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator
