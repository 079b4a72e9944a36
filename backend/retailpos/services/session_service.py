# Overview: Signed, time-limited session tokens (JWT) carried in an HTTP-only cookie.

"""
Session tokens.

The token carries the user id, role id, role name and a snapshot of the role's
permission matrix at login. The snapshot is informational for clients only;
authorization always re-reads the role (see permission_service).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from flask import current_app
from jose import JWTError, jwt

from ..extensions import db
from ..models import User
from ..time_utils import utcnow
from .permission_service import role_matrix


@dataclass
class SessionContext:
    user: User
    claims: dict


def _secret() -> str:
    return current_app.config["SECRET_KEY"]


def _algorithm() -> str:
    return current_app.config.get("JWT_ALGORITHM", "HS256")


def session_ttl() -> timedelta:
    return timedelta(hours=int(current_app.config.get("SESSION_TTL_HOURS", 24)))


def create_token(user: User) -> str:
    now = utcnow()
    role = user.role
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "rid": role.id if role else None,
        "role": role.name if role else None,
        "perms": role_matrix(role).to_dict() if role else {},
        "iat": now,
        "exp": now + session_ttl(),
    }
    return jwt.encode(payload, _secret(), algorithm=_algorithm())


def decode_token(token: str) -> dict | None:
    """Claims of a valid, unexpired token, else None."""
    try:
        return jwt.decode(token, _secret(), algorithms=[_algorithm()])
    except JWTError:
        return None


def validate_session(token: str | None) -> SessionContext | None:
    """
    Resolve a cookie token to an active user.

    Returns None for missing, tampered or expired tokens, deleted users and
    inactive accounts.
    """
    if not token:
        return None
    claims = decode_token(token)
    if not claims:
        return None
    try:
        user_id = int(claims.get("sub"))
    except (TypeError, ValueError):
        return None
    user = db.session.get(User, user_id)
    if user is None or not user.is_active or user.is_system_account:
        return None
    return SessionContext(user=user, claims=claims)


def set_session_cookie(response, token: str):
    response.set_cookie(
        current_app.config.get("AUTH_COOKIE_NAME", "pos_session"),
        token,
        max_age=int(session_ttl().total_seconds()),
        httponly=True,
        secure=bool(current_app.config.get("AUTH_COOKIE_SECURE", False)),
        samesite="Lax",
        path="/",
    )
    return response


def clear_session_cookie(response):
    response.delete_cookie(current_app.config.get("AUTH_COOKIE_NAME", "pos_session"), path="/")
    return response


def read_session_cookie(request) -> str | None:
    return request.cookies.get(current_app.config.get("AUTH_COOKIE_NAME", "pos_session"))
