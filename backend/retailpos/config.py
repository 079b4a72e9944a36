# backend/retailpos/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/retailpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///retailpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie carrying the signed JWT
    JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))
    AUTH_COOKIE_NAME = os.environ.get("AUTH_COOKIE_NAME", "pos_session")
    AUTH_COOKIE_SECURE = _env_bool("AUTH_COOKIE_SECURE", False)
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Cart default applied when no tax has been configured by the cashier
    DEFAULT_TAX_PERCENT = os.environ.get("DEFAULT_TAX_PERCENT", "5")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
