# Overview: JSON backup and restore of the store database, plus the raw SQLite file download.

"""
Backup and restore.

A backup is one JSON document holding every table row by row:

    {"version": "1", "created_at": "...Z", "tables": {"products": [...], ...}}

Money and quantities are written as strings, datetimes and dates as ISO text.
Password hashes are never written.

Restore replaces the store's data with the document's in a single transaction.
Users and roles are left as they are, since they carry the credentials of the
person restoring; references to users that do not exist here are cleared.
"""

from __future__ import annotations

import os
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

import sqlalchemy as sa

from ..extensions import db
from ..models import Role, User
from ..time_utils import to_utc_z, utcnow
from ..validation import ValidationError
from .activity_service import log_activity
from .auth_service import verify_admin_password
from .concurrency import atomic

BACKUP_VERSION = "1"

KEPT_TABLES = (User.__tablename__, Role.__tablename__)
EXCLUDED_COLUMNS = {User.__tablename__: {"password_hash"}}


def _tables() -> list[sa.Table]:
    """Every mapped table, parents before children."""
    return list(db.metadata.sorted_tables)


def _restorable_tables() -> list[sa.Table]:
    return [t for t in _tables() if t.name not in KEPT_TABLES]


def _dump_value(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def _load_value(column: sa.Column, value):
    if value is None:
        return None
    if isinstance(column.type, sa.DateTime):
        return datetime.fromisoformat(value)
    if isinstance(column.type, sa.Date):
        return date.fromisoformat(value)
    if isinstance(column.type, sa.Numeric):
        return Decimal(str(value))
    return value


def generate_backup() -> dict:
    tables = {}
    for table in _tables():
        skip = EXCLUDED_COLUMNS.get(table.name, set())
        columns = [c for c in table.columns if c.name not in skip]
        rows = db.session.execute(sa.select(*columns).order_by(*table.primary_key.columns)).mappings()
        tables[table.name] = [{k: _dump_value(v) for k, v in row.items()} for row in rows]
    return {
        "version": BACKUP_VERSION,
        "created_at": to_utc_z(utcnow()),
        "tables": tables,
    }


def _parse_backup(payload) -> dict[str, list[dict]]:
    """Validate the document and convert every row before anything is deleted."""
    if not isinstance(payload, dict) or not isinstance(payload.get("tables"), dict):
        raise ValidationError("Invalid backup file format")
    if str(payload.get("version")) != BACKUP_VERSION:
        raise ValidationError(f"Unsupported backup version: {payload.get('version')}")

    parsed = {}
    for table in _restorable_tables():
        rows = payload["tables"].get(table.name)
        if not isinstance(rows, list):
            raise ValidationError(f"Invalid backup file format: missing table {table.name}")
        converted = []
        for index, row in enumerate(rows, start=1):
            if not isinstance(row, dict):
                raise ValidationError(f"Invalid backup file format: {table.name} row {index}")
            try:
                converted.append({
                    c.name: _load_value(c, row.get(c.name))
                    for c in table.columns
                    if c.name in row
                })
            except (TypeError, ValueError, InvalidOperation):
                raise ValidationError(f"Invalid value in {table.name} row {index}")
        parsed[table.name] = converted
    return parsed


def _clear_unknown_users(table: sa.Table, rows: list[dict], user_ids: set[int]) -> None:
    user_columns = [
        c.name for c in table.columns
        if any(fk.column.table.name == User.__tablename__ for fk in c.foreign_keys)
    ]
    for row in rows:
        for name in user_columns:
            if row.get(name) is not None and row[name] not in user_ids:
                row[name] = None


def _reset_sequences(tables: list[sa.Table]) -> None:
    # SQLite derives the next id from the table itself
    if db.engine.dialect.name != "postgresql":
        return
    for table in tables:
        db.session.execute(sa.text(
            f"SELECT setval(pg_get_serial_sequence('{table.name}', 'id'), "
            f"COALESCE((SELECT MAX(id) FROM {table.name}), 1))"
        ))


def restore_backup(user_id: int, password: str, payload) -> dict:
    """
    Replace all store data with a backup after re-checking the caller's password.

    Returns the number of rows restored per table.
    """
    verify_admin_password(user_id, password)
    parsed = _parse_backup(payload)
    tables = _restorable_tables()

    restored = {}
    with atomic():
        for table in reversed(tables):
            db.session.execute(table.delete())
        user_ids = set(db.session.scalars(sa.select(User.id)))
        for table in tables:
            rows = parsed[table.name]
            _clear_unknown_users(table, rows, user_ids)
            if rows:
                db.session.execute(table.insert(), rows)
            restored[table.name] = len(rows)
        _reset_sequences(tables)
    db.session.expire_all()

    log_activity("RESTORE", f"Database restored from backup ({sum(restored.values())} rows)", user_id=user_id)
    return restored


def database_file_path() -> str:
    """Path of the SQLite database file, for a raw file download."""
    url = db.engine.url
    if url.get_backend_name() != "sqlite" or url.database in (None, "", ":memory:"):
        raise ValidationError("Database file download is only available for SQLite file databases")
    if not os.path.exists(url.database):
        raise ValidationError("Database file not found")
    return url.database
