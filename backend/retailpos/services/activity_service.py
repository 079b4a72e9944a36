# Overview: Best-effort activity/audit logging for logins, sales and administrative actions.

"""
Activity logging.

Entries are written in their own commit after the primary operation has
committed. A failed write is rolled back and reported through the module
logger; it never propagates to the caller.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import ActivityLog, User

logger = logging.getLogger(__name__)

SYSTEM_USERNAME = "system"


def get_system_user_id() -> int | None:
    user = db.session.query(User).filter_by(username=SYSTEM_USERNAME, is_system_account=True).first()
    return user.id if user else None


def log_activity(
    activity_type: str,
    description: str,
    user_id: int | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    ip_address: str | None = None,
) -> ActivityLog | None:
    """
    Record an activity entry. Returns None when the write failed.

    Entries with no actor are attributed to the system account when it exists.
    """
    try:
        if user_id is None:
            user_id = get_system_user_id()
        entry = ActivityLog(
            user_id=user_id,
            activity_type=activity_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            ip_address=ip_address,
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except Exception:
        db.session.rollback()
        logger.warning("Failed to record %s activity", activity_type, exc_info=True)
        return None


def list_activity(limit: int = 100, activity_type: str | None = None) -> list[ActivityLog]:
    query = db.session.query(ActivityLog)
    if activity_type:
        query = query.filter(ActivityLog.activity_type == activity_type)
    return query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
