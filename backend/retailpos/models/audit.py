from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class ActivityLog(db.Model):
    """
    Append-only audit trail of logins, sales, voids and administrative actions.

    Writes are best-effort: a failure to record an entry never blocks the
    operation being recorded.
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_logs_user_type", "user_id", "activity_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    activity_type = db.Column(db.String(32), nullable=False, index=True)  # LOGIN, LOGIN_FAILED, SALE, VOID, ...
    entity_type = db.Column(db.String(32), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)
    description = db.Column(db.Text, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "activity_type": self.activity_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "ip_address": self.ip_address,
            "created_at": to_utc_z(self.created_at),
        }
