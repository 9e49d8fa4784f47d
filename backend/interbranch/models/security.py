from __future__ import annotations

from ..extensions import db
from interbranch.time_utils import to_utc_z


class SecurityEvent(db.Model):
    """
    Audit log of denied transfer actions.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_user_type", "user_id", "event_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)  # TRANSFER_ACCESS_DENIED
    resource = db.Column(db.String(128), nullable=True)  # e.g., "transfer_request:12"
    action = db.Column(db.String(64), nullable=True)     # create, view, decide

    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "branch_id": self.branch_id,
            "event_type": self.event_type,
            "resource": self.resource,
            "action": self.action,
            "success": self.success,
            "reason": self.reason,
            "occurred_at": to_utc_z(self.occurred_at),
        }
