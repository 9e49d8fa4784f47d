from __future__ import annotations

from ..extensions import db
from interbranch.time_utils import to_utc_z


class Notification(db.Model):
    """
    A notification produced by a transfer workflow transition.

    user_id NULL marks the single branch-wide row of an event, used only to
    drive a real-time refresh for that branch. event_key identifies the
    transition ("transfer:<id>:<event>:<revision>") and recipient_key the
    addressee ("user:<id>" or "branch:<id>"); together they are unique, so a
    retried fan-out cannot notify anyone twice.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.UniqueConstraint("event_key", "recipient_key", name="uq_notifications_event_recipient"),
        db.Index("ix_notifications_user_read", "user_id", "is_read"),
        db.Index("ix_notifications_branch_created", "branch_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)

    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(64), nullable=False, index=True)
    data = db.Column(db.JSON, nullable=False, default=dict)
    is_read = db.Column(db.Boolean, nullable=False, default=False)

    event_key = db.Column(db.String(128), nullable=False, index=True)
    recipient_key = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def is_branch_wide(self) -> bool:
        return self.user_id is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "branch_id": self.branch_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "data": self.data or {},
            "is_read": self.is_read,
            "is_branch_wide": self.is_branch_wide,
            "event_key": self.event_key,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
