from __future__ import annotations

from ..extensions import db
from interbranch.time_utils import to_utc_z


TRANSFER_STATUS_PENDING = "pending"
TRANSFER_STATUS_APPROVED = "approved"
TRANSFER_STATUS_REJECTED = "rejected"
TRANSFER_STATUSES = (TRANSFER_STATUS_PENDING, TRANSFER_STATUS_APPROVED, TRANSFER_STATUS_REJECTED)


class TransferRequest(db.Model):
    """
    Request to move stock of one product from a source branch to a target branch.

    LIFECYCLE:
    1. pending: created at the source branch, stock not yet moved
    2. approved: stock debited at source and credited at target (terminal for the ledger)
    3. rejected: declined; may be resent, which returns it to pending

    status only changes through the store's compare-and-swap transition.
    revision counts committed transitions and keys notification dedupe.
    Rows are never deleted by the workflow.
    """
    __tablename__ = "transfer_requests"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transfer_requests_quantity_positive"),
        db.CheckConstraint("source_branch_id <> target_branch_id", name="ck_transfer_requests_distinct_branches"),
        db.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_transfer_requests_status",
        ),
        db.Index("ix_transfer_requests_status_created", "status", "created_at"),
        db.Index("ix_transfer_requests_source_status", "source_branch_id", "status"),
        db.Index("ix_transfer_requests_target_status", "target_branch_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    source_branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)
    target_branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=TRANSFER_STATUS_PENDING)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    # Set by approve and reject, cleared by resend
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    revision = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    product = db.relationship("Product")
    source_branch = db.relationship("Branch", foreign_keys=[source_branch_id])
    target_branch = db.relationship("Branch", foreign_keys=[target_branch_id])
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    approved_by = db.relationship("User", foreign_keys=[approved_by_user_id])

    def __repr__(self) -> str:
        return (
            f"<TransferRequest id={self.id} product_id={self.product_id} "
            f"{self.source_branch_id}->{self.target_branch_id} qty={self.quantity} status={self.status}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "source_branch_id": self.source_branch_id,
            "source_branch_name": self.source_branch.name if self.source_branch else None,
            "target_branch_id": self.target_branch_id,
            "target_branch_name": self.target_branch.name if self.target_branch else None,
            "quantity": self.quantity,
            "status": self.status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "revision": self.revision,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "decided_at": to_utc_z(self.decided_at) if self.decided_at else None,
        }
