"""
Notification fan-out for transfer workflow transitions.

RECIPIENTS (active admin/manager/staff at each branch listed):
- created:  target branch, only for main -> sub requests
- approved: source branch ("approved") and target branch ("received"),
            plus the main branch when a sub-branch actor made the decision
- rejected: main branch
- resent:   target branch

Each recipient gets exactly one row; each branch gets one extra branch-wide
row (user_id NULL) that is published to the branch for a real-time refresh.
A branch listed twice for one event (e.g. main is also the source) is only
notified once.

Rows are keyed by (event_key, recipient_key), so dispatching the same event
again inserts nothing. Fan-out runs after the workflow commit and its
failures are logged, never raised.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db, publisher
from ..models import Branch, Notification, TransferRequest, User, UserBranchAssignment
from ..models.branches import BRANCH_TYPE_MAIN
from ..errors import BranchAccessDeniedError, NotificationNotFoundError
from .branch_access_service import (
    get_active_assignment,
    is_main_actor,
    log_security_event,
    visible_branch_scope,
)
from .concurrency import run_in_transaction


EVENT_CREATED = "created"
EVENT_APPROVED = "approved"
EVENT_REJECTED = "rejected"
EVENT_RESENT = "resent"

NOTIFICATION_TYPES = {
    EVENT_CREATED: "stock_transfer_request",
    EVENT_APPROVED: "stock_transfer_approved",
    EVENT_REJECTED: "stock_transfer_rejected",
    EVENT_RESENT: "stock_transfer_resent",
}


@dataclass(frozen=True)
class TransferEvent:
    type: str
    request: TransferRequest
    actor: UserBranchAssignment

    @property
    def event_key(self) -> str:
        return f"transfer:{self.request.id}:{self.type}:{self.request.revision}"


@dataclass(frozen=True)
class FanoutTarget:
    branch_id: int
    title: str
    message: str


def get_main_branch() -> Branch | None:
    return (
        db.session.query(Branch)
        .filter(Branch.type == BRANCH_TYPE_MAIN)
        .order_by(Branch.id.asc())
        .first()
    )


def plan_fanout(event: TransferEvent) -> list[FanoutTarget]:
    """Ordered, de-duplicated (branch, wording) groups for an event."""
    request = event.request
    source = request.source_branch
    target = request.target_branch
    product_name = request.product.name if request.product else "Product"
    qty = request.quantity

    groups: list[FanoutTarget] = []

    if event.type == EVENT_CREATED:
        if source.is_main and not target.is_main:
            groups.append(FanoutTarget(
                branch_id=target.id,
                title="New Stock Request from Main Branch",
                message=(
                    f"New request to receive {qty} units of {product_name} from main branch "
                    f"{source.name}. Awaiting approval."
                ),
            ))

    elif event.type == EVENT_APPROVED:
        groups.append(FanoutTarget(
            branch_id=source.id,
            title="Stock Transfer Approved",
            message=(
                f"{product_name} transfer approved. {qty} units transferred from "
                f"{source.name} to {target.name}."
            ),
        ))
        groups.append(FanoutTarget(
            branch_id=target.id,
            title="Stock Transfer Received",
            message=f"{product_name} transfer approved. {qty} units received from {source.name}.",
        ))
        if not is_main_actor(event.actor):
            main = get_main_branch()
            if main is None:
                current_app.logger.warning("No main branch configured; skipping approval notice for request %s", request.id)
            else:
                decided_at = event.actor.branch.name if event.actor.branch else "a sub branch"
                groups.append(FanoutTarget(
                    branch_id=main.id,
                    title="Stock Transfer Approved by Sub Branch",
                    message=(
                        f"{decided_at} approved the transfer of {qty} units of {product_name} "
                        f"from {source.name} to {target.name}."
                    ),
                ))

    elif event.type == EVENT_REJECTED:
        main = get_main_branch()
        if main is None:
            current_app.logger.warning("No main branch configured; skipping rejection notice for request %s", request.id)
        else:
            groups.append(FanoutTarget(
                branch_id=main.id,
                title="Stock Transfer Rejected",
                message=(
                    f"{product_name} transfer request rejected. {qty} units transfer from "
                    f"{source.name} to {target.name} was not approved."
                ),
            ))

    elif event.type == EVENT_RESENT:
        groups.append(FanoutTarget(
            branch_id=target.id,
            title="Stock Transfer Resent",
            message=(
                f"Transfer request for {qty} units of {product_name} from {source.name} "
                f"was resent for approval."
            ),
        ))

    else:
        raise ValueError(f"Unknown transfer event: {event.type}")

    planned: list[FanoutTarget] = []
    seen_branches: set[int] = set()
    for group in groups:
        if group.branch_id in seen_branches:
            continue
        seen_branches.add(group.branch_id)
        planned.append(group)
    return planned


def compute_recipients(branch_id: int) -> list[int]:
    """Active users holding an active notify-role assignment at the branch, by user id."""
    roles = current_app.config.get("NOTIFY_ROLES", ("admin", "manager", "staff"))
    rows = (
        db.session.query(UserBranchAssignment.user_id)
        .join(User, User.id == UserBranchAssignment.user_id)
        .filter(
            UserBranchAssignment.branch_id == branch_id,
            UserBranchAssignment.is_active.is_(True),
            UserBranchAssignment.role.in_(roles),
            User.is_active.is_(True),
        )
        .distinct()
        .order_by(UserBranchAssignment.user_id.asc())
        .all()
    )
    return [row[0] for row in rows]


def _event_data(event: TransferEvent) -> dict:
    request = event.request
    return {
        "event": event.type,
        "transfer_request_id": request.id,
        "product_id": request.product_id,
        "product_name": request.product.name if request.product else None,
        "source_branch_id": request.source_branch_id,
        "source_branch_name": request.source_branch.name if request.source_branch else None,
        "target_branch_id": request.target_branch_id,
        "target_branch_name": request.target_branch.name if request.target_branch else None,
        "quantity": request.quantity,
        "status": request.status,
        "actor_user_id": event.actor.user_id,
    }


def dispatch_transfer_event(event: TransferEvent) -> list[Notification]:
    """
    Persist the notifications for one event, then publish per branch.

    Returns:
        list[Notification]: Rows created by this call (empty on a repeat)
    """
    targets = plan_fanout(event)
    if not targets:
        return []

    event_key = event.event_key
    notification_type = NOTIFICATION_TYPES[event.type]
    data = _event_data(event)

    def _op():
        existing = {
            row[0]
            for row in db.session.query(Notification.recipient_key).filter_by(event_key=event_key).all()
        }
        created: list[Notification] = []
        branch_rows: list[Notification] = []
        seen_users: set[int] = set()

        for target in targets:
            for user_id in compute_recipients(target.branch_id):
                if user_id in seen_users:
                    continue
                seen_users.add(user_id)
                recipient_key = f"user:{user_id}"
                if recipient_key in existing:
                    continue
                row = Notification(
                    user_id=user_id,
                    branch_id=target.branch_id,
                    title=target.title,
                    message=target.message,
                    type=notification_type,
                    data=data,
                    event_key=event_key,
                    recipient_key=recipient_key,
                )
                db.session.add(row)
                created.append(row)

            branch_key = f"branch:{target.branch_id}"
            if branch_key not in existing:
                row = Notification(
                    user_id=None,
                    branch_id=target.branch_id,
                    title=target.title,
                    message=target.message,
                    type=notification_type,
                    data=data,
                    event_key=event_key,
                    recipient_key=branch_key,
                )
                db.session.add(row)
                created.append(row)
                branch_rows.append(row)

        db.session.flush()
        return created, branch_rows

    created, branch_rows = run_in_transaction(_op)

    for row in branch_rows:
        publisher.publish(row.branch_id, row.to_dict())

    current_app.logger.info(
        "Sent %d notifications for %s (%d branches)",
        len(created), event_key, len(branch_rows),
    )
    return created


def notify_transfer_event(event: TransferEvent) -> list[Notification]:
    """Best-effort dispatch: failures are logged and swallowed."""
    try:
        return dispatch_transfer_event(event)
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Failed to send %s notifications for transfer request %s",
            event.type, event.request.id,
        )
        return []


def _branch_feed_query(user_id: int, branch_id: int):
    assignment = get_active_assignment(user_id)
    scope = visible_branch_scope(assignment)
    if scope is not None and branch_id not in scope:
        message = f"User cannot view notifications for branch {branch_id}"
        current_app.logger.warning(
            "Denied branch feed %s for user %s (branch %s, role %s)",
            branch_id, assignment.user_id, assignment.branch_id, assignment.role,
        )
        log_security_event(
            user_id=assignment.user_id,
            event_type="NOTIFICATION_ACCESS_DENIED",
            success=False,
            resource=f"branch:{branch_id}",
            action="view",
            reason=message,
            branch_id=assignment.branch_id,
        )
        raise BranchAccessDeniedError(message, details={"branch_id": branch_id})

    return db.session.query(Notification).filter(
        Notification.branch_id == branch_id,
        Notification.user_id.is_(None),
    )


def list_notifications_for_user(
    user_id: int,
    *,
    branch_id: int | None = None,
    is_read: bool | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """
    Page through the user's inbox, newest first.

    With `branch_id`, page through that branch's feed instead: the one
    branch-wide row written per event. Only branches the user may list
    transfers for are readable.

    Raises:
        UserNotAssignedError: Branch feed requested without an active assignment
        BranchAccessDeniedError: Branch outside the user's visible scope
    """
    if branch_id is None:
        query = db.session.query(Notification).filter(Notification.user_id == user_id)
    else:
        query = _branch_feed_query(user_id, branch_id)
    if is_read is not None:
        query = query.filter(Notification.is_read.is_(is_read))

    total_count = query.count()
    items = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    total_pages = -(-total_count // limit) if limit else 0

    return {
        "notifications": [n.to_dict() for n in items],
        "pagination": {
            "page": page,
            "limit": limit,
            "total_count": total_count,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def mark_notification_read(user_id: int, notification_id: int) -> Notification:
    """
    Mark one of the user's own notifications as read.

    Raises:
        NotificationNotFoundError: Unknown id or addressed to someone else
    """
    notification = db.session.get(Notification, notification_id)
    if not notification or notification.user_id != user_id:
        raise NotificationNotFoundError(f"Notification {notification_id} not found")

    if not notification.is_read:
        notification.is_read = True
        db.session.commit()
    return notification


def delete_notification(user_id: int, notification_id: int) -> None:
    """
    Delete one of the user's own notifications.

    Branch-wide rows belong to no user and cannot be deleted here.

    Raises:
        NotificationNotFoundError: Unknown id or addressed to someone else
    """
    notification = db.session.get(Notification, notification_id)
    if not notification or notification.user_id != user_id:
        raise NotificationNotFoundError(f"Notification {notification_id} not found")

    db.session.delete(notification)
    db.session.commit()
    current_app.logger.info("Notification %s deleted by user %s", notification_id, user_id)
