"""
Transfer request persistence.

WHY: try_transition is the only way a request's status changes. It is a
single conditional UPDATE (WHERE id = ? AND status = ?), so when two callers
race to decide the same request exactly one UPDATE matches a row and the
other sees zero rows and gets RequestAlreadyProcessedError.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field

from sqlalchemy import or_

from ..extensions import db
from ..models import TransferRequest
from ..models.transfers import (
    TRANSFER_STATUS_APPROVED,
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_REJECTED,
    TRANSFER_STATUSES,
)
from ..errors import RequestAlreadyProcessedError, TransferRequestNotFoundError, ValidationError
from ..validation import check_page_window, coerce_int
from interbranch.time_utils import utcnow


ALLOWED_TRANSITIONS = {
    (TRANSFER_STATUS_PENDING, TRANSFER_STATUS_APPROVED),
    (TRANSFER_STATUS_PENDING, TRANSFER_STATUS_REJECTED),
    (TRANSFER_STATUS_REJECTED, TRANSFER_STATUS_PENDING),
}


@dataclass(frozen=True)
class TransferFilter:
    """The recognised list options; nothing else is accepted."""
    branch_id: int | None = None
    status: str | None = None
    page: int = 1
    limit: int = 10

    @classmethod
    def from_args(cls, args, *, default_limit: int = 10, max_limit: int = 100) -> "TransferFilter":
        """
        Build a filter from query-string arguments.

        Raises:
            ValidationError: Unknown status or non-numeric/out-of-range paging
        """
        branch_id = args.get("branch_id")
        status = (args.get("status") or "").strip().lower() or None
        page = args.get("page")
        limit = args.get("limit")

        if status is not None and status not in TRANSFER_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(TRANSFER_STATUSES)}")

        limit_value = coerce_int(limit, "limit", minimum=1) if limit not in (None, "") else default_limit
        if limit_value > max_limit:
            raise ValidationError(f"limit cannot exceed {max_limit}")

        page_value = coerce_int(page, "page", minimum=1) if page not in (None, "") else 1
        check_page_window(page_value, limit_value)

        return cls(
            branch_id=coerce_int(branch_id, "branch_id", minimum=1) if branch_id not in (None, "") else None,
            status=status,
            page=page_value,
            limit=limit_value,
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class TransferPage:
    items: list[TransferRequest] = field(default_factory=list)
    page: int = 1
    limit: int = 10
    total_count: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def to_dict(self) -> dict:
        return {
            "transfers": [item.to_dict() for item in self.items],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total_count": self.total_count,
                "total_pages": self.total_pages,
                "has_next": self.has_next,
                "has_prev": self.has_prev,
            },
        }


def create_transfer_request(
    *,
    product_id: int,
    source_branch_id: int,
    target_branch_id: int,
    quantity: int,
    created_by_user_id: int,
    notes: str | None = None,
) -> TransferRequest:
    """
    Persist a new pending request (flush only; caller commits).

    The caller has already checked source stock; that check is advisory and
    is repeated when the request is approved.
    """
    now = utcnow()
    transfer = TransferRequest(
        product_id=product_id,
        source_branch_id=source_branch_id,
        target_branch_id=target_branch_id,
        quantity=quantity,
        status=TRANSFER_STATUS_PENDING,
        notes=notes or f"Request to transfer {quantity} units to branch {target_branch_id}",
        created_by_user_id=created_by_user_id,
        revision=0,
        created_at=now,
        updated_at=now,
    )
    db.session.add(transfer)
    db.session.flush()
    return transfer


def get_transfer_request(request_id: int) -> TransferRequest:
    transfer = (
        db.session.query(TransferRequest)
        .populate_existing()
        .filter(TransferRequest.id == request_id)
        .first()
    )
    if not transfer:
        raise TransferRequestNotFoundError(f"Transfer request {request_id} not found")
    return transfer


def list_transfer_requests(filters: TransferFilter, scope: frozenset[int] | None = None) -> TransferPage:
    """
    Page through requests visible to a viewer.

    scope None means the viewer sees every branch; otherwise only requests
    whose source or target is in scope are returned. filters.branch_id
    narrows further to requests touching that branch.
    """
    query = db.session.query(TransferRequest)

    if scope is not None:
        query = query.filter(or_(
            TransferRequest.source_branch_id.in_(scope),
            TransferRequest.target_branch_id.in_(scope),
        ))

    if filters.branch_id is not None:
        query = query.filter(or_(
            TransferRequest.source_branch_id == filters.branch_id,
            TransferRequest.target_branch_id == filters.branch_id,
        ))

    if filters.status is not None:
        query = query.filter(TransferRequest.status == filters.status)

    total_count = query.count()
    items = (
        query.order_by(TransferRequest.created_at.desc(), TransferRequest.id.desc())
        .offset(filters.offset)
        .limit(filters.limit)
        .all()
    )

    return TransferPage(items=items, page=filters.page, limit=filters.limit, total_count=total_count)


def try_transition(
    request_id: int,
    *,
    expected_status: str,
    new_status: str,
    actor_user_id: int,
    notes: str | None = None,
    clear_approver: bool = False,
) -> TransferRequest:
    """
    Compare-and-swap the status of a request (flush only; caller commits).

    Approve and reject record the actor as approved_by; resend
    (clear_approver=True) clears it. revision is bumped on every success.

    Raises:
        ValidationError: Transition not in ALLOWED_TRANSITIONS
        TransferRequestNotFoundError: No such request
        RequestAlreadyProcessedError: Request is no longer in expected_status
    """
    if (expected_status, new_status) not in ALLOWED_TRANSITIONS:
        raise ValidationError(f"Cannot transition transfer request from {expected_status} to {new_status}")

    now = utcnow()
    values = {
        TransferRequest.status: new_status,
        TransferRequest.revision: TransferRequest.revision + 1,
        TransferRequest.updated_at: now,
    }
    if clear_approver:
        values[TransferRequest.approved_by_user_id] = None
        values[TransferRequest.decided_at] = None
    else:
        values[TransferRequest.approved_by_user_id] = actor_user_id
        values[TransferRequest.decided_at] = now
    if notes:
        values[TransferRequest.notes] = notes

    updated = (
        db.session.query(TransferRequest)
        .filter(
            TransferRequest.id == request_id,
            TransferRequest.status == expected_status,
        )
        .update(values, synchronize_session=False)
    )

    if updated != 1:
        current_status = (
            db.session.query(TransferRequest.status)
            .filter(TransferRequest.id == request_id)
            .scalar()
        )
        if current_status is None:
            raise TransferRequestNotFoundError(f"Transfer request {request_id} not found")
        raise RequestAlreadyProcessedError(request_id, current_status)

    return get_transfer_request(request_id)
