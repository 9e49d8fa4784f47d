# backend/interbranch/services/transfer_service.py
"""
Inter-branch transfer approval workflow.

WHY: One entry point for every way a transfer request is created or decided
(HTTP routes and CLI alike), so authorization, stock checks, the status
compare-and-swap, and notification fan-out always run in the same order.

LIFECYCLE:
1. pending: created at the source branch; no stock has moved
2. approved: source debited and target credited in the same transaction
3. rejected: declined by the target (or main) branch; may be resent

Approval claims the request (pending -> approved) before touching stock.
If the debit or credit then fails, the whole transaction rolls back and the
request is still pending, so it can be approved again once stock allows.

Notifications are sent only after the commit and never undo it.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Branch, Product, TransferRequest
from ..models.transfers import (
    TRANSFER_STATUS_APPROVED,
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_REJECTED,
)
from ..errors import (
    BranchNotFoundError,
    InsufficientStockError,
    ProductNotFoundError,
    ValidationError,
)
from ..validation import clean_notes, coerce_int
from .branch_access_service import (
    CAPABILITY_CREATE,
    CAPABILITY_DECIDE,
    CAPABILITY_VIEW,
    get_active_assignment,
    require_capability,
    visible_branch_scope,
)
from .concurrency import run_in_transaction
from .notification_service import (
    EVENT_APPROVED,
    EVENT_CREATED,
    EVENT_REJECTED,
    EVENT_RESENT,
    TransferEvent,
    notify_transfer_event,
)
from .stock_ledger_service import credit_stock, debit_stock, get_quantity_on_hand
from .transfer_request_service import (
    TransferFilter,
    TransferPage,
    create_transfer_request,
    get_transfer_request,
    list_transfer_requests,
    try_transition,
)


ACTION_APPROVE = "approve"
ACTION_REJECT = "reject"
ACTION_RESEND = "resend"
TRANSFER_ACTIONS = (ACTION_APPROVE, ACTION_REJECT, ACTION_RESEND)


def _resource(request_id: int) -> str:
    return f"transfer_request:{request_id}"


def _require_branch(branch_id: int) -> Branch:
    branch = db.session.get(Branch, branch_id)
    if not branch:
        raise BranchNotFoundError(f"Branch {branch_id} not found", details={"branch_id": branch_id})
    return branch


def _require_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise ProductNotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def _check_source_stock(product_id: int, branch_id: int, quantity: int) -> None:
    """Advisory read; the conditional debit at approval is authoritative."""
    available = get_quantity_on_hand(product_id, branch_id)
    if available < quantity:
        raise InsufficientStockError(
            product_id=product_id,
            branch_id=branch_id,
            available=available,
            requested=quantity,
        )


def create_transfer(
    user_id: int,
    product_id: int,
    source_branch_id: int,
    target_branch_id: int,
    quantity: int,
    notes: str | None = None,
) -> TransferRequest:
    """
    Create a pending transfer request.

    Args:
        user_id: Caller (must be able to create from the source branch)
        product_id: Product to move
        source_branch_id: Branch giving stock
        target_branch_id: Branch receiving stock
        quantity: Units to move (positive)
        notes: Optional free text

    Returns:
        TransferRequest: The committed request (status pending)

    Raises:
        ValidationError: Bad ids/quantity or identical branches
        NotFoundError: Unknown user, branch, or product
        BranchAccessDeniedError: Caller may not create this request
        InsufficientStockError: Source holds fewer than `quantity` units
    """
    product_id = coerce_int(product_id, "product_id", minimum=1)
    source_branch_id = coerce_int(source_branch_id, "source_branch_id", minimum=1)
    target_branch_id = coerce_int(target_branch_id, "target_branch_id", minimum=1)
    quantity = coerce_int(quantity, "quantity", minimum=1)
    notes = clean_notes(notes)

    if source_branch_id == target_branch_id:
        raise ValidationError("Source and target branch must be different")

    assignment = get_active_assignment(user_id)

    _require_branch(source_branch_id)
    _require_branch(target_branch_id)
    _require_product(product_id)

    require_capability(assignment, CAPABILITY_CREATE, source_branch_id, target_branch_id)

    _check_source_stock(product_id, source_branch_id, quantity)

    def _op():
        return create_transfer_request(
            product_id=product_id,
            source_branch_id=source_branch_id,
            target_branch_id=target_branch_id,
            quantity=quantity,
            created_by_user_id=assignment.user_id,
            notes=notes,
        )

    transfer = run_in_transaction(_op)

    current_app.logger.info(
        "Transfer request %s created by user %s: %d x product %s, branch %s -> %s",
        transfer.id, user_id, quantity, product_id, source_branch_id, target_branch_id,
    )

    notify_transfer_event(TransferEvent(EVENT_CREATED, transfer, assignment))
    return transfer


def approve_transfer(user_id: int, request_id: int, notes: str | None = None) -> TransferRequest:
    """
    Approve a pending request and move the stock.

    The status claim, the source debit, and the target credit commit
    together or not at all.

    Raises:
        NotFoundError: Unknown user or request
        BranchAccessDeniedError: Caller may not decide this request
        InsufficientStockError: Source can no longer cover the quantity
        RequestAlreadyProcessedError: Request is not pending
    """
    notes = clean_notes(notes)
    assignment = get_active_assignment(user_id)
    transfer = get_transfer_request(request_id)

    require_capability(
        assignment, CAPABILITY_DECIDE,
        transfer.source_branch_id, transfer.target_branch_id,
        resource=_resource(request_id),
    )

    product_id = transfer.product_id
    source_branch_id = transfer.source_branch_id
    target_branch_id = transfer.target_branch_id
    quantity = transfer.quantity

    if transfer.status == TRANSFER_STATUS_PENDING:
        _check_source_stock(product_id, source_branch_id, quantity)

    def _op():
        claimed = try_transition(
            request_id,
            expected_status=TRANSFER_STATUS_PENDING,
            new_status=TRANSFER_STATUS_APPROVED,
            actor_user_id=assignment.user_id,
            notes=notes,
        )
        debit_stock(product_id, source_branch_id, quantity)
        credit_stock(product_id, target_branch_id, quantity)
        return claimed

    transfer = run_in_transaction(_op)

    current_app.logger.info(
        "Transfer request %s approved by user %s: moved %d x product %s, branch %s -> %s",
        request_id, user_id, quantity, product_id, source_branch_id, target_branch_id,
    )

    notify_transfer_event(TransferEvent(EVENT_APPROVED, transfer, assignment))
    return transfer


def reject_transfer(user_id: int, request_id: int, notes: str | None = None) -> TransferRequest:
    """Reject a pending request. Stock is untouched."""
    notes = clean_notes(notes)
    assignment = get_active_assignment(user_id)
    transfer = get_transfer_request(request_id)

    require_capability(
        assignment, CAPABILITY_DECIDE,
        transfer.source_branch_id, transfer.target_branch_id,
        resource=_resource(request_id),
    )

    transfer = run_in_transaction(lambda: try_transition(
        request_id,
        expected_status=TRANSFER_STATUS_PENDING,
        new_status=TRANSFER_STATUS_REJECTED,
        actor_user_id=assignment.user_id,
        notes=notes,
    ))

    current_app.logger.info("Transfer request %s rejected by user %s", request_id, user_id)

    notify_transfer_event(TransferEvent(EVENT_REJECTED, transfer, assignment))
    return transfer


def resend_transfer(user_id: int, request_id: int, notes: str | None = None) -> TransferRequest:
    """
    Return a rejected request to pending for another decision.

    Allowed for the request's creator and for anyone who may decide it.
    """
    notes = clean_notes(notes)
    assignment = get_active_assignment(user_id)
    transfer = get_transfer_request(request_id)

    if transfer.created_by_user_id != assignment.user_id:
        require_capability(
            assignment, CAPABILITY_DECIDE,
            transfer.source_branch_id, transfer.target_branch_id,
            resource=_resource(request_id),
        )

    transfer = run_in_transaction(lambda: try_transition(
        request_id,
        expected_status=TRANSFER_STATUS_REJECTED,
        new_status=TRANSFER_STATUS_PENDING,
        actor_user_id=assignment.user_id,
        notes=notes,
        clear_approver=True,
    ))

    current_app.logger.info("Transfer request %s resent by user %s", request_id, user_id)

    notify_transfer_event(TransferEvent(EVENT_RESENT, transfer, assignment))
    return transfer


_ACTION_HANDLERS = {
    ACTION_APPROVE: approve_transfer,
    ACTION_REJECT: reject_transfer,
    ACTION_RESEND: resend_transfer,
}


def decide_transfer(user_id: int, request_id: int, action: str, notes: str | None = None) -> TransferRequest:
    normalized = (action or "").strip().lower() if isinstance(action, str) else ""
    handler = _ACTION_HANDLERS.get(normalized)
    if handler is None:
        raise ValidationError(
            f"Invalid action. Must be one of: {', '.join(TRANSFER_ACTIONS)}",
            details={"action": action},
        )
    return handler(user_id, request_id, notes=notes)


def get_transfer_for_viewer(user_id: int, request_id: int) -> TransferRequest:
    assignment = get_active_assignment(user_id)
    transfer = get_transfer_request(request_id)
    require_capability(
        assignment, CAPABILITY_VIEW,
        transfer.source_branch_id, transfer.target_branch_id,
        resource=_resource(request_id),
    )
    return transfer


def list_transfers_for_viewer(user_id: int, filters: TransferFilter) -> TransferPage:
    """Page through the requests the caller may view, narrowed by `filters`."""
    assignment = get_active_assignment(user_id)
    return list_transfer_requests(filters, scope=visible_branch_scope(assignment))
