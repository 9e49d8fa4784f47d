# Overview: Branch/role authorization matrix for transfer requests.

"""
Branch Access Resolution

WHY: Decide who may create, view, and decide a transfer request from the
caller's single active branch assignment. The decision table is evaluated in
order and the first matching rule wins:

1. Main admin (is_main_admin): everything, on any branch pair.
2. Main-branch admin/manager/staff: view and decide any request (the main
   branch is the clearinghouse); create only from their own branch.
3. Everyone else: create from their own branch (staff/admin/manager),
   decide requests targeting their own branch (admin/manager), view
   requests where their branch is source or target.
4. Cashiers never create or decide; rule 3's role sets already exclude
   them, leaving view-only access.

DESIGN PRINCIPLES:
- Fail closed: an unresolved assignment denies everything
- Log denials only: grants are not recorded
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import User, UserBranchAssignment, SecurityEvent
from ..models.branches import ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF
from ..errors import BranchAccessDeniedError, UserNotAssignedError, UserNotFoundError
from interbranch.time_utils import utcnow


CAPABILITY_CREATE = "create"
CAPABILITY_VIEW = "view"
CAPABILITY_DECIDE = "decide"

CLEARINGHOUSE_ROLES = frozenset({ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF})
CREATE_ROLES = frozenset({ROLE_STAFF, ROLE_ADMIN, ROLE_MANAGER})
DECIDE_ROLES = frozenset({ROLE_ADMIN, ROLE_MANAGER})


@dataclass(frozen=True)
class BranchCapabilities:
    can_create: bool = False
    can_view: bool = False
    can_decide: bool = False

    def allows(self, capability: str) -> bool:
        return {
            CAPABILITY_CREATE: self.can_create,
            CAPABILITY_VIEW: self.can_view,
            CAPABILITY_DECIDE: self.can_decide,
        }.get(capability, False)


DENY_ALL = BranchCapabilities()
ALLOW_ALL = BranchCapabilities(can_create=True, can_view=True, can_decide=True)


def get_active_assignment(user_id: int) -> UserBranchAssignment:
    """
    Resolve the assignment the transfer workflow acts on.

    Raises:
        UserNotFoundError: Unknown user id
        UserNotAssignedError: Inactive user or no active assignment
    """
    user = db.session.get(User, user_id)
    if not user:
        raise UserNotFoundError(f"User {user_id} not found")

    if not user.is_active:
        raise UserNotAssignedError(f"User {user_id} is inactive")

    assignment = (
        db.session.query(UserBranchAssignment)
        .filter_by(user_id=user_id, is_active=True)
        .order_by(UserBranchAssignment.id.asc())
        .first()
    )
    if not assignment:
        raise UserNotAssignedError(f"User {user_id} is not assigned to any branch")
    return assignment


def is_main_branch_member(assignment: UserBranchAssignment) -> bool:
    return assignment.branch is not None and assignment.branch.is_main


def is_main_actor(assignment: UserBranchAssignment) -> bool:
    """True for main admins and anyone assigned to the main branch."""
    return bool(assignment.is_main_admin) or is_main_branch_member(assignment)


def resolve_capabilities(
    assignment: UserBranchAssignment | None,
    source_branch_id: int,
    target_branch_id: int,
) -> BranchCapabilities:
    if assignment is None or not assignment.is_active:
        return DENY_ALL

    if assignment.is_main_admin:
        return ALLOW_ALL

    own_branch_id = assignment.branch_id
    role = assignment.role

    if is_main_branch_member(assignment) and role in CLEARINGHOUSE_ROLES:
        return BranchCapabilities(
            can_create=own_branch_id == source_branch_id,
            can_view=True,
            can_decide=True,
        )

    return BranchCapabilities(
        can_create=own_branch_id == source_branch_id and role in CREATE_ROLES,
        can_view=own_branch_id in (source_branch_id, target_branch_id),
        can_decide=own_branch_id == target_branch_id and role in DECIDE_ROLES,
    )


def visible_branch_scope(assignment: UserBranchAssignment) -> frozenset[int] | None:
    """
    Branches whose requests the caller may list.

    None means every branch (main admin and main-branch clearinghouse);
    otherwise requests must have one of these branches as source or target.
    """
    if assignment.is_main_admin:
        return None
    if is_main_branch_member(assignment) and assignment.role in CLEARINGHOUSE_ROLES:
        return None
    return frozenset({assignment.branch_id})


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    branch_id: int | None = None,
) -> SecurityEvent:
    """
    Append a security event to the audit trail.

    Called before any workflow mutation, so committing here cannot expose
    partial transfer state.
    """
    event = SecurityEvent(
        user_id=user_id,
        branch_id=branch_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.commit()
    return event


def require_capability(
    assignment: UserBranchAssignment,
    capability: str,
    source_branch_id: int,
    target_branch_id: int,
    *,
    resource: str | None = None,
    reason: str | None = None,
) -> BranchCapabilities:
    """
    Raise BranchAccessDeniedError unless `assignment` holds `capability`.

    Denials are logged to security_events.
    """
    capabilities = resolve_capabilities(assignment, source_branch_id, target_branch_id)
    if capabilities.allows(capability):
        return capabilities

    message = reason or _denial_message(assignment, capability)
    current_app.logger.warning(
        "Denied %s on %s for user %s (branch %s, role %s)",
        capability, resource or f"{source_branch_id}->{target_branch_id}",
        assignment.user_id, assignment.branch_id, assignment.role,
    )
    log_security_event(
        user_id=assignment.user_id,
        event_type="TRANSFER_ACCESS_DENIED",
        success=False,
        resource=resource,
        action=capability,
        reason=message,
        branch_id=assignment.branch_id,
    )
    raise BranchAccessDeniedError(
        message,
        details={
            "capability": capability,
            "source_branch_id": source_branch_id,
            "target_branch_id": target_branch_id,
        },
    )


def _denial_message(assignment: UserBranchAssignment, capability: str) -> str:
    if capability == CAPABILITY_CREATE:
        if assignment.role not in CREATE_ROLES:
            return "Only staff, manager, and admin users can initiate transfer requests"
        return "Users can only initiate transfers from their assigned branch"
    if capability == CAPABILITY_DECIDE:
        if assignment.role not in DECIDE_ROLES and not is_main_branch_member(assignment):
            return "Only admin and manager users can approve or reject transfer requests"
        return "User must be at the target branch to approve or reject this request"
    return "User cannot view transfer requests outside their branch"
