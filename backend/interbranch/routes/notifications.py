# backend/interbranch/routes/notifications.py
"""
Notification inbox and branch feed API routes.
"""
from flask import Blueprint, current_app, request, jsonify, g
from interbranch.extensions import db
from interbranch.decorators import require_caller
from interbranch.errors import AuthorizationError, NotFoundError, ValidationError
from interbranch.services import notification_service
from interbranch.validation import check_page_window, coerce_int, coerce_optional_bool


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")

NOTIFICATION_ERRORS = (ValidationError, NotFoundError, AuthorizationError)


def _error_body(e) -> dict:
    body = {"error": str(e)}
    if getattr(e, "details", None):
        body["details"] = e.details
    return body


def _optional_id(value, field):
    if value in (None, ""):
        return None
    return coerce_int(value, field, minimum=1)


@notifications_bp.route("", methods=["GET"])
@require_caller
def list_notifications():
    """
    List the caller's notifications, or a branch feed.

    Query params:
        user_id: Caller
        branch_id: Read this branch's feed instead of the inbox (optional)
        is_read: true | false (optional)
        page, limit: Pagination (limit capped by TRANSFER_PAGE_MAX_LIMIT)

    Returns:
        200: {"notifications": [...], "pagination": {...}}
        400: Invalid filter or paging
        403: Branch feed outside the caller's visible branches
        404: User not found
    """
    try:
        branch_id = _optional_id(request.args.get("branch_id"), "branch_id")
        is_read = coerce_optional_bool(request.args.get("is_read"), "is_read")
        page = coerce_int(request.args.get("page") or 1, "page", minimum=1)
        limit = coerce_int(
            request.args.get("limit") or current_app.config.get("TRANSFER_PAGE_DEFAULT_LIMIT", 10),
            "limit",
            minimum=1,
        )
        max_limit = current_app.config.get("TRANSFER_PAGE_MAX_LIMIT", 100)
        if limit > max_limit:
            raise ValidationError(f"limit cannot exceed {max_limit}")
        check_page_window(page, limit)

        result = notification_service.list_notifications_for_user(
            g.current_user.id, branch_id=branch_id, is_read=is_read, page=page, limit=limit,
        )
        return jsonify(result), 200

    except NOTIFICATION_ERRORS as e:
        db.session.rollback()
        return jsonify(_error_body(e)), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to list notifications")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.route("/<int:notification_id>/read", methods=["PUT"])
@require_caller
def mark_read(notification_id: int):
    """
    Mark one of the caller's notifications as read.

    Returns:
        200: Updated notification
        404: Notification not found or addressed to someone else
    """
    try:
        notification = notification_service.mark_notification_read(g.current_user.id, notification_id)
        return jsonify(notification.to_dict()), 200

    except NOTIFICATION_ERRORS as e:
        db.session.rollback()
        return jsonify(_error_body(e)), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to mark notification %s read", notification_id)
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.route("/<int:notification_id>", methods=["DELETE"])
@require_caller
def delete_notification(notification_id: int):
    """
    Delete one of the caller's notifications.

    Returns:
        200: {"message": ..., "id": ...}
        404: Notification not found or addressed to someone else
    """
    try:
        notification_service.delete_notification(g.current_user.id, notification_id)
        return jsonify({"message": "Notification deleted", "id": notification_id}), 200

    except NOTIFICATION_ERRORS as e:
        db.session.rollback()
        return jsonify(_error_body(e)), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete notification %s", notification_id)
        return jsonify({"error": "Internal server error"}), 500
