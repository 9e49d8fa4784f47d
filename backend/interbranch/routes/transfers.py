# backend/interbranch/routes/transfers.py
"""
Inter-branch transfer request API routes.
"""
from flask import Blueprint, current_app, request, jsonify, g
from interbranch.extensions import db
from interbranch.decorators import require_caller
from interbranch.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from interbranch.services import transfer_service
from interbranch.services.transfer_request_service import TransferFilter
from interbranch.validation import require_fields


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")

WORKFLOW_ERRORS = (ValidationError, NotFoundError, AuthorizationError, ConflictError)


def _error_body(e) -> dict:
    body = {"error": str(e)}
    if getattr(e, "details", None):
        body["details"] = e.details
    return body


@transfers_bp.route("", methods=["POST"])
@require_caller
def create_transfer():
    """
    Create a new transfer request.

    Request body:
    {
        "user_id": int,
        "product_id": int,
        "source_branch_id": int,
        "target_branch_id": int,
        "quantity": int,
        "notes": str (optional)
    }

    Returns:
        201: Transfer request created (status pending)
        400: Invalid request or insufficient stock at source
        403: Caller may not create from the source branch
        404: User, branch, or product not found
    """
    try:
        data = require_fields(
            request.get_json(silent=True),
            ("product_id", "source_branch_id", "target_branch_id", "quantity"),
        )

        transfer = transfer_service.create_transfer(
            user_id=g.current_user.id,
            product_id=data["product_id"],
            source_branch_id=data["source_branch_id"],
            target_branch_id=data["target_branch_id"],
            quantity=data["quantity"],
            notes=data.get("notes"),
        )

        return jsonify(transfer.to_dict()), 201

    except WORKFLOW_ERRORS as e:
        db.session.rollback()
        return jsonify(_error_body(e)), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create transfer request")
        return jsonify({"error": "Internal server error"}), 500


@transfers_bp.route("", methods=["GET"])
@require_caller
def list_transfers():
    """
    List transfer requests visible to the caller.

    Query params:
        user_id: Caller
        status: pending | approved | rejected (optional)
        branch_id: Only requests touching this branch (optional)
        page, limit: Pagination (limit capped by TRANSFER_PAGE_MAX_LIMIT)

    Returns:
        200: {"transfers": [...], "pagination": {...}}
        400: Invalid filter
        404: User not found
    """
    try:
        filters = TransferFilter.from_args(
            request.args,
            default_limit=current_app.config.get("TRANSFER_PAGE_DEFAULT_LIMIT", 10),
            max_limit=current_app.config.get("TRANSFER_PAGE_MAX_LIMIT", 100),
        )
        page = transfer_service.list_transfers_for_viewer(g.current_user.id, filters)
        return jsonify(page.to_dict()), 200

    except WORKFLOW_ERRORS as e:
        db.session.rollback()
        return jsonify(_error_body(e)), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to list transfer requests")
        return jsonify({"error": "Internal server error"}), 500


@transfers_bp.route("/<int:request_id>", methods=["GET"])
@require_caller
def get_transfer(request_id: int):
    """
    Get one transfer request.

    Returns:
        200: Transfer request
        403: Caller's branch is neither source nor target
        404: Transfer request not found
    """
    try:
        transfer = transfer_service.get_transfer_for_viewer(g.current_user.id, request_id)
        return jsonify(transfer.to_dict()), 200

    except WORKFLOW_ERRORS as e:
        db.session.rollback()
        return jsonify(_error_body(e)), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to load transfer request %s", request_id)
        return jsonify({"error": "Internal server error"}), 500


@transfers_bp.route("/<int:request_id>", methods=["PUT"])
@require_caller
def decide_transfer(request_id: int):
    """
    Approve, reject, or resend a transfer request.

    Request body:
    {
        "user_id": int,
        "action": "approve" | "reject" | "resend",
        "notes": str (optional)
    }

    Returns:
        200: Updated transfer request
        400: Invalid action or insufficient stock at source
        403: Caller may not decide this request
        404: Transfer request not found
        409: Request was already processed
    """
    try:
        data = require_fields(request.get_json(silent=True), ("action",))

        transfer = transfer_service.decide_transfer(
            user_id=g.current_user.id,
            request_id=request_id,
            action=data["action"],
            notes=data.get("notes"),
        )

        return jsonify(transfer.to_dict()), 200

    except WORKFLOW_ERRORS as e:
        db.session.rollback()
        return jsonify(_error_body(e)), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update transfer request %s", request_id)
        return jsonify({"error": "Internal server error"}), 500
