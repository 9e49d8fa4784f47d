"""
Error taxonomy for the transfer workflow.

Every error carries the HTTP status the routes translate it to. Validation and
authorization errors are raised before any mutation; conflicts are raised
from inside a transaction and cause a rollback.
"""
from __future__ import annotations


class ValidationError(ValueError):
    """400-level input problem."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(LookupError):
    """404-level unknown user, branch, product, or request."""
    status_code = 404

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class AuthorizationError(PermissionError):
    """403-level denial from the branch access matrix."""
    status_code = 403

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ConflictError(ValueError):
    """409-level business rule conflict."""
    status_code = 409

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class UserNotFoundError(NotFoundError):
    pass


class UserNotAssignedError(NotFoundError):
    """Caller has no active branch assignment; every capability is denied."""


class BranchNotFoundError(NotFoundError):
    pass


class ProductNotFoundError(NotFoundError):
    pass


class InventoryNotFoundError(NotFoundError):
    pass


class TransferRequestNotFoundError(NotFoundError):
    pass


class NotificationNotFoundError(NotFoundError):
    pass


class BranchAccessDeniedError(AuthorizationError):
    pass


class RequestAlreadyProcessedError(ConflictError):
    """The status compare-and-swap lost: someone else already decided."""

    def __init__(self, request_id: int, current_status: str):
        super().__init__(
            f"Transfer request {request_id} was already processed (status: {current_status})",
            details={"request_id": request_id, "status": current_status},
        )
        self.request_id = request_id
        self.current_status = current_status


class InsufficientStockError(ConflictError):
    """Source branch cannot cover the requested quantity."""
    status_code = 400

    def __init__(self, product_id: int, branch_id: int, available: int, requested: int):
        super().__init__(
            f"Insufficient stock in source branch. Available: {available}, Requested: {requested}",
            details={
                "product_id": product_id,
                "branch_id": branch_id,
                "available": available,
                "requested": requested,
            },
        )
        self.available = available
        self.requested = requested
