"""
Stock ledger: quantity on hand per (product, branch).

WHY: Every quantity change is a single conditional UPDATE evaluated by the
database, so two transfers touching the same product/branch cannot both
read a stale quantity and overwrite each other. The naive
"read quantity, compute, write" pattern is never used here.

None of these functions commit. The caller owns the transaction so that a
debit, a credit, and a status transition can succeed or fail together.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InventoryRecord
from ..errors import InsufficientStockError, InventoryNotFoundError, ValidationError
from interbranch.time_utils import utcnow


def _require_positive(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")


def _record_query(product_id: int, branch_id: int):
    return db.session.query(InventoryRecord).filter(
        InventoryRecord.product_id == product_id,
        InventoryRecord.branch_id == branch_id,
    )


def get_inventory_record(product_id: int, branch_id: int) -> InventoryRecord:
    """
    Fetch the ledger row for a product at a branch.

    Raises:
        InventoryNotFoundError: No row exists yet for the pair
    """
    record = _record_query(product_id, branch_id).populate_existing().first()
    if not record:
        raise InventoryNotFoundError(
            f"No inventory for product {product_id} at branch {branch_id}",
            details={"product_id": product_id, "branch_id": branch_id},
        )
    return record


def get_quantity_on_hand(product_id: int, branch_id: int) -> int:
    """Quantity on hand, 0 when the pair has no ledger row."""
    quantity = (
        db.session.query(InventoryRecord.quantity)
        .filter(
            InventoryRecord.product_id == product_id,
            InventoryRecord.branch_id == branch_id,
        )
        .scalar()
    )
    return quantity or 0


def debit_stock(product_id: int, branch_id: int, quantity: int) -> int:
    """
    Atomically remove `quantity` from a branch.

    The guard `quantity >= :q` is part of the UPDATE itself, so the row can
    never go negative even when debits race.

    Returns:
        int: Quantity on hand after the debit

    Raises:
        ValidationError: quantity is not a positive integer
        InsufficientStockError: Row missing or holding less than `quantity`
    """
    _require_positive(quantity)

    updated = (
        _record_query(product_id, branch_id)
        .filter(InventoryRecord.quantity >= quantity)
        .update(
            {
                InventoryRecord.quantity: InventoryRecord.quantity - quantity,
                InventoryRecord.updated_at: utcnow(),
            },
            synchronize_session=False,
        )
    )

    if updated != 1:
        raise InsufficientStockError(
            product_id=product_id,
            branch_id=branch_id,
            available=get_quantity_on_hand(product_id, branch_id),
            requested=quantity,
        )

    return get_quantity_on_hand(product_id, branch_id)


def credit_stock(product_id: int, branch_id: int, quantity: int) -> int:
    """
    Atomically add `quantity` to a branch, creating the ledger row if absent.

    A new row starts at `quantity` with the configured DEFAULT_MIN_STOCK. If a
    concurrent credit inserts the row first, the unique constraint rejects our
    insert (inside a savepoint) and we fall back to the increment.

    Returns:
        int: Quantity on hand after the credit
    """
    _require_positive(quantity)

    def _increment() -> int:
        return (
            _record_query(product_id, branch_id)
            .update(
                {
                    InventoryRecord.quantity: InventoryRecord.quantity + quantity,
                    InventoryRecord.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
        )

    if _increment() == 0:
        try:
            with db.session.begin_nested():
                db.session.add(InventoryRecord(
                    product_id=product_id,
                    branch_id=branch_id,
                    quantity=quantity,
                    min_stock=current_app.config.get("DEFAULT_MIN_STOCK", 5),
                ))
        except IntegrityError:
            if _increment() != 1:
                raise

    return get_quantity_on_hand(product_id, branch_id)


def set_stock_level(
    product_id: int,
    branch_id: int,
    quantity: int,
    min_stock: int | None = None,
) -> InventoryRecord:
    """
    Set an absolute quantity (stock counts and seeding only).

    Transfers must go through debit_stock/credit_stock instead.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
        raise ValidationError("quantity must be a non-negative integer")

    record = _record_query(product_id, branch_id).populate_existing().first()
    if record is None:
        record = InventoryRecord(
            product_id=product_id,
            branch_id=branch_id,
            quantity=quantity,
            min_stock=min_stock if min_stock is not None else current_app.config.get("DEFAULT_MIN_STOCK", 5),
        )
        db.session.add(record)
    else:
        record.quantity = quantity
        if min_stock is not None:
            record.min_stock = min_stock

    db.session.flush()
    return record
