# Overview: Stock ledger; the only code that changes Inventory.quantity.

"""
Stock Ledger Invariants (authoritative)

- StockMovement is append-only and is the system of record.
- Inventory.quantity is a cache: it always equals SUM(quantity_delta) over the
  row's movements, because every write to it appends exactly one movement in
  the same transaction (apply_movement).
- A decrement that would take quantity below zero fails with
  InsufficientStock. Reconciliation flows may pass allow_negative=True.
- Movements carrying a reference_id are idempotent per
  (inventory_id, reference_type, reference_id): replaying the same movement
  is a no-op, reusing the reference for a different delta is a conflict.
- Each public function is one transaction (run_with_retry + one commit).
"""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Inventory, StockMovement
from ..precision import ZERO, add, is_negative, is_zero, non_negative, subtract, validate_number, round_to
from ..validation import ConflictError, InsufficientStock, InvalidQuantity, NotFoundError, ValidationError
from . import guards
from .concurrency import RETRYABLE_ERRORS, lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

REFERENCE_PRODUCT_CREATION = "product_creation"
REFERENCE_SALE = "sale"
REFERENCE_VOID = "void"
REFERENCE_REFUND = "refund"
REFERENCE_ADJUSTMENT = "adjustment"
REFERENCE_TRANSFER_IN = "transfer_in"
REFERENCE_TRANSFER_OUT = "transfer_out"

# A concurrent duplicate of an idempotent movement surfaces as IntegrityError;
# the retry then finds the committed row and replays it.
LEDGER_RETRY_ERRORS = RETRYABLE_ERRORS + (IntegrityError,)

# Residue tolerated when a manual adjustment "zeroes out" a row
ADJUSTMENT_EPSILON = Decimal("0.001")


def get_inventory(inventory_id: int, *, lock: bool = False) -> Inventory:
    query = db.session.query(Inventory).filter_by(id=inventory_id)
    if lock:
        query = lock_for_update(query)
    inventory = query.first()
    if inventory is None:
        raise NotFoundError(f"Inventory {inventory_id} not found")
    return inventory


def find_movement(inventory_id: int, reference_type: str, reference_id: str | None) -> StockMovement | None:
    if reference_id is None:
        return None
    return db.session.query(StockMovement).filter_by(
        inventory_id=inventory_id,
        reference_type=reference_type,
        reference_id=reference_id,
    ).first()


def apply_movement(
    inventory: Inventory,
    quantity_delta: Decimal,
    *,
    reference_type: str,
    reference_id=None,
    reason: str | None = None,
    allow_negative: bool = False,
) -> StockMovement:
    """
    Append one movement and update the cached quantity. No commit.

    Shared by increment/decrement, product creation and transfers so the
    ledger invariant is maintained in exactly one place.
    """
    ref = str(reference_id) if reference_id is not None else None

    existing = find_movement(inventory.id, reference_type, ref)
    if existing is not None:
        if existing.quantity_delta != quantity_delta:
            raise ConflictError(
                f"Reference {reference_type}:{ref} already recorded with a different quantity"
            )
        logger.info("Replayed movement %s for %s:%s", existing.id, reference_type, ref)
        return existing

    before = inventory.quantity if inventory.quantity is not None else ZERO
    after = add(before, quantity_delta)

    if quantity_delta < 0 and is_negative(after) and not allow_negative:
        raise InsufficientStock(inventory.id, before, -quantity_delta)

    inventory.quantity = after

    movement = StockMovement(
        inventory_id=inventory.id,
        vendor_id=inventory.vendor_id,
        product_id=inventory.product_id,
        variant_id=inventory.variant_id,
        location_id=inventory.location_id,
        quantity_delta=quantity_delta,
        quantity_before=before,
        quantity_after=after,
        reference_type=reference_type,
        reference_id=ref,
        reason=reason,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def increment_inventory(
    *,
    inventory_id: int,
    quantity,
    reference_type: str,
    reference_id=None,
    reason: str | None = None,
) -> Inventory:
    """Add stock (void, refund, receive). Returns the updated row."""
    qty = guards.require_positive_quantity(quantity)

    def _op():
        inventory = get_inventory(inventory_id, lock=True)
        apply_movement(
            inventory,
            qty,
            reference_type=reference_type,
            reference_id=reference_id,
            reason=reason,
        )
        db.session.commit()
        return inventory

    return run_with_retry(_op, retry_on=LEDGER_RETRY_ERRORS)


def decrement_inventory(
    *,
    inventory_id: int,
    quantity,
    reference_type: str,
    reference_id=None,
    reason: str | None = None,
    allow_negative: bool = False,
) -> Inventory:
    """
    Remove stock (sale). Fails with InsufficientStock rather than clamping.

    allow_negative is for explicit reconciliation flows only; it lets the
    row dip below zero transiently until a correcting movement lands.
    """
    qty = guards.require_positive_quantity(quantity)

    def _op():
        inventory = get_inventory(inventory_id, lock=True)
        apply_movement(
            inventory,
            -qty,
            reference_type=reference_type,
            reference_id=reference_id,
            reason=reason,
            allow_negative=allow_negative,
        )
        db.session.commit()
        return inventory

    return run_with_retry(_op, retry_on=LEDGER_RETRY_ERRORS)


def adjust_inventory(
    *,
    inventory_id: int,
    adjustment,
    reason: str | None = None,
    reference_id=None,
) -> dict:
    """
    Signed manual correction from the stock screen.

    The operator works from a rounded display value, so "zero out" can land
    a hair below zero (1.995 on file, -2.00 typed). Residues within
    ADJUSTMENT_EPSILON are clamped to 0 and the recorded delta is the change
    actually applied; anything further below zero is rejected.
    """
    result = validate_number(adjustment, allow_zero=False, label="adjustment")
    if not result.valid:
        raise InvalidQuantity(result.error)
    delta_requested = round_to(result.value, guards.QUANTITY_SCALE)

    def _op():
        inventory = get_inventory(inventory_id, lock=True)
        before = inventory.quantity
        target = add(before, delta_requested)

        if is_negative(target) and not is_zero(target, ADJUSTMENT_EPSILON):
            raise ValidationError("Cannot reduce inventory below 0")

        final = non_negative(target) if is_negative(target) else target
        movement = apply_movement(
            inventory,
            subtract(final, before),
            reference_type=REFERENCE_ADJUSTMENT,
            reference_id=reference_id,
            reason=reason or "Inventory adjustment",
        )
        db.session.commit()
        return {
            "inventory": inventory,
            "movement": movement,
            "previous_quantity": before,
            "new_quantity": inventory.quantity,
        }

    return run_with_retry(_op, retry_on=LEDGER_RETRY_ERRORS)


def list_movements(inventory_id: int, limit: int = 200) -> list[StockMovement]:
    get_inventory(inventory_id)
    return db.session.query(StockMovement).filter_by(
        inventory_id=inventory_id,
    ).order_by(StockMovement.id.desc()).limit(limit).all()


def verify_ledger(inventory_id: int) -> dict:
    """Recompute the quantity from the ledger and compare it to the cache."""
    inventory = get_inventory(inventory_id)
    deltas = db.session.query(StockMovement.quantity_delta).filter_by(
        inventory_id=inventory_id,
    ).all()

    ledger_quantity = ZERO
    for (delta,) in deltas:
        ledger_quantity = add(ledger_quantity, delta)

    return {
        "inventory_id": inventory.id,
        "quantity": inventory.quantity,
        "ledger_quantity": ledger_quantity,
        "movement_count": len(deltas),
        "consistent": ledger_quantity == inventory.quantity,
    }


def get_product_stock(product_id: int) -> dict:
    """Total stock for a product (all variants, all locations)."""
    rows = db.session.query(Inventory).filter_by(product_id=product_id).order_by(
        Inventory.location_id, Inventory.id
    ).all()

    total = ZERO
    by_location: dict[int, Decimal] = {}
    for row in rows:
        total = add(total, row.quantity)
        by_location[row.location_id] = add(by_location.get(row.location_id, ZERO), row.quantity)

    return {
        "product_id": product_id,
        "total_quantity": total,
        "stock_status": "instock" if total > 0 else "outofstock",
        "locations": [
            {"location_id": location_id, "quantity": qty}
            for location_id, qty in by_location.items()
        ],
    }
