# Overview: Atomic stock moves between two locations of one vendor.

"""
Inventory transfers between two locations of the same vendor.

A transfer is one transaction with two movements sharing a transfer id:
transfer_out at the source (-qty) and transfer_in at the destination
(+qty). Either both land or neither does, so total stock across locations
is conserved.

LOCK ORDER: both inventory rows are locked in a single query ordered by
location_id. Two opposite-direction transfers therefore acquire locks in
the same order and cannot deadlock.
"""
from __future__ import annotations

import logging
import uuid

from ..extensions import db
from ..models import Inventory
from ..validation import ValidationError
from . import guards
from .concurrency import lock_for_update, run_with_retry
from .stock_ledger import (
    LEDGER_RETRY_ERRORS,
    REFERENCE_TRANSFER_IN,
    REFERENCE_TRANSFER_OUT,
    apply_movement,
    find_movement,
)

logger = logging.getLogger(__name__)


def _lock_pair(product_id: int, variant_id: int | None, location_ids: list[int]) -> dict[int, Inventory]:
    query = db.session.query(Inventory).filter(
        Inventory.product_id == product_id,
        Inventory.location_id.in_(location_ids),
    )
    if variant_id is None:
        query = query.filter(Inventory.variant_id.is_(None))
    else:
        query = query.filter(Inventory.variant_id == variant_id)

    rows = lock_for_update(query.order_by(Inventory.location_id)).all()
    return {row.location_id: row for row in rows}


def _location_payload(location, inventory: Inventory) -> dict:
    return {
        "id": location.id,
        "name": location.name,
        "quantity": inventory.quantity,
    }


def transfer_inventory(
    *,
    product_id: int,
    from_location_id: int,
    to_location_id: int,
    quantity,
    vendor_id: int,
    reason: str | None = None,
    variant_id: int | None = None,
    reference_id: str | None = None,
) -> dict:
    """
    Move stock from one location to another.

    The destination inventory row is created on demand. Passing a stable
    reference_id makes the call idempotent: a replay returns the original
    transfer without moving stock again.

    Raises:
        ValidationError (same location), InvalidQuantity, NotFoundError,
        InsufficientStock
    """
    if from_location_id == to_location_id:
        raise ValidationError("Source and destination locations must differ")
    qty = guards.require_positive_quantity(quantity)
    transfer_id = str(reference_id) if reference_id is not None else uuid.uuid4().hex

    def _op():
        guards.require_product(vendor_id, product_id)
        source = guards.require_location(vendor_id, from_location_id)
        destination = guards.require_location(vendor_id, to_location_id)

        rows = _lock_pair(product_id, variant_id, sorted([from_location_id, to_location_id]))
        from_inv = rows.get(from_location_id)
        to_inv = rows.get(to_location_id)

        if from_inv is not None and find_movement(from_inv.id, REFERENCE_TRANSFER_OUT, transfer_id) is not None:
            logger.info("Transfer %s already applied; replaying", transfer_id)
            return {
                "success": True,
                "transfer_id": transfer_id,
                "from_location": _location_payload(source, from_inv),
                "to_location": _location_payload(destination, to_inv),
                "quantity": qty,
                "replayed": True,
            }

        guards.require_sufficient_stock(from_inv, qty)

        if to_inv is None:
            to_inv = Inventory(
                vendor_id=vendor_id,
                product_id=product_id,
                variant_id=variant_id,
                location_id=to_location_id,
                quantity=0,
            )
            db.session.add(to_inv)
            db.session.flush()

        note = reason or f"Transfer {source.name} -> {destination.name}"
        apply_movement(from_inv, -qty, reference_type=REFERENCE_TRANSFER_OUT, reference_id=transfer_id, reason=note)
        apply_movement(to_inv, qty, reference_type=REFERENCE_TRANSFER_IN, reference_id=transfer_id, reason=note)

        db.session.commit()

        logger.info(
            "Transferred %s of product %s from location %s to %s (transfer %s)",
            qty, product_id, from_location_id, to_location_id, transfer_id,
        )
        return {
            "success": True,
            "transfer_id": transfer_id,
            "from_location": _location_payload(source, from_inv),
            "to_location": _location_payload(destination, to_inv),
            "quantity": qty,
        }

    return run_with_retry(_op, retry_on=LEDGER_RETRY_ERRORS)
