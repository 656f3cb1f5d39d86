# backend/stockledger/services/guards.py
"""
Shared fail-fast precondition checks.

Each guard either returns the validated entity/value or raises from the
validation taxonomy before anything is written, so callers never have to
undo partial work.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any

from ..extensions import db
from ..models import Location, PosSession, Product
from ..models.sessions import SESSION_STATUS_OPEN
from ..precision import round_to, validate_number
from ..validation import (
    ConflictError,
    InsufficientStock,
    InvalidQuantity,
    NoPrimaryLocation,
    NotFoundError,
    ValidationError,
    VariantsRequired,
)

QUANTITY_SCALE = 4
MONEY_SCALE = 2


def require_primary_location(vendor_id: int) -> Location:
    location = db.session.query(Location).filter_by(
        vendor_id=vendor_id,
        is_primary=True,
    ).first()
    if location is None:
        raise NoPrimaryLocation(vendor_id)
    return location


def require_location(vendor_id: int, location_id: int) -> Location:
    location = db.session.get(Location, location_id)
    if location is None or location.vendor_id != vendor_id:
        raise NotFoundError(f"Location {location_id} not found for vendor")
    return location


def require_product(vendor_id: int, product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None or product.vendor_id != vendor_id:
        raise NotFoundError(f"Product {product_id} not found for vendor")
    return product


def require_variants(variants: Any) -> list[dict]:
    """Variable products never silently degrade to simple ones."""
    if not variants or not isinstance(variants, (list, tuple)):
        raise VariantsRequired()
    for v in variants:
        if not isinstance(v, dict):
            raise ValidationError("Each variant must be an object")
    return list(variants)


def require_positive_quantity(value: Any, label: str = "quantity") -> Decimal:
    result = validate_number(value, allow_negative=False, allow_zero=False, label=label)
    if not result.valid:
        raise InvalidQuantity(result.error)
    return round_to(result.value, QUANTITY_SCALE)


def require_non_negative_quantity(value: Any, label: str = "quantity") -> Decimal:
    result = validate_number(value, allow_negative=False, label=label)
    if not result.valid:
        raise InvalidQuantity(result.error)
    return round_to(result.value, QUANTITY_SCALE)


def require_non_negative_amount(value: Any, label: str = "amount") -> Decimal:
    result = validate_number(value, allow_negative=False, label=label)
    if not result.valid:
        raise InvalidQuantity(result.error)
    return round_to(result.value, MONEY_SCALE)


def require_sufficient_stock(inventory, quantity: Decimal) -> None:
    available = inventory.quantity if inventory is not None else Decimal(0)
    if available < quantity:
        raise InsufficientStock(
            inventory.id if inventory is not None else None,
            available,
            quantity,
        )


def require_open_session(session: PosSession | None, session_id: Any) -> PosSession:
    if session is None:
        raise NotFoundError(f"Session {session_id} not found")
    if session.status != SESSION_STATUS_OPEN:
        raise ConflictError(f"Session {session.session_number} is already closed")
    return session
