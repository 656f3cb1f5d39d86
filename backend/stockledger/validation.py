from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import JSON, Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from . import precision
from .models.inventory import PRODUCT_TYPES
from .models.types import DecimalType

# Maximum price: 9,999,999.99
MAX_PRICE = 9_999_999.99


class ValidationError(ValueError):
    """400-level input problem. The whole operation is rolled back."""


class NoPrimaryLocation(ValidationError):
    def __init__(self, vendor_id: Any):
        super().__init__("No primary location found")
        self.vendor_id = vendor_id


class VariantsRequired(ValidationError):
    def __init__(self):
        super().__init__("Variable products require at least one variant")


class InsufficientStock(ValidationError):
    def __init__(self, inventory_id: Any, available, requested):
        super().__init__(
            f"Insufficient stock. Available: {precision.format_quantity(available)}, "
            f"requested: {precision.format_quantity(requested)}"
        )
        self.inventory_id = inventory_id
        self.available = available
        self.requested = requested


class InvalidQuantity(ValidationError):
    """Quantity or amount is not a usable number for this operation."""


class NotFoundError(LookupError):
    """404-level: referenced inventory/product/session/location does not exist."""


class ConflictError(ValueError):
    """409-level business rule conflict (closed session, reused reference id)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what callers are allowed to set
    - required_on_create: fields required on create
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Money / quantity: hard failure here, unlike the best-effort precision layer
    if isinstance(coltype, DecimalType):
        result = precision.validate_number(value, allow_negative=False, label=col.key)
        if not result.valid:
            raise ValidationError(result.error)
        return result.value

    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    if isinstance(coltype, JSON):
        if not isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be an object")
        return value

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming data against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Business rules that SQLAlchemy metadata alone does not capture."""
    product_type = patch.get("product_type")
    if product_type is not None and product_type not in PRODUCT_TYPES:
        raise ValidationError(f"product_type must be one of: {', '.join(PRODUCT_TYPES)}")

    for field in ("regular_price", "cost_price"):
        price = patch.get(field)
        if price is not None and price > precision.to_decimal(MAX_PRICE):
            raise ValidationError(f"{field} cannot exceed {precision.format_price(MAX_PRICE)}")
