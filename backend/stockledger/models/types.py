"""
Exact decimal column type.

Numeric on PostgreSQL (and anything else with a real fixed-point type).
SQLite has no decimal storage (NUMERIC affinity degrades to REAL), so there
the value is stored as its canonical string and parsed back into a Decimal.
"""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator

from ..precision import round_to, to_decimal


class DecimalType(TypeDecorator):
    """Decimal in, Decimal out; quantized to `scale` places on write."""

    impl = Numeric
    cache_ok = True

    def __init__(self, precision: int = 20, scale: int = 4, **kwargs):
        super().__init__(precision=precision, scale=scale, asdecimal=True, **kwargs)
        self.precision = precision
        self.scale = scale

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(self.precision + 2))
        return dialect.type_descriptor(Numeric(self.precision, self.scale, asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        quantized = round_to(value, self.scale)
        if dialect.name == "sqlite":
            return f"{quantized:f}"
        return quantized

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, Decimal):
            return value
        return to_decimal(value)


def Quantity():
    """Mass or unit count (4 places: centigram adjustments plus headroom)."""
    return DecimalType(20, 4)


def Money():
    return DecimalType(14, 2)
