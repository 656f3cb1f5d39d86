from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..precision import format_price
from ..time_utils import to_utc_z
from .types import Money, Quantity

PRODUCT_TYPE_SIMPLE = "simple"
PRODUCT_TYPE_VARIABLE = "variable"
PRODUCT_TYPES = (PRODUCT_TYPE_SIMPLE, PRODUCT_TYPE_VARIABLE)


class Product(db.Model):
    """
    Product master data.

    A simple product owns exactly one inventory row per location directly.
    A variable product owns >= 1 ProductVariant; each variant carries its own
    SKU, price and inventory rows, and the parent has none.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("vendor_id", "sku", name="uq_products_vendor_sku"),
        db.Index("ix_products_vendor_name", "vendor_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), nullable=True)
    sku = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)

    product_type = db.Column(db.String(16), nullable=False, default=PRODUCT_TYPE_SIMPLE)
    regular_price = db.Column(Money(), nullable=True)
    cost_price = db.Column(Money(), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)

    custom_fields = db.Column(db.JSON, nullable=True)
    meta_data = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    vendor = db.relationship("Vendor", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} type={self.product_type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "name": self.name,
            "slug": self.slug,
            "sku": self.sku,
            "description": self.description,
            "product_type": self.product_type,
            "regular_price": format_price(self.regular_price) if self.regular_price is not None else None,
            "cost_price": format_price(self.cost_price) if self.cost_price is not None else None,
            "status": self.status,
            "custom_fields": self.custom_fields,
            "meta_data": self.meta_data,
            "created_at": to_utc_z(self.created_at),
        }


class ProductVariant(db.Model):
    """Purchasable sub-unit of a variable product (e.g. a 3.5g or 7g pack)."""
    __tablename__ = "product_variants"
    __table_args__ = (
        db.UniqueConstraint("product_id", "sku", name="uq_variants_product_sku"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    regular_price = db.Column(Money(), nullable=True)
    attributes = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("variants", lazy=True, order_by="ProductVariant.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "sku": self.sku,
            "regular_price": format_price(self.regular_price) if self.regular_price is not None else None,
            "attributes": self.attributes,
        }


class Inventory(db.Model):
    """
    Current quantity of one product (or variant) at one location.

    INVARIANT: quantity == SUM(stock_movements.quantity_delta) for this row.
    quantity is a materialized cache of the movement ledger; it is only ever
    written together with a new StockMovement in the same transaction.

    CONCURRENCY: version_id is the optimistic lock. A writer holding a stale
    version gets StaleDataError and the operation is retried from a fresh
    read. PostgreSQL additionally takes SELECT ... FOR UPDATE row locks.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        # One row per (product, location) for simple products...
        db.Index(
            "uq_inventory_product_location",
            "product_id",
            "location_id",
            unique=True,
            sqlite_where=db.text("variant_id IS NULL"),
            postgresql_where=db.text("variant_id IS NULL"),
        ),
        # ...and one per (variant, location) for variable products.
        db.Index(
            "uq_inventory_variant_location",
            "variant_id",
            "location_id",
            unique=True,
            sqlite_where=db.text("variant_id IS NOT NULL"),
            postgresql_where=db.text("variant_id IS NOT NULL"),
        ),
        db.Index("ix_inventory_vendor_location", "vendor_id", "location_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    quantity = db.Column(Quantity(), nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("inventory_rows", lazy=True))
    variant = db.relationship("ProductVariant", backref=db.backref("inventory_rows", lazy=True))
    location = db.relationship("Location")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Inventory id={self.id} product_id={self.product_id} location_id={self.location_id} qty={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "location_id": self.location_id,
            "quantity": self.quantity,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Immutable ledger row: one signed change to one inventory row.

    APPEND-ONLY: never updated or deleted (enforced by mapper events below).
    This table is the system of record; Inventory.quantity is derived from it.

    IDEMPOTENCY: (inventory_id, reference_type, reference_id) is unique, so a
    retried request carrying the same stable reference (sale line id,
    transfer id) cannot be applied twice. Rows without a reference_id are
    not deduplicated.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.UniqueConstraint(
            "inventory_id", "reference_type", "reference_id",
            name="uq_stock_movements_reference",
        ),
        db.Index("ix_stock_movements_inventory_created", "inventory_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory.id"), nullable=False, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    quantity_delta = db.Column(Quantity(), nullable=False)
    quantity_before = db.Column(Quantity(), nullable=False)
    quantity_after = db.Column(Quantity(), nullable=False)

    # product_creation, sale, void, refund, adjustment, transfer_in, transfer_out
    reference_type = db.Column(db.String(32), nullable=False, index=True)
    reference_id = db.Column(db.String(64), nullable=True)
    reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    inventory = db.relationship("Inventory", backref=db.backref("movements", lazy=True, order_by="StockMovement.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "location_id": self.location_id,
            "quantity_delta": self.quantity_delta,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(StockMovement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise ValueError("stock movements are append-only")


@event.listens_for(StockMovement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise ValueError("stock movements are append-only")
