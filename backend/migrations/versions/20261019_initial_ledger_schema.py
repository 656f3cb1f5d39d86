"""Initial ledger schema: vendors, locations, products, inventory, movements, POS sessions

Revision ID: 20261019_initial_ledger
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

from stockledger.models.types import DecimalType


# revision identifiers, used by Alembic.
revision = "20261019_initial_ledger"
down_revision = None
branch_labels = None
depends_on = None


def _quantity():
    return DecimalType(20, 4)


def _money():
    return DecimalType(14, 2)


def _timestamp(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable, server_default=sa.func.now())


def upgrade():
    op.create_table(
        "vendors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        _timestamp("created_at"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_vendors_status", "vendors", ["status"])

    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_locations_vendor_id", "locations", ["vendor_id"])
    op.create_index("ix_locations_vendor_active", "locations", ["vendor_id", "is_active"])
    op.create_index(
        "uq_locations_vendor_primary",
        "locations",
        ["vendor_id"],
        unique=True,
        sqlite_where=sa.text("is_primary = 1"),
        postgresql_where=sa.text("is_primary"),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=True),
        sa.Column("sku", sa.String(length=64), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("product_type", sa.String(length=16), nullable=False, server_default="simple"),
        sa.Column("regular_price", _money(), nullable=True),
        sa.Column("cost_price", _money(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("custom_fields", sa.JSON(), nullable=True),
        sa.Column("meta_data", sa.JSON(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("vendor_id", "sku", name="uq_products_vendor_sku"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_vendor_id", "products", ["vendor_id"])
    op.create_index("ix_products_status", "products", ["status"])
    op.create_index("ix_products_vendor_name", "products", ["vendor_id", "name"])

    op.create_table(
        "product_variants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=True),
        sa.Column("regular_price", _money(), nullable=True),
        sa.Column("attributes", sa.JSON(), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("product_id", "sku", name="uq_variants_product_sku"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_product_variants_product_id", "product_variants", ["product_id"])
    op.create_index("ix_product_variants_vendor_id", "product_variants", ["vendor_id"])

    op.create_table(
        "inventory",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("variant_id", sa.Integer(), sa.ForeignKey("product_variants.id"), nullable=True),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("quantity", _quantity(), nullable=False, server_default="0"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_vendor_id", "inventory", ["vendor_id"])
    op.create_index("ix_inventory_product_id", "inventory", ["product_id"])
    op.create_index("ix_inventory_variant_id", "inventory", ["variant_id"])
    op.create_index("ix_inventory_location_id", "inventory", ["location_id"])
    op.create_index("ix_inventory_vendor_location", "inventory", ["vendor_id", "location_id"])
    op.create_index(
        "uq_inventory_product_location",
        "inventory",
        ["product_id", "location_id"],
        unique=True,
        sqlite_where=sa.text("variant_id IS NULL"),
        postgresql_where=sa.text("variant_id IS NULL"),
    )
    op.create_index(
        "uq_inventory_variant_location",
        "inventory",
        ["variant_id", "location_id"],
        unique=True,
        sqlite_where=sa.text("variant_id IS NOT NULL"),
        postgresql_where=sa.text("variant_id IS NOT NULL"),
    )

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("inventory_id", sa.Integer(), sa.ForeignKey("inventory.id"), nullable=False),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("variant_id", sa.Integer(), sa.ForeignKey("product_variants.id"), nullable=True),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("quantity_delta", _quantity(), nullable=False),
        sa.Column("quantity_before", _quantity(), nullable=False),
        sa.Column("quantity_after", _quantity(), nullable=False),
        sa.Column("reference_type", sa.String(length=32), nullable=False),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
        sa.Column("reason", sa.String(length=255), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint(
            "inventory_id", "reference_type", "reference_id",
            name="uq_stock_movements_reference",
        ),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_movements_inventory_id", "stock_movements", ["inventory_id"])
    op.create_index("ix_stock_movements_vendor_id", "stock_movements", ["vendor_id"])
    op.create_index("ix_stock_movements_product_id", "stock_movements", ["product_id"])
    op.create_index("ix_stock_movements_location_id", "stock_movements", ["location_id"])
    op.create_index("ix_stock_movements_reference_type", "stock_movements", ["reference_type"])
    op.create_index("ix_stock_movements_created_at", "stock_movements", ["created_at"])
    op.create_index("ix_stock_movements_inventory_created", "stock_movements", ["inventory_id", "created_at"])

    op.create_table(
        "pos_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("session_number", sa.String(length=64), nullable=False),
        sa.Column("register_id", sa.String(length=64), nullable=False),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("locations.id"), nullable=False),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="open"),
        sa.Column("opening_cash", _money(), nullable=False, server_default="0"),
        sa.Column("closing_cash", _money(), nullable=True),
        sa.Column("expected_cash", _money(), nullable=True),
        sa.Column("cash_variance", _money(), nullable=True),
        sa.Column("total_sales", _money(), nullable=False, server_default="0"),
        sa.Column("total_transactions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_cash", _money(), nullable=False, server_default="0"),
        sa.Column("total_card", _money(), nullable=False, server_default="0"),
        sa.Column("total_refunds", _money(), nullable=False, server_default="0"),
        sa.Column("walk_in_sales", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pickup_orders_fulfilled", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("opened_at"),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_by_user_id", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("location_id", "session_number", name="uq_pos_sessions_location_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_pos_sessions_session_number", "pos_sessions", ["session_number"])
    op.create_index("ix_pos_sessions_register_id", "pos_sessions", ["register_id"])
    op.create_index("ix_pos_sessions_location_id", "pos_sessions", ["location_id"])
    op.create_index("ix_pos_sessions_vendor_id", "pos_sessions", ["vendor_id"])
    op.create_index("ix_pos_sessions_user_id", "pos_sessions", ["user_id"])
    op.create_index("ix_pos_sessions_status", "pos_sessions", ["status"])
    op.create_index("ix_pos_sessions_opened_at", "pos_sessions", ["opened_at"])
    op.create_index("ix_pos_sessions_vendor_status", "pos_sessions", ["vendor_id", "status"])
    op.create_index("ix_pos_sessions_location_opened", "pos_sessions", ["location_id", "opened_at"])
    op.create_index(
        "uq_pos_sessions_open_register",
        "pos_sessions",
        ["register_id"],
        unique=True,
        sqlite_where=sa.text("status = 'open'"),
        postgresql_where=sa.text("status = 'open'"),
    )


def downgrade():
    op.drop_table("pos_sessions")
    op.drop_table("stock_movements")
    op.drop_table("inventory")
    op.drop_table("product_variants")
    op.drop_table("products")
    op.drop_table("locations")
    op.drop_table("vendors")
