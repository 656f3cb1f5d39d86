# Overview: Pytest coverage for atomic product creation.

"""
Product Creation Tests

create_product is all-or-nothing:
1. No primary location -> error, zero product rows for the vendor
2. Variable product without variants -> error, zero rows
3. Every inventory row starts with a product_creation movement
"""

from decimal import Decimal

import pytest
from stockledger.extensions import db
from stockledger.models import Inventory, Product, ProductVariant, StockMovement
from stockledger.services import products_service, stock_ledger
from stockledger.validation import (
    ConflictError, InvalidQuantity, NoPrimaryLocation, ValidationError, VariantsRequired,
)


class TestSimpleProducts:
    def test_creates_product_and_inventory(self, db_session, vendor, primary_location):
        result = products_service.create_product(
            vendor_id=vendor.id,
            product_data={"name": "OG Kush", "sku": "OG-1", "regular_price": "35.00", "cost_price": 20},
            initial_stock=28,
        )

        assert result["location_id"] == primary_location.id
        assert result["location_name"] == "Main Store"
        assert result["product_type"] == "simple"
        assert "variant_ids" not in result

        product = db.session.get(Product, result["product_id"])
        assert product.regular_price == Decimal("35.00")
        assert product.status == "draft"

        inventory = db.session.get(Inventory, result["inventory_id"])
        assert inventory.quantity == Decimal("28")
        assert inventory.location_id == primary_location.id
        assert inventory.variant_id is None

    def test_initial_stock_is_recorded_in_ledger(self, db_session, vendor, primary_location):
        result = products_service.create_product(
            vendor_id=vendor.id,
            product_data={"name": "Gelato"},
            initial_stock=3.5,
        )

        movement = db.session.query(StockMovement).filter_by(inventory_id=result["inventory_id"]).one()
        assert movement.reference_type == "product_creation"
        assert movement.reference_id == str(result["product_id"])
        assert movement.quantity_delta == Decimal("3.5")
        assert stock_ledger.verify_ledger(result["inventory_id"])["consistent"]

    def test_negative_initial_stock_rejected(self, db_session, vendor, primary_location):
        with pytest.raises(InvalidQuantity):
            products_service.create_product(
                vendor_id=vendor.id,
                product_data={"name": "Bad Stock"},
                initial_stock=-1,
            )
        assert db.session.query(Product).count() == 0

    def test_duplicate_sku_conflicts(self, db_session, vendor, primary_location):
        products_service.create_product(vendor_id=vendor.id, product_data={"name": "A", "sku": "DUP"})
        with pytest.raises(ConflictError):
            products_service.create_product(vendor_id=vendor.id, product_data={"name": "B", "sku": "DUP"})
        assert db.session.query(Product).filter_by(vendor_id=vendor.id).count() == 1


class TestFailFast:
    def test_no_primary_location(self, db_session, vendor_without_location):
        with pytest.raises(NoPrimaryLocation) as exc:
            products_service.create_product(
                vendor_id=vendor_without_location.id,
                product_data={"name": "Orphan"},
                initial_stock=10,
            )

        assert str(exc.value) == "No primary location found"
        assert db.session.query(Product).filter_by(vendor_id=vendor_without_location.id).count() == 0
        assert db.session.query(Inventory).count() == 0

    def test_variable_without_variants(self, db_session, vendor, primary_location):
        for variants in (None, []):
            with pytest.raises(VariantsRequired) as exc:
                products_service.create_product(
                    vendor_id=vendor.id,
                    product_data={"name": "Flower", "product_type": "variable"},
                    variants=variants,
                )
            assert str(exc.value) == "Variable products require at least one variant"

        assert db.session.query(Product).count() == 0
        assert db.session.query(ProductVariant).count() == 0

    def test_invalid_variant_writes_nothing(self, db_session, vendor, primary_location):
        with pytest.raises(ValidationError):
            products_service.create_product(
                vendor_id=vendor.id,
                product_data={"name": "Flower", "product_type": "variable"},
                variants=[{"name": "3.5g", "stock_quantity": 10}, {"sku": "NO-NAME"}],
            )
        assert db.session.query(Product).count() == 0
        assert db.session.query(Inventory).count() == 0

    def test_duplicate_variant_sku_rejected_before_insert(self, db_session, vendor, primary_location):
        with pytest.raises(ValidationError, match="Duplicate variant SKU 'X'"):
            products_service.create_product(
                vendor_id=vendor.id,
                product_data={"name": "Flower", "product_type": "variable"},
                variants=[{"name": "a", "sku": "X"}, {"name": "b", "sku": "X"}],
            )
        assert db.session.query(Product).count() == 0
        assert db.session.query(ProductVariant).count() == 0
        assert db.session.query(Inventory).count() == 0

    def test_variants_without_sku_are_not_duplicates(self, db_session, vendor, primary_location):
        result = products_service.create_product(
            vendor_id=vendor.id,
            product_data={"name": "Flower", "product_type": "variable"},
            variants=[{"name": "a"}, {"name": "b"}],
        )
        assert result["variants_created"] == 2

    def test_missing_name(self, db_session, vendor, primary_location):
        with pytest.raises(ValidationError, match="Missing required fields: name"):
            products_service.create_product(vendor_id=vendor.id, product_data={"sku": "X"})

    def test_unknown_field(self, db_session, vendor, primary_location):
        with pytest.raises(ValidationError, match="Field not allowed"):
            products_service.create_product(vendor_id=vendor.id, product_data={"name": "X", "vendor_id": 5})

    def test_unknown_product_type(self, db_session, vendor, primary_location):
        with pytest.raises(ValidationError, match="product_type"):
            products_service.create_product(vendor_id=vendor.id, product_data={"name": "X", "product_type": "bundle"})

    def test_price_ceiling(self, db_session, vendor, primary_location):
        with pytest.raises(ValidationError, match="cannot exceed"):
            products_service.create_product(vendor_id=vendor.id, product_data={"name": "X", "regular_price": 10_000_000})


class TestVariableProducts:
    def test_creates_variant_inventory(self, db_session, vendor, primary_location):
        result = products_service.create_product(
            vendor_id=vendor.id,
            product_data={"name": "Wedding Cake", "product_type": "variable"},
            variants=[
                {"name": "3.5g", "sku": "WC-35", "regular_price": 35, "stock_quantity": 20},
                {"name": "7g", "sku": "WC-7", "regular_price": 65, "stock_quantity": 10,
                 "attributes": {"weight": "7g"}},
            ],
        )

        assert result["variants_created"] == 2
        assert len(result["variant_ids"]) == 2
        assert len(result["inventory_ids"]) == 2
        assert result["inventory_id"] == result["inventory_ids"][0]

        rows = db.session.query(Inventory).filter_by(product_id=result["product_id"]).order_by(Inventory.id).all()
        assert [r.variant_id for r in rows] == result["variant_ids"]
        assert [r.quantity for r in rows] == [Decimal("20"), Decimal("10")]

        stock = stock_ledger.get_product_stock(result["product_id"])
        assert stock["total_quantity"] == Decimal("30")

    def test_variant_stock_defaults_to_zero(self, db_session, vendor, primary_location):
        result = products_service.create_product(
            vendor_id=vendor.id,
            product_data={"name": "Pre-roll", "product_type": "variable"},
            variants=[{"name": "Single"}],
        )
        inventory = db.session.get(Inventory, result["inventory_id"])
        assert inventory.quantity == 0
