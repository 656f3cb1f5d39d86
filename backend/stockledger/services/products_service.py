# backend/stockledger/services/products_service.py
"""
Product + inventory creation, all-or-nothing.

ORDER OF OPERATIONS:
1. Resolve the vendor's primary location (NoPrimaryLocation if missing).
2. Validate product data; variable products need >= 1 variant
   (VariantsRequired). Nothing has been written yet at this point.
3. Insert the product, then one inventory row per simple product or per
   variant at the primary location.
4. Seed every inventory row through the stock ledger with a
   product_creation movement, so stock never starts unaccounted for.
5. Commit once. Any failure rolls back product, variants, inventory and
   movements together; no orphan products.
"""
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Inventory, Product, ProductVariant
from ..models.inventory import PRODUCT_TYPE_SIMPLE, PRODUCT_TYPE_VARIABLE
from ..precision import ZERO
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)
from . import guards
from .concurrency import run_with_retry
from .stock_ledger import REFERENCE_PRODUCT_CREATION, apply_movement

logger = logging.getLogger(__name__)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "slug", "sku", "description", "product_type",
        "regular_price", "cost_price", "status", "custom_fields", "meta_data",
    },
    required_on_create={"name"},
)

VARIANT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "sku", "regular_price", "attributes"},
    required_on_create={"name"},
)


def _split_variant(raw: dict) -> tuple[dict, object]:
    data = dict(raw)
    stock = data.pop("stock_quantity", 0)
    return data, stock


def _seed_inventory(product: Product, location_id: int, stock, variant: ProductVariant | None = None) -> Inventory:
    inventory = Inventory(
        vendor_id=product.vendor_id,
        product_id=product.id,
        variant_id=variant.id if variant is not None else None,
        location_id=location_id,
        quantity=ZERO,
    )
    db.session.add(inventory)
    db.session.flush()

    apply_movement(
        inventory,
        stock,
        reference_type=REFERENCE_PRODUCT_CREATION,
        reference_id=product.id,
        reason="Initial stock on product creation",
    )
    return inventory


def create_product(
    *,
    vendor_id: int,
    product_data: dict,
    initial_stock=0,
    variants: list[dict] | None = None,
) -> dict:
    """
    Create a simple or variable product with its opening inventory.

    Returns:
        {product_id, inventory_id, location_id, location_name,
         variant_ids, variants_created}
        inventory_id is the simple product's row, or the first variant's row
        for variable products; inventory_ids lists every row created.

    Raises:
        NoPrimaryLocation, VariantsRequired, ValidationError, ConflictError
    """
    def _op():
        location = guards.require_primary_location(vendor_id)

        patch = validate_payload(
            model=Product,
            payload=product_data,
            policy=PRODUCT_POLICY,
            partial=False,
        )
        enforce_rules_product(patch)
        product_type = patch.setdefault("product_type", PRODUCT_TYPE_SIMPLE)

        # Validate everything before the first INSERT
        variant_rows: list[tuple[dict, object]] = []
        if product_type == PRODUCT_TYPE_VARIABLE:
            seen_skus: set[str] = set()
            for raw in guards.require_variants(variants):
                data, stock = _split_variant(raw)
                variant_patch = validate_payload(
                    model=ProductVariant,
                    payload=data,
                    policy=VARIANT_POLICY,
                    partial=False,
                )
                sku = variant_patch.get("sku")
                if sku:
                    if sku in seen_skus:
                        raise ValidationError(f"Duplicate variant SKU '{sku}'")
                    seen_skus.add(sku)
                variant_rows.append((variant_patch, guards.require_non_negative_quantity(stock, "stock_quantity")))
            opening_stock = None
        else:
            opening_stock = guards.require_non_negative_quantity(initial_stock or 0, "initial_stock")

        if patch.get("sku"):
            clash = db.session.query(Product.id).filter_by(vendor_id=vendor_id, sku=patch["sku"]).first()
            if clash:
                raise ConflictError(f"SKU '{patch['sku']}' already exists for this vendor")

        inventory_ids: list[int] = []
        variant_ids: list[int] = []

        # The pre-check above can lose to a concurrent create; the unique
        # constraints have the final word.
        try:
            product = Product(vendor_id=vendor_id, **patch)
            db.session.add(product)
            db.session.flush()

            if product_type == PRODUCT_TYPE_VARIABLE:
                for variant_patch, stock in variant_rows:
                    variant = ProductVariant(product_id=product.id, vendor_id=vendor_id, **variant_patch)
                    db.session.add(variant)
                    db.session.flush()
                    variant_ids.append(variant.id)
                    inventory_ids.append(_seed_inventory(product, location.id, stock, variant).id)
            else:
                inventory_ids.append(_seed_inventory(product, location.id, opening_stock).id)

            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            logger.warning("Product create for vendor %s hit a unique constraint: %s", vendor_id, exc.orig)
            raise ConflictError("Product or variant SKU already exists for this vendor") from exc

        logger.info(
            "Created %s product %s for vendor %s at location %s (%d inventory rows)",
            product_type, product.id, vendor_id, location.id, len(inventory_ids),
        )

        result = {
            "product_id": product.id,
            "product_type": product_type,
            "inventory_id": inventory_ids[0],
            "inventory_ids": inventory_ids,
            "location_id": location.id,
            "location_name": location.name,
        }
        if product_type == PRODUCT_TYPE_VARIABLE:
            result["variant_ids"] = variant_ids
            result["variants_created"] = len(variant_ids)
        return result

    return run_with_retry(_op)
