"""Pricing services: sale prices from refreshed costs and proposed-price checks."""

import logging
from decimal import Decimal
from typing import Optional

from catalog.selectors import category_path
from django.db import transaction
from inventory.costing import refresh_average_cost
from inventory.models import InventoryRecord

from .margins import (
    calculate_margin,
    effective_min_margin,
    effective_normal_margin,
    suggested_price,
    to_decimal,
    validate_minimum,
)
from .providers import SettingsProvider, get_settings_provider

logger = logging.getLogger("erpcore.pricing")


@transaction.atomic
def apply_margin_price(
    *,
    product,
    warehouse,
    margin=None,
    provider: Optional[SettingsProvider] = None,
) -> InventoryRecord:
    """Reprice a record from its refreshed average cost.

    Uses ``margin`` or the category's effective normal margin; the result
    must still clear the category's minimum margin.
    """
    provider = provider or get_settings_provider()
    record, _ = InventoryRecord.objects.select_for_update().get_or_create(product=product, warehouse=warehouse)
    cost = refresh_average_cost(product, warehouse)
    if margin is not None:
        target = to_decimal(margin)
    else:
        target = effective_normal_margin(product.category, provider=provider)
    price = suggested_price(cost, target)
    validate_minimum(
        price,
        cost,
        effective_min_margin(product.category, provider=provider),
        product_id=product.id,
        alert_enabled=provider.get_bool("margins", "alert_low_margin", True),
    )
    record.average_cost = cost
    record.sale_price = price
    record.save(update_fields=["sale_price", "updated_at"])
    logger.info(
        "pricing.price_applied",
        extra={
            "event": "pricing.price_applied",
            "product_id": product.id,
            "warehouse_id": record.warehouse_id,
            "cost": str(cost),
            "margin": str(target),
            "sale_price": str(price),
        },
    )
    return record


def validate_proposed_price(proposed_price, cost, product, *, provider: Optional[SettingsProvider] = None) -> dict:
    """Check a proposed sale price against the product's minimum margin."""
    provider = provider or get_settings_provider()
    minimum = effective_min_margin(product.category, provider=provider)
    margin = calculate_margin(proposed_price, cost)
    return {
        "is_valid": margin >= minimum,
        "margin": margin,
        "min_margin": minimum,
        "suggested_min_price": suggested_price(cost, minimum),
        "category": category_path(product.category),
        "cost": to_decimal(cost).quantize(Decimal("0.0001")),
    }
