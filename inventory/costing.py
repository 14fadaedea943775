"""Weighted-average cost of a product over its active lots."""

from decimal import ROUND_HALF_UP, Decimal

from django.db.models import DecimalField, F, Sum

from .models import InventoryRecord, Lot

FOUR_PLACES = Decimal("0.0001")


def weighted_average_cost(product, warehouse=None) -> Decimal:
    """Σ(qty × purchase_price) / Σ qty over active lots; zero without lots.

    Covers every warehouse when ``warehouse`` is omitted.
    """
    qs = Lot.objects.filter(product=product, status=Lot.STATUS_ACTIVE, quantity_available__gt=0)
    if warehouse is not None:
        qs = qs.filter(warehouse=warehouse)
    agg = qs.aggregate(
        units=Sum("quantity_available"),
        value=Sum(
            F("quantity_available") * F("purchase_price"),
            output_field=DecimalField(max_digits=20, decimal_places=4),
        ),
    )
    units = agg.get("units") or 0
    if not units:
        return Decimal("0")
    value = Decimal(agg.get("value") or 0)
    return (value / Decimal(units)).quantize(FOUR_PLACES, rounding=ROUND_HALF_UP)


def display_cost(cost) -> Decimal:
    return Decimal(cost).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def refresh_average_cost(product, warehouse) -> Decimal:
    """Recompute and store the record's average cost. Leaves ``sale_price`` alone."""
    cost = weighted_average_cost(product, warehouse)
    InventoryRecord.objects.filter(product=product, warehouse=warehouse).update(average_cost=cost)
    return cost
