"""Stock movement recorder: append-only ledger writes."""

from decimal import Decimal
from typing import List

from django.utils import timezone

from .models import StockMovement


def record_movement(
    *,
    product,
    warehouse,
    movement_type: str,
    quantity: int,
    unit_cost=Decimal("0"),
    lot=None,
    reserved_delta: int = 0,
    reference_type: str = "",
    reference_id="",
    actor=None,
    notes: str = "",
    moved_at=None,
) -> StockMovement:
    """Append one movement. ``quantity`` is signed: negative for outflows."""
    if int(quantity) == 0 and int(reserved_delta) == 0:
        raise ValueError("A stock movement must change available or reserved stock")
    return StockMovement.objects.create(
        product_id=getattr(product, "pk", product),
        warehouse_id=getattr(warehouse, "pk", warehouse),
        lot_id=getattr(lot, "pk", lot),
        movement_type=movement_type,
        quantity=int(quantity),
        reserved_delta=int(reserved_delta),
        unit_cost=Decimal(str(unit_cost)),
        reference_type=reference_type,
        reference_id=str(reference_id or ""),
        actor=actor if getattr(actor, "is_authenticated", False) else None,
        notes=(notes or "")[:255],
        moved_at=moved_at or timezone.now(),
    )


def movements_for_reference(reference_type: str, reference_id) -> List[StockMovement]:
    return list(
        StockMovement.objects.filter(reference_type=reference_type, reference_id=str(reference_id)).order_by("id")
    )


def net_quantity(product, warehouse, *, since=None) -> int:
    qs = StockMovement.objects.filter(product=product, warehouse=warehouse)
    if since is not None:
        qs = qs.filter(moved_at__gte=since)
    return sum(int(q) for q in qs.values_list("quantity", flat=True))

