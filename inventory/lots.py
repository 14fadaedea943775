"""Lot ledger: purchase batches per product and warehouse, consumed FIFO."""

import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from django.utils import timezone

from .errors import InsufficientLotStock, InventoryError
from .models import Lot


def generate_batch_code(prefix: str = "LOT") -> str:
    stamp = timezone.now().strftime("%Y%m%d%H%M%S")
    return f"{prefix}-{stamp}-{uuid.uuid4().hex[:6].upper()}"


def create_lot(
    *,
    product,
    warehouse,
    quantity: int,
    unit_cost,
    distribution_cost=None,
    acquired_on: Optional[date] = None,
    expires_on: Optional[date] = None,
    batch_code: Optional[str] = None,
    purchase_reference: str = "",
    origin_note: str = "",
    source_lot: Optional[Lot] = None,
) -> Lot:
    """Create an active lot holding ``quantity`` units at ``unit_cost``."""
    if int(quantity) <= 0:
        raise InventoryError("Lot quantity must be positive")
    cost = Decimal(str(unit_cost))
    if cost < 0:
        raise InventoryError("Lot cost cannot be negative")
    return Lot.objects.create(
        product_id=getattr(product, "pk", product),
        warehouse_id=getattr(warehouse, "pk", warehouse),
        batch_code=batch_code or generate_batch_code(),
        quantity_purchased=int(quantity),
        quantity_available=int(quantity),
        purchase_price=cost,
        distribution_price=Decimal(str(distribution_cost)) if distribution_cost is not None else cost,
        acquired_on=acquired_on or timezone.localdate(),
        expires_on=expires_on,
        status=Lot.STATUS_ACTIVE,
        purchase_reference=purchase_reference,
        origin_note=origin_note,
        source_lot=source_lot,
    )


def get_active_lots(product, warehouse=None) -> List[Lot]:
    """Active lots in FIFO order, optionally restricted to one warehouse."""
    qs = Lot.objects.filter(product=product, status=Lot.STATUS_ACTIVE, quantity_available__gt=0)
    if warehouse is not None:
        qs = qs.filter(warehouse=warehouse)
    return list(qs.order_by("acquired_on", "id"))


def get_available_batches(product, warehouse) -> List[dict]:
    return [
        {
            "id": lot.id,
            "batch_code": lot.batch_code,
            "quantity_available": lot.quantity_available,
            "purchase_price": lot.purchase_price,
            "distribution_price": lot.distribution_price,
            "acquired_on": lot.acquired_on,
            "expires_on": lot.expires_on,
            "total_value": lot.total_value,
        }
        for lot in get_active_lots(product, warehouse)
    ]


def consume_fifo(*, product, warehouse, quantity: int) -> List[Tuple[Lot, int]]:
    """Take ``quantity`` units from the oldest active lots.

    All-or-nothing: the locked lots are checked before any of them is
    touched. Must run inside a transaction.
    """
    quantity = int(quantity)
    if quantity <= 0:
        raise InventoryError("Quantity to consume must be positive")
    lots = list(
        Lot.objects.select_for_update()
        .filter(product=product, warehouse=warehouse, status=Lot.STATUS_ACTIVE, quantity_available__gt=0)
        .order_by("acquired_on", "id")
    )
    total = sum(int(lot.quantity_available) for lot in lots)
    if total < quantity:
        raise InsufficientLotStock(requested=quantity, available=total)

    taken: List[Tuple[Lot, int]] = []
    remaining = quantity
    for lot in lots:
        if remaining == 0:
            break
        take = min(remaining, int(lot.quantity_available))
        lot.quantity_available = int(lot.quantity_available) - take
        if lot.quantity_available == 0:
            lot.status = Lot.STATUS_DEPLETED
        lot.save(update_fields=["quantity_available", "status", "updated_at"])
        taken.append((lot, take))
        remaining -= take
    return taken


def active_lot_total(product, warehouse) -> int:
    return sum(int(lot.quantity_available) for lot in get_active_lots(product, warehouse))
