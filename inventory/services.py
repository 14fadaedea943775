"""Inventory services (multi-warehouse): transactional stock operations.

Every operation locks the affected ``InventoryRecord`` rows, keeps
``available_stock`` equal to the sum of active lots, refreshes the average
cost and appends to the movement ledger.
"""

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from common.choices import MovementReference, MovementType
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from .allocation import AllocationPlan
from .costing import refresh_average_cost
from .errors import InsufficientStock, InventoryError
from .lots import consume_fifo, create_lot, generate_batch_code
from .models import InventoryRecord, Lot, StockMovement, StockReservation, Warehouse
from .movements import record_movement

logger = logging.getLogger("erpcore.inventory")


def _pk(obj) -> int:
    return int(getattr(obj, "pk", obj))


def _lock_record(product, warehouse) -> InventoryRecord:
    record, _ = InventoryRecord.objects.select_for_update().get_or_create(
        product_id=_pk(product), warehouse_id=_pk(warehouse)
    )
    return record


def _locked_record_or_none(product, warehouse) -> Optional[InventoryRecord]:
    return (
        InventoryRecord.objects.select_for_update()
        .filter(product_id=_pk(product), warehouse_id=_pk(warehouse))
        .first()
    )


def _save_record(record: InventoryRecord, *fields: str) -> None:
    record.last_movement_at = timezone.now()
    record.save(update_fields=[*fields, "last_movement_at", "updated_at"])
    record.average_cost = refresh_average_cost(record.product_id, record.warehouse_id)


@transaction.atomic
def receive_purchase(
    *,
    product,
    warehouse,
    quantity: int,
    unit_cost,
    purchase_reference: str = "",
    distribution_cost=None,
    acquired_on=None,
    expires_on=None,
    batch_code: Optional[str] = None,
    actor=None,
) -> Lot:
    """Book a purchase: new lot, more available stock and an ``in`` movement."""
    record = _lock_record(product, warehouse)
    lot = create_lot(
        product=product,
        warehouse=warehouse,
        quantity=quantity,
        unit_cost=unit_cost,
        distribution_cost=distribution_cost,
        acquired_on=acquired_on,
        expires_on=expires_on,
        batch_code=batch_code,
        purchase_reference=purchase_reference,
        origin_note=f"Purchase {purchase_reference}".strip(),
    )
    record.available_stock = int(record.available_stock) + int(quantity)
    _save_record(record, "available_stock")
    record_movement(
        product=record.product_id,
        warehouse=record.warehouse_id,
        movement_type=MovementType.INBOUND,
        quantity=int(quantity),
        unit_cost=lot.purchase_price,
        lot=lot,
        reference_type=MovementReference.PURCHASE,
        reference_id=purchase_reference or lot.id,
        actor=actor,
        notes=lot.origin_note,
    )
    logger.info(
        "inventory.purchase_received",
        extra={
            "event": "inventory.purchase_received",
            "product_id": record.product_id,
            "warehouse_id": record.warehouse_id,
            "lot_id": lot.id,
            "quantity": int(quantity),
        },
    )
    return lot


# Reservation services
@transaction.atomic
def reserve(*, product, warehouse, quantity: int, reference: str, expires_at=None) -> StockReservation:
    """Soft-claim free stock for ``reference``.

    Free stock is re-read under the row lock, so a plan computed earlier
    cannot over-reserve.
    """
    quantity = int(quantity)
    if quantity <= 0:
        raise InventoryError("Reservation quantity must be positive")
    record = _locked_record_or_none(product, warehouse)
    free = record.free_stock if record else 0
    if record is None or quantity > free:
        raise InsufficientStock(_pk(product), quantity, free, warehouse_id=_pk(warehouse))
    record.reserved_stock = int(record.reserved_stock) + quantity
    record.save(update_fields=["reserved_stock", "updated_at"])
    reservation = StockReservation.objects.create(
        product_id=record.product_id,
        warehouse_id=record.warehouse_id,
        quantity=quantity,
        reference=reference,
        expires_at=expires_at,
        state=StockReservation.STATE_ACTIVE,
    )
    logger.info(
        "inventory.reserved",
        extra={
            "event": "inventory.reserved",
            "product_id": record.product_id,
            "warehouse_id": record.warehouse_id,
            "quantity": quantity,
            "reference": reference,
        },
    )
    return reservation


@transaction.atomic
def reserve_allocation(*, plan: AllocationPlan, reference: str, expires_at=None) -> List[StockReservation]:
    """Reserve every plan entry, locking rows in (product, warehouse) order."""
    return [
        reserve(
            product=product_id,
            warehouse=entry.warehouse_id,
            quantity=entry.quantity,
            reference=reference,
            expires_at=expires_at,
        )
        for product_id, entry in plan.entries()
    ]


@transaction.atomic
def commit_reservation(
    *,
    product,
    warehouse,
    quantity: int,
    sale_id,
    actor=None,
    reference_type: str = MovementReference.SALE,
) -> List[StockMovement]:
    """Turn reserved units into an outflow: FIFO lots, one ``out`` movement per lot."""
    quantity = int(quantity)
    record = _locked_record_or_none(product, warehouse)
    on_hand = int(record.available_stock) if record else 0
    if record is None or quantity > on_hand:
        raise InsufficientStock(_pk(product), quantity, on_hand, warehouse_id=_pk(warehouse))
    consumed = consume_fifo(product=record.product_id, warehouse=record.warehouse_id, quantity=quantity)
    record.available_stock = on_hand - quantity
    record.reserved_stock = max(0, int(record.reserved_stock) - quantity)
    _save_record(record, "available_stock", "reserved_stock")
    movements = [
        record_movement(
            product=record.product_id,
            warehouse=record.warehouse_id,
            movement_type=MovementType.OUTBOUND,
            quantity=-taken,
            unit_cost=lot.purchase_price,
            lot=lot,
            reference_type=reference_type,
            reference_id=sale_id,
            actor=actor,
        )
        for lot, taken in consumed
    ]
    logger.info(
        "inventory.committed",
        extra={
            "event": "inventory.committed",
            "product_id": record.product_id,
            "warehouse_id": record.warehouse_id,
            "quantity": quantity,
            "sale_id": sale_id,
            "lots": len(consumed),
        },
    )
    return movements


@transaction.atomic
def convert_reservation(*, reservation_id: int, sale_id, actor=None) -> List[StockMovement]:
    try:
        res = StockReservation.objects.select_for_update().get(id=reservation_id)
    except StockReservation.DoesNotExist:
        raise InventoryError(f"Reservation {reservation_id} not found")
    if res.state != StockReservation.STATE_ACTIVE:
        raise InventoryError(f"Reservation {reservation_id} is {res.state}, not active")
    movements = commit_reservation(
        product=res.product_id,
        warehouse=res.warehouse_id,
        quantity=res.quantity,
        sale_id=sale_id,
        actor=actor,
    )
    res.state = StockReservation.STATE_CONVERTED
    res.save(update_fields=["state", "updated_at"])
    return movements


@transaction.atomic
def release_reservation(
    *,
    reservation_id: int,
    reference_type: str = MovementReference.RESERVATION_RELEASE,
    reference_id="",
    actor=None,
) -> Optional[StockMovement]:
    """Give reserved units back; no-op for reservations that are not active."""
    try:
        res = StockReservation.objects.select_for_update().get(id=reservation_id)
    except StockReservation.DoesNotExist:
        return None
    if res.state != StockReservation.STATE_ACTIVE:
        return None
    record = _lock_record(res.product_id, res.warehouse_id)
    record.reserved_stock = max(0, int(record.reserved_stock) - int(res.quantity))
    record.last_movement_at = timezone.now()
    record.save(update_fields=["reserved_stock", "last_movement_at", "updated_at"])
    res.state = StockReservation.STATE_RELEASED
    res.save(update_fields=["state", "updated_at"])
    movement = record_movement(
        product=res.product_id,
        warehouse=res.warehouse_id,
        movement_type=MovementType.ADJUSTMENT,
        quantity=0,
        reserved_delta=-int(res.quantity),
        reference_type=reference_type,
        reference_id=reference_id or res.reference,
        actor=actor,
        notes=f"Released reservation {res.reference}",
    )
    logger.info(
        "inventory.reservation_released",
        extra={
            "event": "inventory.reservation_released",
            "reservation_id": res.id,
            "product_id": res.product_id,
            "warehouse_id": res.warehouse_id,
            "quantity": int(res.quantity),
        },
    )
    return movement


def release_reservations_for(reference: str, **kwargs) -> int:
    released = 0
    ids = StockReservation.objects.filter(reference=reference, state=StockReservation.STATE_ACTIVE).values_list(
        "id", flat=True
    )
    for reservation_id in list(ids):
        if release_reservation(reservation_id=reservation_id, **kwargs) is not None:
            released += 1
    return released


# Adjustments
@transaction.atomic
def adjust_in(*, product, warehouse, quantity: int, reason: str, unit_cost=None, expires_on=None, actor=None) -> Lot:
    """Add found or returned units as a new lot.

    Without ``unit_cost`` the lot is valued at the record's current average
    cost so the average stays put.
    """
    record = _lock_record(product, warehouse)
    cost = Decimal(str(unit_cost)) if unit_cost is not None else Decimal(record.average_cost)
    lot = create_lot(
        product=record.product_id,
        warehouse=record.warehouse_id,
        quantity=quantity,
        unit_cost=cost,
        expires_on=expires_on,
        batch_code=generate_batch_code("ADJ-IN"),
        origin_note=f"Adjustment: {reason}"[:255],
    )
    record.available_stock = int(record.available_stock) + int(quantity)
    _save_record(record, "available_stock")
    record_movement(
        product=record.product_id,
        warehouse=record.warehouse_id,
        movement_type=MovementType.ADJUSTMENT,
        quantity=int(quantity),
        unit_cost=cost,
        lot=lot,
        reference_type=MovementReference.ADJUSTMENT_IN,
        reference_id=lot.id,
        actor=actor,
        notes=reason,
    )
    logger.info(
        "inventory.adjusted_in",
        extra={
            "event": "inventory.adjusted_in",
            "product_id": record.product_id,
            "warehouse_id": record.warehouse_id,
            "quantity": int(quantity),
            "reason": reason,
        },
    )
    return lot


@transaction.atomic
def adjust_out(*, product, warehouse, quantity: int, reason: str, actor=None) -> List[StockMovement]:
    """Remove units (damage, loss) from free stock, oldest lots first."""
    quantity = int(quantity)
    if quantity <= 0:
        raise InventoryError("Adjustment quantity must be positive")
    record = _lock_record(product, warehouse)
    free = record.free_stock
    if quantity > free:
        raise InsufficientStock(record.product_id, quantity, free, warehouse_id=record.warehouse_id)
    consumed = consume_fifo(product=record.product_id, warehouse=record.warehouse_id, quantity=quantity)
    record.available_stock = int(record.available_stock) - quantity
    _save_record(record, "available_stock")
    movements = [
        record_movement(
            product=record.product_id,
            warehouse=record.warehouse_id,
            movement_type=MovementType.ADJUSTMENT,
            quantity=-taken,
            unit_cost=lot.purchase_price,
            lot=lot,
            reference_type=MovementReference.ADJUSTMENT_OUT,
            reference_id=lot.id,
            actor=actor,
            notes=reason,
        )
        for lot, taken in consumed
    ]
    logger.info(
        "inventory.adjusted_out",
        extra={
            "event": "inventory.adjusted_out",
            "product_id": record.product_id,
            "warehouse_id": record.warehouse_id,
            "quantity": quantity,
            "reason": reason,
        },
    )
    return movements


@transaction.atomic
def transfer(*, product, from_warehouse, to_warehouse, quantity: int, notes: str = "", actor=None) -> List[Lot]:
    """Move units between warehouses keeping each lot's cost basis.

    Returns the lots created at the destination.
    """
    quantity = int(quantity)
    source_id, dest_id = _pk(from_warehouse), _pk(to_warehouse)
    if source_id == dest_id:
        raise InventoryError("Source and destination warehouses must differ")
    if quantity <= 0:
        raise InventoryError("Transfer quantity must be positive")
    source_wh = Warehouse.objects.get(id=source_id)
    dest_wh = Warehouse.objects.get(id=dest_id)

    locked = {wid: _lock_record(product, wid) for wid in sorted((source_id, dest_id))}
    source, dest = locked[source_id], locked[dest_id]
    free = source.free_stock
    if quantity > free:
        raise InsufficientStock(source.product_id, quantity, free, warehouse_id=source_id)

    consumed = consume_fifo(product=source.product_id, warehouse=source_id, quantity=quantity)
    stamp = int(timezone.now().timestamp())
    created: List[Lot] = []
    for lot, taken in consumed:
        new_lot = create_lot(
            product=source.product_id,
            warehouse=dest_id,
            quantity=taken,
            unit_cost=lot.purchase_price,
            distribution_cost=lot.distribution_price,
            acquired_on=lot.acquired_on,
            expires_on=lot.expires_on,
            batch_code=f"{lot.batch_code[:40]}-T{stamp}-{uuid.uuid4().hex[:4].upper()}",
            purchase_reference=lot.purchase_reference,
            origin_note=f"Transferred from {source_wh.name}",
            source_lot=lot,
        )
        created.append(new_lot)
        record_movement(
            product=source.product_id,
            warehouse=source_id,
            movement_type=MovementType.TRANSFER,
            quantity=-taken,
            unit_cost=lot.purchase_price,
            lot=lot,
            reference_type=MovementReference.TRANSFER_OUT,
            reference_id=new_lot.id,
            actor=actor,
            notes=notes or f"Transfer to {dest_wh.name}",
        )
        record_movement(
            product=source.product_id,
            warehouse=dest_id,
            movement_type=MovementType.TRANSFER,
            quantity=taken,
            unit_cost=new_lot.purchase_price,
            lot=new_lot,
            reference_type=MovementReference.TRANSFER_IN,
            reference_id=lot.id,
            actor=actor,
            notes=notes or f"Transfer from {source_wh.name}",
        )

    source.available_stock = int(source.available_stock) - quantity
    dest.available_stock = int(dest.available_stock) + quantity
    _save_record(source, "available_stock")
    _save_record(dest, "available_stock")
    logger.info(
        "inventory.transferred",
        extra={
            "event": "inventory.transferred",
            "product_id": source.product_id,
            "from_warehouse_id": source_id,
            "to_warehouse_id": dest_id,
            "quantity": quantity,
        },
    )
    return created


# Reconciliation
@dataclass
class SyncReport:
    checked: int = 0
    corrections: List[dict] = field(default_factory=list)

    @property
    def corrected(self) -> int:
        return len(self.corrections)


@transaction.atomic
def sync_with_lots(*, product=None, warehouse=None) -> SyncReport:
    """Recompute ``available_stock`` from active lots and repair any drift.

    Creates records for (product, warehouse) pairs that hold lots but have
    no record yet. Idempotent.
    """
    lots = Lot.objects.filter(status=Lot.STATUS_ACTIVE)
    records = InventoryRecord.objects.select_for_update()
    if product is not None:
        lots = lots.filter(product_id=_pk(product))
        records = records.filter(product_id=_pk(product))
    if warehouse is not None:
        lots = lots.filter(warehouse_id=_pk(warehouse))
        records = records.filter(warehouse_id=_pk(warehouse))

    totals = {
        (row["product_id"], row["warehouse_id"]): int(row["total"] or 0)
        for row in lots.values("product_id", "warehouse_id").annotate(total=Sum("quantity_available"))
    }
    report = SyncReport()
    seen = set()
    for record in records.order_by("product_id", "warehouse_id"):
        key = (record.product_id, record.warehouse_id)
        seen.add(key)
        report.checked += 1
        _correct(record, totals.get(key, 0), report)
    for key in sorted(set(totals) - seen):
        record = _lock_record(*key)
        report.checked += 1
        _correct(record, totals[key], report)
    return report


def _correct(record: InventoryRecord, lot_total: int, report: SyncReport) -> None:
    if int(record.available_stock) == lot_total:
        return
    correction = {
        "product_id": record.product_id,
        "warehouse_id": record.warehouse_id,
        "previous": int(record.available_stock),
        "corrected": lot_total,
    }
    record.available_stock = lot_total
    _save_record(record, "available_stock")
    report.corrections.append(correction)
    logger.warning("inventory.drift_corrected", extra={"event": "inventory.drift_corrected", **correction})


# EOF
