"""Selectors for inventory domain (multi-warehouse)."""

from .allocation import global_free_stock
from .models import InventoryRecord, StockReservation, Warehouse


def sellable_warehouses(*, online_only: bool = False):
    qs = Warehouse.objects.active()
    if online_only:
        qs = qs.visible_online()
    return qs.by_priority()


def main_warehouse():
    return Warehouse.objects.active().filter(is_main=True).first()


def free_stock_for_product(product_id: int, *, online_only: bool = False) -> int:
    """Free stock summed over the active (optionally online) warehouses."""
    return global_free_stock(product_id, list(sellable_warehouses(online_only=online_only)))


def list_stock_for_product(product_id: int):
    qs = InventoryRecord.objects.filter(product_id=product_id).select_related("warehouse")
    return [
        {
            "warehouse_id": r.warehouse_id,
            "warehouse": r.warehouse.name,
            "available": r.available_stock,
            "reserved": r.reserved_stock,
            "free": r.free_stock,
            "average_cost": r.average_cost,
        }
        for r in qs.order_by("-warehouse__is_main", "-warehouse__picking_priority", "warehouse_id")
    ]


def list_active_reservations(reference: str):
    return list(
        StockReservation.objects.filter(reference=reference, state=StockReservation.STATE_ACTIVE).order_by(
            "product_id", "warehouse_id"
        )
    )


# EOF
