from datetime import date, timedelta
from decimal import Decimal

import factory
from factory.django import DjangoModelFactory
from inventory.lots import active_lot_total
from inventory.models import InventoryRecord, Warehouse
from inventory.services import receive_purchase


class WarehouseFactory(DjangoModelFactory):
    class Meta:
        model = Warehouse

    name = factory.Sequence(lambda n: f"Warehouse {n}")
    address = factory.Faker("street_address")
    is_main = False
    is_active = True
    visible_online = True
    picking_priority = 0


def stock_lot(product, warehouse, quantity, unit_cost, *, days_ago=0, **kwargs):
    """Receive a purchase dated ``days_ago`` days back, keeping the record in sync."""
    return receive_purchase(
        product=product,
        warehouse=warehouse,
        quantity=quantity,
        unit_cost=Decimal(str(unit_cost)),
        acquired_on=date.today() - timedelta(days=days_ago),
        **kwargs,
    )


def lot_sum_mismatches():
    """``(product_id, warehouse_id, available_stock, lot_total)`` for every record out of step with its lots."""
    mismatches = []
    for record in InventoryRecord.objects.all():
        lot_total = active_lot_total(record.product_id, record.warehouse_id)
        if int(record.available_stock) != lot_total:
            mismatches.append((record.product_id, record.warehouse_id, int(record.available_stock), lot_total))
    return mismatches
