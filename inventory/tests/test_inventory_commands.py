from datetime import timedelta
from io import StringIO

import pytest
from catalog.tests.factories import ProductFactory
from django.core.management import call_command
from django.utils import timezone
from inventory.models import InventoryRecord, StockReservation
from inventory.services import reserve
from inventory.tests.factories import WarehouseFactory, stock_lot


@pytest.mark.django_db
def test_expire_reservations_releases_only_overdue():
    product = ProductFactory()
    warehouse = WarehouseFactory()
    stock_lot(product, warehouse, 10, 100)
    overdue = reserve(
        product=product,
        warehouse=warehouse,
        quantity=3,
        reference="order:1",
        expires_at=timezone.now() - timedelta(minutes=1),
    )
    pending = reserve(
        product=product,
        warehouse=warehouse,
        quantity=2,
        reference="order:2",
        expires_at=timezone.now() + timedelta(hours=1),
    )
    forever = reserve(product=product, warehouse=warehouse, quantity=1, reference="order:3")

    out = StringIO()
    call_command("expire_reservations", stdout=out)

    assert "Expired reservations released: 1" in out.getvalue()
    states = {r.id: r.state for r in StockReservation.objects.all()}
    assert states[overdue.id] == StockReservation.STATE_RELEASED
    assert states[pending.id] == StockReservation.STATE_ACTIVE
    assert states[forever.id] == StockReservation.STATE_ACTIVE
    assert InventoryRecord.objects.get(product=product, warehouse=warehouse).reserved_stock == 3


@pytest.mark.django_db
def test_sync_inventory_reports_corrections():
    product = ProductFactory()
    warehouse = WarehouseFactory()
    stock_lot(product, warehouse, 6, 100)
    InventoryRecord.objects.filter(product=product).update(available_stock=2)

    out = StringIO()
    call_command("sync_inventory", "--product", str(product.id), stdout=out)

    assert f"product={product.id} warehouse={warehouse.id}: 2 -> 6" in out.getvalue()
    assert "corrected: 1" in out.getvalue()
    assert InventoryRecord.objects.get(product=product).available_stock == 6


# EOF
