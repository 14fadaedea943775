from decimal import Decimal

import pytest
from catalog.tests.factories import ProductFactory
from inventory.costing import display_cost, weighted_average_cost
from inventory.lots import consume_fifo
from inventory.models import InventoryRecord
from inventory.tests.factories import WarehouseFactory, stock_lot


@pytest.mark.django_db
def test_weighted_average_over_active_lots():
    product = ProductFactory()
    warehouse = WarehouseFactory()
    stock_lot(product, warehouse, 10, 100, days_ago=2)
    stock_lot(product, warehouse, 30, 120, days_ago=1)

    assert weighted_average_cost(product, warehouse) == Decimal("115.0000")


@pytest.mark.django_db
def test_weighted_average_without_lots_is_zero():
    assert weighted_average_cost(ProductFactory()) == Decimal("0")


@pytest.mark.django_db
def test_global_average_spans_warehouses():
    product = ProductFactory()
    stock_lot(product, WarehouseFactory(), 1, 100)
    stock_lot(product, WarehouseFactory(), 2, "100.01")

    assert weighted_average_cost(product) == Decimal("100.0067")
    assert display_cost(weighted_average_cost(product)) == Decimal("100.01")


@pytest.mark.django_db
def test_depleted_lots_leave_the_average():
    product = ProductFactory()
    warehouse = WarehouseFactory()
    stock_lot(product, warehouse, 5, 80, days_ago=2)
    stock_lot(product, warehouse, 5, 120, days_ago=1)

    consume_fifo(product=product, warehouse=warehouse, quantity=5)

    assert weighted_average_cost(product, warehouse) == Decimal("120.0000")


@pytest.mark.django_db
def test_receiving_refreshes_record_average_but_not_sale_price():
    product = ProductFactory()
    warehouse = WarehouseFactory()
    stock_lot(product, warehouse, 10, 100)
    InventoryRecord.objects.filter(product=product, warehouse=warehouse).update(sale_price=Decimal("150.00"))

    stock_lot(product, warehouse, 10, 140)

    record = InventoryRecord.objects.get(product=product, warehouse=warehouse)
    assert record.average_cost == Decimal("120.0000")
    assert record.sale_price == Decimal("150.00")
