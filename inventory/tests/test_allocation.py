import pytest
from catalog.tests.factories import ProductFactory
from inventory.allocation import AllocationPlan, global_free_stock, plan_allocation
from inventory.errors import InsufficientGlobalStock, InventoryError
from inventory.services import reserve
from inventory.tests.factories import WarehouseFactory, stock_lot


@pytest.fixture
def warehouses():
    main = WarehouseFactory(name="Main", is_main=True, picking_priority=0)
    north = WarehouseFactory(name="North", picking_priority=5)
    south = WarehouseFactory(name="South", picking_priority=10)
    return main, north, south


def _shape(plan, product):
    return [(e.warehouse_id, e.quantity) for e in plan.for_product(product.id).entries]


@pytest.mark.django_db
def test_main_warehouse_serves_whole_request(warehouses):
    main, north, _ = warehouses
    product = ProductFactory()
    stock_lot(product, main, 10, 100)
    stock_lot(product, north, 20, 100)

    plan = plan_allocation([(product.id, 10)])

    assert _shape(plan, product) == [(main.id, 10)]
    assert not plan.requires_notes()
    assert plan.notes() == ""


@pytest.mark.django_db
def test_request_is_split_when_main_runs_short(warehouses):
    main, north, _ = warehouses
    product = ProductFactory()
    stock_lot(product, main, 5, 100)
    stock_lot(product, north, 7, 100)

    plan = plan_allocation([(product.id, 12)])

    assert _shape(plan, product) == [(main.id, 5), (north.id, 7)]
    assert plan.requires_notes()
    assert plan.notes() == f"Product {product.id} allocated from Main (5), North (7)"


@pytest.mark.django_db
def test_secondary_warehouses_follow_picking_priority(warehouses):
    main, north, south = warehouses
    product = ProductFactory()
    stock_lot(product, main, 2, 100)
    stock_lot(product, north, 10, 100)
    stock_lot(product, south, 10, 100)

    plan = plan_allocation([(product.id, 6)])

    assert _shape(plan, product) == [(main.id, 2), (south.id, 4)]


@pytest.mark.django_db
def test_reserved_units_are_not_planned(warehouses):
    main, north, _ = warehouses
    product = ProductFactory()
    stock_lot(product, main, 10, 100)
    stock_lot(product, north, 10, 100)
    reserve(product=product, warehouse=main, quantity=8, reference="order:1")

    plan = plan_allocation([(product.id, 5)])

    assert _shape(plan, product) == [(main.id, 2), (north.id, 3)]
    assert global_free_stock(product.id) == 12


@pytest.mark.django_db
def test_insufficient_global_stock_reports_what_exists(warehouses):
    main, north, _ = warehouses
    product = ProductFactory()
    stock_lot(product, main, 3, 100)
    stock_lot(product, north, 4, 100)

    with pytest.raises(InsufficientGlobalStock) as exc:
        plan_allocation([(product.id, 10)])

    assert exc.value.requested == 10
    assert exc.value.available == 7
    assert exc.value.as_dict()["error"] == "insufficient_global_stock"


@pytest.mark.django_db
def test_duplicate_requests_are_merged(warehouses):
    main, _, _ = warehouses
    product = ProductFactory()
    stock_lot(product, main, 10, 100)

    plan = plan_allocation([{"product_id": product.id, "quantity": 3}, (product.id, 4)])

    assert len(plan.products) == 1
    assert plan.for_product(product.id).requested == 7
    assert _shape(plan, product) == [(main.id, 7)]


@pytest.mark.django_db
def test_inactive_warehouses_are_skipped(warehouses):
    main, north, _ = warehouses
    product = ProductFactory()
    stock_lot(product, north, 10, 100)
    north.is_active = False
    north.save()

    with pytest.raises(InsufficientGlobalStock):
        plan_allocation([(product.id, 1)])


@pytest.mark.django_db
def test_explicit_warehouse_list_limits_the_plan(warehouses):
    main, north, _ = warehouses
    product = ProductFactory()
    stock_lot(product, main, 1, 100)
    stock_lot(product, north, 10, 100)

    plan = plan_allocation([(product.id, 4)], warehouses=[north])

    assert _shape(plan, product) == [(north.id, 4)]
    assert plan.main_warehouse_id is None
    assert plan.requires_notes()


def test_non_positive_quantity_is_rejected():
    with pytest.raises(InventoryError):
        plan_allocation([(1, 0)], warehouses=[])


@pytest.mark.django_db
def test_plan_survives_json_storage(warehouses):
    main, north, _ = warehouses
    product = ProductFactory()
    stock_lot(product, main, 5, 100)
    stock_lot(product, north, 7, 100)
    plan = plan_allocation([(product.id, 12)])

    restored = AllocationPlan.from_json(plan.to_json(), main_warehouse_id=main.id)

    assert restored.to_json() == plan.to_json()
    assert restored.notes() == plan.notes()
    assert [(pid, e.warehouse_id) for pid, e in restored.entries()] == [
        (product.id, main.id),
        (product.id, north.id),
    ]


# EOF
