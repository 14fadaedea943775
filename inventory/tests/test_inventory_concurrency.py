import threading
from typing import List

import pytest
from catalog.tests.factories import ProductFactory
from django.db import close_old_connections, connection
from inventory.errors import InsufficientStock
from inventory.models import InventoryRecord, StockReservation
from inventory.services import reserve
from inventory.tests.factories import WarehouseFactory, stock_lot


def _reserve_worker(barrier: threading.Barrier, product_id, warehouse_id, ref, successes: List[str], errors: List):
    close_old_connections()
    barrier.wait()
    try:
        reserve(product=product_id, warehouse=warehouse_id, quantity=3, reference=ref)
        successes.append(ref)
    except InsufficientStock as exc:
        errors.append(exc)
    finally:
        connection.close()


@pytest.mark.django_db(transaction=True)
def test_threaded_competing_reservations_never_overbook():
    if connection.vendor == "sqlite":
        pytest.skip("SQLite lacks real concurrent transactions; skipping threaded test.")
    product = ProductFactory()
    warehouse = WarehouseFactory()
    stock_lot(product, warehouse, 4, 100)

    barrier = threading.Barrier(2)
    successes: List[str] = []
    errors: List[Exception] = []
    threads = [
        threading.Thread(target=_reserve_worker, args=(barrier, product.id, warehouse.id, ref, successes, errors))
        for ref in ("order:1", "order:2")
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    # Exactly one wins; the loser saw the locked row's updated free stock
    assert len(successes) == 1
    assert len(errors) == 1
    assert InventoryRecord.objects.get(product=product, warehouse=warehouse).reserved_stock == 3
    assert StockReservation.objects.filter(state=StockReservation.STATE_ACTIVE).count() == 1


# EOF
