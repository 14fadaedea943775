from decimal import Decimal
from io import StringIO

import pytest
from cart.tests.factories import StaffUserFactory, UserFactory
from catalog.tests.factories import ProductFactory
from common.choices import MovementReference, MovementType, PaymentStatus
from django.core.management import call_command
from inventory.models import InventoryRecord, StockMovement, StockReservation
from inventory.services import release_reservation
from inventory.tests.factories import WarehouseFactory, lot_sum_mismatches, stock_lot
from orders.models import Order, Sale
from orders.services import (
    CheckoutError,
    InvalidOrderTransition,
    ReservationShortfall,
    cancel_order,
    confirm_order,
    update_status,
)
from orders.tests.factories import place_order


@pytest.fixture
def split_order():
    """Pending order for 12 units: 5 from Main (5 @100, 5 @120 lots) and 7 from North."""
    main = WarehouseFactory(name="Main", is_main=True)
    north = WarehouseFactory(name="North")
    product = ProductFactory(price=Decimal("150.00"))
    stock_lot(product, main, 3, 100, days_ago=2)
    stock_lot(product, main, 2, 120, days_ago=1)
    stock_lot(product, north, 10, 90)
    order = place_order(UserFactory(), [(product, 12)])
    return order, product, main, north


def _record(product, warehouse):
    return InventoryRecord.objects.get(product=product, warehouse=warehouse)


@pytest.mark.django_db
def test_confirm_order_creates_sale_and_consumes_fifo(split_order):
    order, product, main, north = split_order
    staff = StaffUserFactory()

    sale = confirm_order(order=order, payment_method="card", transaction_id="tx-1", actor=staff)

    assert sale.number == f"VTA-{sale.id:06d}"
    assert (sale.total, sale.currency, sale.payment_status) == (order.total, "PEN", PaymentStatus.PAID)
    assert sale.registered_by == staff
    payment = sale.payments.get()
    assert (payment.method, payment.amount, payment.transaction_id) == ("card", order.total, "tx-1")
    assert sale.items.get().quantity == 12

    order.refresh_from_db()
    assert order.status == Order.STATUS_CONFIRMED
    states = set(StockReservation.objects.filter(reference=f"order:{order.id}").values_list("state", flat=True))
    assert states == {StockReservation.STATE_CONVERTED}

    main_record, north_record = _record(product, main), _record(product, north)
    assert (main_record.available_stock, main_record.reserved_stock) == (0, 0)
    assert (north_record.available_stock, north_record.reserved_stock) == (3, 0)
    outs = StockMovement.objects.filter(movement_type=MovementType.OUTBOUND, reference_id=str(sale.id))
    assert sorted((m.warehouse_id, m.quantity, m.unit_cost) for m in outs) == sorted(
        [(main.id, -3, Decimal("100")), (main.id, -2, Decimal("120")), (north.id, -7, Decimal("90"))]
    )
    assert all(m.reference_type == MovementReference.SALE for m in outs)
    assert lot_sum_mismatches() == []


@pytest.mark.django_db
def test_confirm_only_pending_orders(split_order):
    order, *_ = split_order
    confirm_order(order=order, payment_method="cash")

    with pytest.raises(InvalidOrderTransition):
        confirm_order(order=order, payment_method="cash")


@pytest.mark.django_db
def test_confirm_without_reservations_fails(split_order):
    order, *_ = split_order
    StockReservation.objects.filter(reference=f"order:{order.id}").update(state=StockReservation.STATE_RELEASED)

    with pytest.raises(CheckoutError):
        confirm_order(order=order, payment_method="cash")
    order.refresh_from_db()
    assert order.status == Order.STATUS_PENDING


@pytest.mark.django_db
def test_confirm_rejects_order_with_partially_released_stock(split_order):
    order, product, main, north = split_order
    held = StockReservation.objects.get(reference=f"order:{order.id}", warehouse=main)
    release_reservation(reservation_id=held.id)

    with pytest.raises(ReservationShortfall) as exc:
        confirm_order(order=order, payment_method="cash")

    assert (exc.value.product_id, exc.value.required, exc.value.reserved) == (product.id, 12, 7)
    assert exc.value.as_dict()["error"] == "reservation_shortfall"
    order.refresh_from_db()
    assert order.status == Order.STATUS_PENDING
    assert not Sale.objects.exists()
    north_record = _record(product, north)
    assert (north_record.available_stock, north_record.reserved_stock) == (10, 7)
    assert lot_sum_mismatches() == []


@pytest.mark.django_db
def test_pending_order_keeps_its_stock_through_expiry_sweep(split_order):
    order, product, main, north = split_order
    held = StockReservation.objects.filter(reference=f"order:{order.id}")
    assert list(held.values_list("expires_at", flat=True)) == [None, None]

    out = StringIO()
    call_command("expire_reservations", stdout=out)

    assert "Expired reservations released: 0" in out.getvalue()
    assert _record(product, main).reserved_stock == 5
    assert _record(product, north).reserved_stock == 7
    sale = confirm_order(order=order, payment_method="cash")
    assert sale.items.get().quantity == 12
    assert _record(product, north).available_stock == 3


@pytest.mark.django_db
def test_cancel_pending_order_releases_stock(split_order):
    order, product, main, north = split_order

    cancel_order(order=order, reason="Customer changed their mind")

    order.refresh_from_db()
    assert order.status == Order.STATUS_CANCELLED
    assert _record(product, main).reserved_stock == 0
    assert _record(product, north).reserved_stock == 0
    releases = StockMovement.objects.filter(reference_type=MovementReference.ORDER, reference_id=str(order.id))
    assert sorted(m.reserved_delta for m in releases) == [-7, -5]
    assert order.history.last().note == "Customer changed their mind"

    with pytest.raises(InvalidOrderTransition):
        cancel_order(order=order)


@pytest.mark.django_db
def test_fulfilment_chain(split_order):
    order, *_ = split_order
    confirm_order(order=order, payment_method="card")

    update_status(order=order, new_status=Order.STATUS_PREPARING)
    update_status(order=order, new_status=Order.STATUS_SHIPPED, tracking_code="OLV-1")
    order = update_status(order=order, new_status=Order.STATUS_DELIVERED, note="Signed by recipient")

    assert order.status == Order.STATUS_DELIVERED
    assert order.tracking_code == "OLV-1"
    assert list(order.history.order_by("id").values_list("status_to", flat=True)) == [
        Order.STATUS_PENDING,
        Order.STATUS_CONFIRMED,
        Order.STATUS_PREPARING,
        Order.STATUS_SHIPPED,
        Order.STATUS_DELIVERED,
    ]
    with pytest.raises(InvalidOrderTransition):
        update_status(order=order, new_status=Order.STATUS_CANCELLED)


@pytest.mark.django_db
def test_invalid_transitions(split_order):
    order, *_ = split_order

    with pytest.raises(InvalidOrderTransition):
        update_status(order=order, new_status=Order.STATUS_SHIPPED)
    with pytest.raises(InvalidOrderTransition):
        update_status(order=order, new_status=Order.STATUS_CONFIRMED)

    order = update_status(order=order, new_status=Order.STATUS_CANCELLED, note="Out of time")
    assert order.status == Order.STATUS_CANCELLED
