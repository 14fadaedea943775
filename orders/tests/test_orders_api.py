from decimal import Decimal

import pytest
from cart.tests.factories import StaffUserFactory, UserFactory
from catalog.tests.factories import ProductFactory
from inventory.services import release_reservations_for
from inventory.tests.factories import WarehouseFactory, stock_lot
from orders.models import Order
from orders.services import confirm_order
from orders.tests.factories import place_order
from rest_framework.test import APIClient


def _client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def product():
    product = ProductFactory(price=Decimal("100.00"))
    stock_lot(product, WarehouseFactory(name="Main", is_main=True), 20, 60)
    return product


@pytest.mark.django_db
def test_checkout_through_cart_api(product):
    client = _client(UserFactory())
    client.post("/api/v1/cart/items/", {"product_id": product.id, "quantity": 2}, format="json")

    resp = client.post(
        "/api/v1/cart/checkout/",
        {"shipping_address": {"city": "Lima"}, "observations": "Ring twice"},
        format="json",
    )

    assert resp.status_code == 201
    body = resp.json()
    order = Order.objects.get(id=body["order_id"])
    assert body["number"] == order.number
    assert (body["status"], body["currency"], body["total"]) == ("pendiente", "PEN", "236.00")
    assert order.shipping_address == {"city": "Lima"}


@pytest.mark.django_db
def test_checkout_empty_cart_is_bad_request():
    resp = _client(UserFactory()).post("/api/v1/cart/checkout/", {}, format="json")
    assert resp.status_code == 400
    assert resp.json()["error"] == "checkout_error"


@pytest.mark.django_db
def test_customers_only_see_their_orders(product):
    owner = UserFactory()
    mine = place_order(owner, [(product, 1)])
    theirs = place_order(UserFactory(), [(product, 1)])
    client = _client(owner)

    listed = client.get("/api/v1/orders/").json()["results"]
    assert [o["id"] for o in listed] == [mine.id]
    assert client.get(f"/api/v1/orders/{theirs.id}/").status_code == 404
    detail = client.get(f"/api/v1/orders/{mine.id}/").json()
    assert detail["number"] == mine.number
    assert detail["items"][0]["quantity"] == 1
    assert _client(StaffUserFactory()).get(f"/api/v1/orders/{theirs.id}/").status_code == 200


@pytest.mark.django_db
def test_order_list_filters_by_status(product):
    owner = UserFactory()
    pending = place_order(owner, [(product, 1)])
    confirm_order(order=place_order(owner, [(product, 1)]), payment_method="cash")

    listed = _client(owner).get("/api/v1/orders/", {"status": "pendiente"}).json()["results"]

    assert [o["id"] for o in listed] == [pending.id]


@pytest.mark.django_db
def test_confirm_is_staff_only(product):
    order = place_order(UserFactory(), [(product, 1)])
    url = f"/api/v1/orders/{order.id}/confirm/"
    payload = {"payment_method": "card", "transaction_id": "tx-9"}

    assert _client(order.user).post(url, payload, format="json").status_code == 403
    resp = _client(StaffUserFactory()).post(url, payload, format="json")

    assert resp.status_code == 201
    assert resp.json()["number"].startswith("VTA-")
    assert resp.json()["payments"][0]["transaction_id"] == "tx-9"
    again = _client(StaffUserFactory()).post(url, payload, format="json")
    assert again.status_code == 409
    assert again.json()["error"] == "invalid_transition"


@pytest.mark.django_db
def test_customer_cancels_pending_order_only(product):
    owner = UserFactory()
    pending = place_order(owner, [(product, 1)])
    confirmed = place_order(owner, [(product, 1)])
    confirm_order(order=confirmed, payment_method="cash")
    client = _client(owner)

    ok = client.post(f"/api/v1/orders/{pending.id}/cancel/", {"reason": "Duplicate"}, format="json")
    refused = client.post(f"/api/v1/orders/{confirmed.id}/cancel/", {}, format="json")
    staff = _client(StaffUserFactory()).post(f"/api/v1/orders/{confirmed.id}/cancel/", {}, format="json")

    assert ok.status_code == 200
    assert ok.json()["status"] == "cancelado"
    assert refused.status_code == 409
    assert staff.status_code == 200


@pytest.mark.django_db
def test_staff_status_updates(product):
    order = place_order(UserFactory(), [(product, 1)])
    confirm_order(order=order, payment_method="cash")
    client = _client(StaffUserFactory())
    url = f"/api/v1/orders/{order.id}/status/"

    assert client.post(url, {"status": "preparando"}, format="json").status_code == 200
    shipped = client.post(url, {"status": "enviado", "tracking_code": "OLV-55"}, format="json")
    skipped = client.post(url, {"status": "pendiente"}, format="json")
    unknown = client.post(url, {"status": "lost"}, format="json")

    assert shipped.status_code == 200
    assert shipped.json()["tracking_code"] == "OLV-55"
    assert skipped.status_code == 409
    assert unknown.status_code == 400
    assert _client(order.user).post(url, {"status": "entregado"}, format="json").status_code == 403


@pytest.mark.django_db
def test_confirm_with_released_stock_conflicts(product):
    order = place_order(UserFactory(), [(product, 3)])
    release_reservations_for(f"order:{order.id}")

    url = f"/api/v1/orders/{order.id}/confirm/"

    resp = _client(StaffUserFactory()).post(url, {"payment_method": "cash"}, format="json")

    assert resp.status_code == 409
    assert resp.json()["error"] == "reservation_shortfall"
    assert (resp.json()["required"], resp.json()["reserved"]) == (3, 0)
