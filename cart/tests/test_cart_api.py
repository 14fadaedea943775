from decimal import Decimal

import pytest
from cart.models import Cart
from cart.tests.factories import UserFactory
from catalog.tests.factories import ProductFactory
from inventory.tests.factories import WarehouseFactory, stock_lot
from rest_framework.test import APIClient


@pytest.fixture
def client_and_product():
    user = UserFactory()
    client = APIClient()
    client.force_authenticate(user=user)
    product = ProductFactory(sku="TAL-001", price=Decimal("125.00"))
    stock_lot(product, WarehouseFactory(is_main=True), 5, 80)
    return client, user, product


@pytest.mark.django_db
def test_cart_requires_authentication():
    resp = APIClient().get("/api/v1/cart/")
    assert resp.status_code in (401, 403)


@pytest.mark.django_db
def test_cart_detail_initial_empty(client_and_product):
    client, _, _ = client_and_product

    resp = client.get("/api/v1/cart/")

    assert resp.status_code == 200
    body = resp.json()
    assert body["items"] == []
    assert body["units"] == 0
    assert body["subtotal"] == "0.00"


@pytest.mark.django_db
def test_add_update_and_delete_item(client_and_product):
    client, _, product = client_and_product

    r_add = client.post("/api/v1/cart/items/", {"product_id": product.id, "quantity": 2}, format="json")
    assert r_add.status_code == 201
    item_id = r_add.json()["id"]

    body = client.get("/api/v1/cart/").json()
    assert body["items"][0]["sku"] == "TAL-001"
    assert body["items"][0]["line_total"] == "250.00"
    assert body["subtotal"] == "250.00"

    r_upd = client.patch(f"/api/v1/cart/items/{item_id}/", {"quantity": 3}, format="json")
    assert r_upd.status_code == 200
    assert client.get("/api/v1/cart/").json()["units"] == 3

    r_del = client.delete(f"/api/v1/cart/items/{item_id}/delete/")
    assert r_del.status_code == 204
    assert client.delete(f"/api/v1/cart/items/{item_id}/delete/").status_code == 404


@pytest.mark.django_db
def test_add_item_over_stock_conflicts(client_and_product):
    client, _, product = client_and_product

    resp = client.post("/api/v1/cart/items/", {"product_id": product.id, "quantity": 6}, format="json")

    assert resp.status_code == 409
    assert resp.json()["error"] == "insufficient_stock"
    assert resp.json()["available"] == 5


@pytest.mark.django_db
def test_add_item_validation_errors(client_and_product):
    client, _, product = client_and_product

    zero = client.post("/api/v1/cart/items/", {"product_id": product.id, "quantity": 0}, format="json")
    missing = client.post("/api/v1/cart/items/", {"product_id": 999999, "quantity": 1}, format="json")

    assert zero.status_code == 400
    assert missing.status_code == 404


@pytest.mark.django_db
def test_update_unknown_item_is_not_found(client_and_product):
    client, _, _ = client_and_product
    resp = client.patch("/api/v1/cart/items/999999/", {"quantity": 1}, format="json")
    assert resp.status_code == 404


@pytest.mark.django_db
def test_clear_and_abandon(client_and_product):
    client, user, product = client_and_product
    client.post("/api/v1/cart/items/", {"product_id": product.id, "quantity": 1}, format="json")

    assert client.post("/api/v1/cart/clear/").json() == {"status": "cleared"}
    assert client.get("/api/v1/cart/").json()["items"] == []

    client.post("/api/v1/cart/items/", {"product_id": product.id, "quantity": 1}, format="json")
    assert client.post("/api/v1/cart/abandon/").json() == {"status": "abandoned"}
    assert Cart.objects.filter(user=user, status=Cart.STATUS_ABANDONED).count() == 1
