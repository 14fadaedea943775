from decimal import Decimal

import pytest
from cart.tests.factories import StaffUserFactory, UserFactory
from catalog.tests.factories import CategoryFactory, ProductFactory
from inventory.tests.factories import WarehouseFactory, stock_lot
from rest_framework.test import APIClient

URL = "/api/v1/pricing/margin-check/"


@pytest.mark.django_db
def test_margin_check_requires_staff():
    client = APIClient()
    client.force_authenticate(user=UserFactory())
    resp = client.post(URL, {"product": ProductFactory().id, "proposed_price": "10.00"}, format="json")
    assert resp.status_code == 403


@pytest.mark.django_db
def test_margin_check_with_explicit_cost():
    product = ProductFactory(category=CategoryFactory(name="Tools", min_margin_percentage=Decimal("20")))
    client = APIClient()
    client.force_authenticate(user=StaffUserFactory())

    resp = client.post(URL, {"product": product.id, "proposed_price": "110.00", "cost": "100"}, format="json")

    assert resp.status_code == 200
    body = resp.json()
    assert body["is_valid"] is False
    assert body["margin"] == "10.00"
    assert body["suggested_min_price"] == "120.00"
    assert body["category"] == "Tools"


@pytest.mark.django_db
def test_margin_check_defaults_to_average_cost():
    product = ProductFactory()
    stock_lot(product, WarehouseFactory(), 4, 80)
    client = APIClient()
    client.force_authenticate(user=StaffUserFactory())

    resp = client.post(URL, {"product": product.id, "proposed_price": "100.00"}, format="json")

    assert resp.status_code == 200
    assert resp.json()["cost"] == "80.0000"
    assert resp.json()["margin"] == "25.00"
    assert resp.json()["is_valid"] is True
