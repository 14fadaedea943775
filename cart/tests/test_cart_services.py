from decimal import Decimal

import pytest
from cart.models import Cart, CartItem
from cart.selectors import cart_totals, get_active_cart_for_user
from cart.services import CartError, abandon_cart, add_item, clear_cart, remove_item, update_item_quantity
from cart.tests.factories import UserFactory
from catalog.tests.factories import ProductFactory
from django.db import IntegrityError, transaction
from django.http import Http404
from inventory.errors import InsufficientStock
from inventory.models import InventoryRecord
from inventory.tests.factories import WarehouseFactory, stock_lot


@pytest.fixture
def product_in_stock():
    product = ProductFactory(price=Decimal("125.00"))
    stock_lot(product, WarehouseFactory(is_main=True), 5, 80)
    stock_lot(product, WarehouseFactory(), 3, 80)
    return product


@pytest.mark.django_db
def test_add_item_snapshots_price_and_reserves_nothing(product_in_stock):
    user = UserFactory()

    item = add_item(user=user, product_id=product_in_stock.id, quantity=2)

    assert item.unit_price == Decimal("125.00")
    assert item.line_total == Decimal("250.00")
    assert not InventoryRecord.objects.filter(reserved_stock__gt=0).exists()


@pytest.mark.django_db
def test_adding_same_product_merges_lines(product_in_stock):
    user = UserFactory()
    add_item(user=user, product_id=product_in_stock.id, quantity=2)

    item = add_item(user=user, product_id=product_in_stock.id, quantity=3)

    assert item.quantity == 5
    assert CartItem.objects.filter(cart__user=user).count() == 1


@pytest.mark.django_db
def test_add_item_checks_stock_across_online_warehouses(product_in_stock):
    user = UserFactory()
    add_item(user=user, product_id=product_in_stock.id, quantity=8)

    with pytest.raises(InsufficientStock) as exc:
        add_item(user=user, product_id=product_in_stock.id, quantity=1)

    assert exc.value.requested == 9
    assert exc.value.available == 8


@pytest.mark.django_db
def test_hidden_warehouses_do_not_count_for_online_sales():
    product = ProductFactory()
    stock_lot(product, WarehouseFactory(visible_online=False), 10, 80)

    with pytest.raises(InsufficientStock):
        add_item(user=UserFactory(), product_id=product.id, quantity=1)


@pytest.mark.django_db
def test_add_item_rejects_inactive_or_missing_products():
    user = UserFactory()
    inactive = ProductFactory(is_active=False)

    with pytest.raises(CartError):
        add_item(user=user, product_id=inactive.id, quantity=1)
    with pytest.raises(Http404):
        add_item(user=user, product_id=999999, quantity=1)
    with pytest.raises(CartError):
        add_item(user=user, product_id=inactive.id, quantity=0)


@pytest.mark.django_db
def test_update_quantity_rechecks_stock_and_refreshes_price(product_in_stock):
    user = UserFactory()
    item = add_item(user=user, product_id=product_in_stock.id, quantity=1)
    product_in_stock.price = Decimal("130.00")
    product_in_stock.save()

    item = update_item_quantity(user=user, item_id=item.id, quantity=4)
    assert (item.quantity, item.unit_price) == (4, Decimal("130.00"))

    with pytest.raises(InsufficientStock):
        update_item_quantity(user=user, item_id=item.id, quantity=9)
    item.refresh_from_db()
    assert item.quantity == 4


@pytest.mark.django_db
def test_users_cannot_touch_other_carts(product_in_stock):
    owner = UserFactory()
    item = add_item(user=owner, product_id=product_in_stock.id, quantity=1)

    with pytest.raises(Http404):
        update_item_quantity(user=UserFactory(), item_id=item.id, quantity=2)
    remove_item(user=UserFactory(), item_id=item.id)

    assert CartItem.objects.filter(id=item.id).exists()


@pytest.mark.django_db
def test_remove_and_clear(product_in_stock):
    user = UserFactory()
    other = ProductFactory()
    stock_lot(other, WarehouseFactory(), 2, 10)
    first = add_item(user=user, product_id=product_in_stock.id, quantity=1)
    add_item(user=user, product_id=other.id, quantity=2)

    remove_item(user=user, item_id=first.id)
    cart = get_active_cart_for_user(user=user)
    assert cart_totals(cart=cart)["units"] == 2

    clear_cart(user=user)
    assert cart_totals(cart=cart) == {"subtotal": Decimal("0.00"), "units": 0}


@pytest.mark.django_db
def test_abandon_cart_empties_and_closes(product_in_stock):
    user = UserFactory()
    add_item(user=user, product_id=product_in_stock.id, quantity=1)
    cart = get_active_cart_for_user(user=user)

    abandon_cart(cart=cart)

    cart.refresh_from_db()
    assert cart.status == Cart.STATUS_ABANDONED
    assert not cart.items.exists()
    assert get_active_cart_for_user(user=user).id != cart.id


@pytest.mark.django_db
def test_one_active_cart_per_user():
    user = UserFactory()
    Cart.objects.create(user=user)

    with pytest.raises(IntegrityError):
        with transaction.atomic():
            Cart.objects.create(user=user)
    Cart.objects.create(user=user, status=Cart.STATUS_ABANDONED)
