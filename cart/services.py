"""Cart services: line mutations validated against global free stock.

No stock is reserved while shopping; ``orders.services.checkout`` plans and
reserves the whole cart in one transaction.
"""

import logging
from decimal import Decimal

from catalog.models import Product
from django.db import transaction
from django.shortcuts import get_object_or_404
from inventory.errors import InsufficientStock
from inventory.selectors import free_stock_for_product

from .models import Cart, CartItem
from .selectors import get_active_cart_for_user


class CartError(Exception):
    """Raised for cart mutation failures."""

    code = "cart_error"

    def as_dict(self) -> dict:
        return {"error": self.code, "detail": str(self)}


logger = logging.getLogger("erpcore.cart")


def _ensure_available(product: Product, quantity: int) -> None:
    available = free_stock_for_product(product.id, online_only=True)
    if quantity > available:
        raise InsufficientStock(product.id, quantity, available)


@transaction.atomic
def add_item(*, user, product_id: int, quantity: int) -> CartItem:
    """Add a product to the user's cart, or increase the existing line."""

    if quantity <= 0:
        raise CartError("Quantity must be positive")
    cart = get_active_cart_for_user(user=user)
    product = get_object_or_404(Product, id=product_id)
    if not product.is_active:
        raise CartError("Product is not available")

    item = CartItem.objects.select_for_update().filter(cart=cart, product=product).first()
    new_quantity = quantity + (int(item.quantity) if item else 0)
    _ensure_available(product, new_quantity)
    if item is None:
        item = CartItem.objects.create(
            cart=cart,
            product=product,
            quantity=new_quantity,
            unit_price=product.price or Decimal("0.00"),
        )
        event = "cart.item_added"
    else:
        item.quantity = new_quantity
        item.unit_price = product.price or Decimal("0.00")
        item.save(update_fields=["quantity", "unit_price", "updated_at"])
        event = "cart.item_updated"
    logger.info(
        event,
        extra={
            "event": event,
            "cart_id": cart.id,
            "user_id": getattr(user, "id", None),
            "product_id": product.id,
            "quantity": new_quantity,
        },
    )
    return item


@transaction.atomic
def update_item_quantity(*, user, item_id: int, quantity: int) -> CartItem:
    """Set a cart line's quantity, re-checking stock and refreshing the price."""

    if quantity <= 0:
        raise CartError("Quantity must be positive")
    cart = get_active_cart_for_user(user=user)
    item = get_object_or_404(CartItem.objects.select_for_update().select_related("product"), id=item_id, cart=cart)
    _ensure_available(item.product, quantity)
    item.quantity = quantity
    item.unit_price = item.product.price or Decimal("0.00")
    item.save(update_fields=["quantity", "unit_price", "updated_at"])
    logger.info(
        "cart.item_updated",
        extra={
            "event": "cart.item_updated",
            "cart_id": cart.id,
            "user_id": getattr(user, "id", None),
            "product_id": item.product_id,
            "quantity": quantity,
        },
    )
    return item


@transaction.atomic
def remove_item(*, user, item_id: int) -> None:
    cart = get_active_cart_for_user(user=user)
    deleted, _ = CartItem.objects.filter(id=item_id, cart=cart).delete()
    if not deleted:
        return
    logger.info(
        "cart.item_removed",
        extra={
            "event": "cart.item_removed",
            "cart_id": cart.id,
            "user_id": getattr(user, "id", None),
            "item_id": item_id,
        },
    )


@transaction.atomic
def clear_cart(*, user) -> None:
    cart = get_active_cart_for_user(user=user)
    CartItem.objects.filter(cart=cart).delete()
    logger.info(
        "cart.cleared",
        extra={"event": "cart.cleared", "cart_id": cart.id, "user_id": getattr(user, "id", None)},
    )


@transaction.atomic
def abandon_cart(*, cart: Cart) -> None:
    """Empty the cart and mark it abandoned."""

    cart = Cart.objects.select_for_update().get(id=cart.id)
    if cart.status != Cart.STATUS_ACTIVE:
        return
    CartItem.objects.filter(cart=cart).delete()
    cart.status = Cart.STATUS_ABANDONED
    cart.save(update_fields=["status", "updated_at"])
    logger.info(
        "cart.abandoned",
        extra={"event": "cart.abandoned", "cart_id": cart.id, "user_id": cart.user_id},
    )


def mark_ordered(*, cart: Cart) -> None:
    """Empty the cart and close it after a successful checkout."""

    CartItem.objects.filter(cart=cart).delete()
    cart.status = Cart.STATUS_ORDERED
    cart.save(update_fields=["status", "updated_at"])

