"""Order services: checkout, confirmation and the order status machine."""

import logging
from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from cart.models import Cart
from cart.services import mark_ordered
from common.choices import MovementReference, PaymentStatus
from django.db import transaction
from django.utils import timezone
from inventory.allocation import global_free_stock, plan_allocation
from inventory.errors import InsufficientStock
from inventory.models import StockReservation
from inventory.selectors import list_active_reservations, sellable_warehouses
from inventory.services import convert_reservation, release_reservations_for, reserve_allocation
from pricing.providers import ExchangeRateProvider, SettingsProvider, get_settings_provider

from .models import Order, OrderItem, OrderStatusHistory, Payment, Sale, SaleItem

logger = logging.getLogger("erpcore.orders")

DEFAULT_IGV_RATE = Decimal("0.18")
TWO_PLACES = Decimal("0.01")

ALLOWED_TRANSITIONS = {
    Order.STATUS_PENDING: {Order.STATUS_CONFIRMED, Order.STATUS_CANCELLED},
    Order.STATUS_CONFIRMED: {Order.STATUS_PREPARING, Order.STATUS_CANCELLED},
    Order.STATUS_PREPARING: {Order.STATUS_SHIPPED, Order.STATUS_CANCELLED},
    Order.STATUS_SHIPPED: {Order.STATUS_DELIVERED, Order.STATUS_CANCELLED},
    Order.STATUS_DELIVERED: set(),
    Order.STATUS_CANCELLED: set(),
}


class CheckoutError(Exception):
    code = "checkout_error"

    def as_dict(self) -> dict:
        return {"error": self.code, "detail": str(self)}


class ReservationShortfall(CheckoutError):
    """Active reservations of a pending order no longer cover its lines."""

    code = "reservation_shortfall"

    def __init__(self, order_number: str, product_id: int, required: int, reserved: int):
        super().__init__(
            f"Order {order_number} has {reserved} of {required} units of product {product_id} reserved"
        )
        self.product_id = product_id
        self.required = required
        self.reserved = reserved

    def as_dict(self) -> dict:
        body = super().as_dict()
        body.update(product_id=self.product_id, required=self.required, reserved=self.reserved)
        return body


class InvalidOrderTransition(Exception):
    code = "invalid_transition"

    def __init__(self, current: str, target: str, detail: str = ""):
        super().__init__(detail or f"Cannot move order from {current} to {target}")
        self.current = current
        self.target = target

    def as_dict(self) -> dict:
        return {"error": self.code, "detail": str(self), "current": self.current, "target": self.target}


def _q(amount) -> Decimal:
    return Decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def order_number(order: Order) -> str:
    return f"ORD-{int(order.id):06d}"


def _actor(actor):
    return actor if getattr(actor, "is_authenticated", False) else None


def _record_transition(order: Order, prev: str, new: str, *, note: str = "", tracking_code: str = "", actor=None):
    OrderStatusHistory.objects.create(
        order=order,
        status_from=prev,
        status_to=new,
        note=(note or "")[:255],
        tracking_code=tracking_code or "",
        actor=_actor(actor),
    )
    logger.info(
        "order_status_changed",
        extra={
            "event": "order_status_changed",
            "order_id": order.id,
            "user_id": order.user_id,
            "status_from": prev,
            "status_to": new,
        },
    )


def _transition(order: Order, new_status: str, *, note: str = "", tracking_code: str = "", actor=None) -> Order:
    prev = order.status
    if new_status not in ALLOWED_TRANSITIONS.get(prev, set()):
        raise InvalidOrderTransition(prev, new_status)
    order.status = new_status
    fields = ["status", "updated_at"]
    if tracking_code:
        order.tracking_code = tracking_code
        fields.append("tracking_code")
    order.save(update_fields=fields)
    _record_transition(order, prev, new_status, note=note, tracking_code=tracking_code, actor=actor)
    return order


@transaction.atomic
def checkout(
    *,
    cart: Cart,
    customer_info: Optional[dict] = None,
    shipping_address: Optional[dict] = None,
    currency: Optional[str] = None,
    observations: str = "",
    actor=None,
    settings_provider: Optional[SettingsProvider] = None,
    rates: Optional[ExchangeRateProvider] = None,
) -> Order:
    """Turn the cart into a pending order with its stock reserved.

    Plans the allocation over online warehouses, reserves every entry under
    row locks, prices the order in ``currency`` and closes the cart. Any
    failure rolls the whole checkout back.
    """

    provider = settings_provider or get_settings_provider()
    rates = rates or ExchangeRateProvider(settings_provider=provider)

    cart = Cart.objects.select_for_update().get(id=cart.id)
    if cart.status != Cart.STATUS_ACTIVE:
        raise CheckoutError("Cart is not active")
    items = list(cart.items.select_related("product").order_by("product_id"))
    if not items:
        raise CheckoutError("Cart is empty")

    base_currency = rates.base_currency()
    currency = (currency or base_currency).upper()
    rate = rates.get_rate(currency)
    if rate is None:
        raise CheckoutError(f"No exchange rate configured for {currency}")

    warehouses = list(sellable_warehouses(online_only=True))
    for item in items:
        available = global_free_stock(item.product_id, warehouses)
        if int(item.quantity) > available:
            raise InsufficientStock(item.product_id, int(item.quantity), available)

    plan = plan_allocation([(i.product_id, i.quantity) for i in items], warehouses)
    # Held until the order is confirmed or cancelled
    reservations = reserve_allocation(plan=plan, reference=f"cart:{cart.id}")

    igv_rate = provider.get_decimal("sales", "igv_rate", DEFAULT_IGV_RATE)
    shipping_base = _q(provider.get_decimal("ecommerce", "default_shipping_cost", Decimal("0")))
    subtotal_base = _q(sum((i.unit_price * int(i.quantity) for i in items), Decimal("0")))
    tax_base = _q(subtotal_base * igv_rate)
    base_total = subtotal_base + tax_base + shipping_base

    lines = []
    for item in items:
        unit_price = rates.convert_from_base(item.unit_price, currency)
        line_subtotal = _q(unit_price * int(item.quantity))
        lines.append((item, unit_price, line_subtotal, _q(line_subtotal * igv_rate)))
    # The header is the sum of its lines in the order currency
    subtotal = sum((line[2] for line in lines), Decimal("0.00"))
    tax = sum((line[3] for line in lines), Decimal("0.00"))
    shipping_cost = rates.convert_from_base(shipping_base, currency)

    order = Order.objects.create(
        user=cart.user,
        status=Order.STATUS_PENDING,
        currency=currency,
        exchange_rate=rate,
        subtotal=subtotal,
        tax=tax,
        shipping_cost=shipping_cost,
        total=subtotal + tax + shipping_cost,
        base_total=base_total,
        allocation=plan.to_json(),
        allocation_notes=plan.notes(),
        customer_info=customer_info or {},
        shipping_address=shipping_address or {},
        observations=observations or "",
    )
    order.number = order_number(order)
    order.save(update_fields=["number"])

    for item, unit_price, line_subtotal, line_tax in lines:
        OrderItem.objects.create(
            order=order,
            product=item.product,
            product_title=item.product.title,
            sku=item.product.sku,
            quantity=item.quantity,
            unit_price=unit_price,
            subtotal=line_subtotal,
            tax=line_tax,
            total=line_subtotal + line_tax,
        )

    StockReservation.objects.filter(id__in=[r.id for r in reservations]).update(
        reference=order.reservation_reference
    )
    mark_ordered(cart=cart)
    _record_transition(order, "", Order.STATUS_PENDING, note="Order created from cart", actor=actor)
    logger.info(
        "order.checked_out",
        extra={
            "event": "order.checked_out",
            "order_id": order.id,
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "currency": currency,
            "total": str(order.total),
            "reservations": len(reservations),
            "split": plan.requires_notes(),
        },
    )
    return order


@transaction.atomic
def confirm_order(*, order: Order, payment_method: str, transaction_id: Optional[str] = None, actor=None) -> Sale:
    """Record payment for a pending order and consume its reserved stock."""

    order = Order.objects.select_for_update().get(id=order.id)
    if order.status != Order.STATUS_PENDING:
        raise InvalidOrderTransition(order.status, Order.STATUS_CONFIRMED)
    reservations = list_active_reservations(order.reservation_reference)
    reserved = defaultdict(int)
    for res in reservations:
        reserved[res.product_id] += int(res.quantity)
    required = defaultdict(int)
    for item in order.items.all():
        required[item.product_id] += int(item.quantity)
    for product_id, quantity in sorted(required.items()):
        if reserved[product_id] < quantity:
            raise ReservationShortfall(order.number, product_id, quantity, reserved[product_id])

    now = timezone.now()
    sale = Sale.objects.create(
        order=order,
        user=order.user,
        currency=order.currency,
        exchange_rate=order.exchange_rate,
        subtotal=order.subtotal,
        tax=order.tax,
        total=order.total,
        payment_status=PaymentStatus.PAID,
        sold_at=now,
        registered_by=_actor(actor),
    )
    sale.number = f"VTA-{int(sale.id):06d}"
    sale.save(update_fields=["number"])
    SaleItem.objects.bulk_create(
        [
            SaleItem(
                sale=sale,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                subtotal=item.subtotal,
                tax=item.tax,
                total=item.total,
            )
            for item in order.items.all()
        ]
    )
    for res in reservations:
        convert_reservation(reservation_id=res.id, sale_id=sale.id, actor=actor)
    Payment.objects.create(
        sale=sale,
        method=payment_method,
        amount=order.total,
        currency=order.currency,
        transaction_id=transaction_id or "",
        paid_at=now,
    )
    _transition(
        order,
        Order.STATUS_CONFIRMED,
        note=f"Payment received, sale {sale.number}",
        actor=actor,
    )
    logger.info(
        "order.confirmed",
        extra={"event": "order.confirmed", "order_id": order.id, "sale_id": sale.id, "method": payment_method},
    )
    return sale


@transaction.atomic
def cancel_order(*, order: Order, reason: str = "", actor=None) -> Order:
    """Cancel an order and give back any stock still reserved for it."""

    order = Order.objects.select_for_update().get(id=order.id)
    if order.status in (Order.STATUS_DELIVERED, Order.STATUS_CANCELLED):
        raise InvalidOrderTransition(order.status, Order.STATUS_CANCELLED)
    released = release_reservations_for(
        order.reservation_reference,
        reference_type=MovementReference.ORDER,
        reference_id=order.id,
        actor=actor,
    )
    _transition(order, Order.STATUS_CANCELLED, note=reason or "Order cancelled", actor=actor)
    logger.info(
        "order.cancelled",
        extra={"event": "order.cancelled", "order_id": order.id, "released_reservations": released},
    )
    return order


@transaction.atomic
def update_status(*, order: Order, new_status: str, note: str = "", tracking_code: str = "", actor=None) -> Order:
    """Move an order along the fulfilment chain.

    Confirmation and cancellation have side effects and go through
    ``confirm_order`` and ``cancel_order``.
    """

    if new_status == Order.STATUS_CANCELLED:
        return cancel_order(order=order, reason=note, actor=actor)
    order = Order.objects.select_for_update().get(id=order.id)
    if new_status == Order.STATUS_CONFIRMED:
        raise InvalidOrderTransition(
            order.status, new_status, detail="Orders are confirmed by registering their payment"
        )
    return _transition(order, new_status, note=note, tracking_code=tracking_code, actor=actor)
