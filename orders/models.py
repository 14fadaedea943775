"""Orders app models.

An ``Order`` is the checkout snapshot of a cart, priced in the order
currency with the base-currency total kept alongside. Confirming an order
turns it into a ``Sale`` with its ``Payment``.
"""

from decimal import Decimal

from common.choices import OrderStatus, PaymentStatus
from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


def _money(**kwargs):
    return models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"), **kwargs)


class Order(TimeStampedModel):
    """Customer order. Totals are denormalized in the order currency."""

    STATUS_PENDING = OrderStatus.PENDING
    STATUS_CONFIRMED = OrderStatus.CONFIRMED
    STATUS_PREPARING = OrderStatus.PREPARING
    STATUS_SHIPPED = OrderStatus.SHIPPED
    STATUS_DELIVERED = OrderStatus.DELIVERED
    STATUS_CANCELLED = OrderStatus.CANCELLED
    STATUS_CHOICES = OrderStatus.choices

    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="orders", on_delete=models.PROTECT)
    number = models.CharField(max_length=32, unique=True, null=True, blank=True, db_index=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    currency = models.CharField(max_length=3, default="PEN")
    exchange_rate = models.DecimalField(max_digits=12, decimal_places=6, default=Decimal("1"))
    subtotal = _money()
    tax = _money()
    shipping_cost = _money()
    total = _money()
    base_total = _money()
    # [{product_id, allocation: [{warehouse_id, warehouse_name, quantity}]}]
    allocation = models.JSONField(default=list, blank=True)
    allocation_notes = models.TextField(blank=True)
    customer_info = models.JSONField(default=dict, blank=True)
    shipping_address = models.JSONField(default=dict, blank=True)
    observations = models.TextField(blank=True)
    tracking_code = models.CharField(max_length=64, blank=True)

    class Meta:
        ordering = ["-id"]
        indexes = [
            models.Index(fields=["user", "status", "created_at"]),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Order#{self.id} user={self.user_id} status={self.status}"

    @property
    def reservation_reference(self) -> str:
        return f"order:{self.id}"


class OrderItem(TimeStampedModel):
    """Line item within an order, priced in the order currency."""

    order = models.ForeignKey(Order, related_name="items", on_delete=models.CASCADE)
    product = models.ForeignKey("catalog.Product", related_name="order_items", on_delete=models.PROTECT)
    product_title = models.CharField(max_length=200, blank=True)
    sku = models.CharField(max_length=64, blank=True)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    subtotal = _money()
    tax = _money()
    total = _money()

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(name="orderitem_price_non_negative", check=models.Q(unit_price__gte=0)),
            models.CheckConstraint(name="orderitem_quantity_positive", check=models.Q(quantity__gte=1)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"OrderItem#{self.id} order={self.order_id} product={self.product_id} qty={self.quantity}"


class OrderStatusHistory(models.Model):
    order = models.ForeignKey(Order, related_name="history", on_delete=models.CASCADE)
    status_from = models.CharField(max_length=16, choices=OrderStatus.choices, blank=True)
    status_to = models.CharField(max_length=16, choices=OrderStatus.choices)
    note = models.CharField(max_length=255, blank=True)
    tracking_code = models.CharField(max_length=64, blank=True)
    actor = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]
        verbose_name_plural = "order status history"

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.order_id}: {self.status_from or '-'} -> {self.status_to}"


class Sale(TimeStampedModel):
    """Confirmed sale generated from an order."""

    order = models.OneToOneField(Order, related_name="sale", on_delete=models.PROTECT)
    number = models.CharField(max_length=32, unique=True, null=True, blank=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="sales", on_delete=models.PROTECT)
    currency = models.CharField(max_length=3)
    exchange_rate = models.DecimalField(max_digits=12, decimal_places=6, default=Decimal("1"))
    subtotal = _money()
    tax = _money()
    total = _money()
    payment_status = models.CharField(max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    sold_at = models.DateTimeField()
    registered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        related_name="registered_sales",
        on_delete=models.SET_NULL,
    )

    class Meta:
        ordering = ["-id"]

    def __str__(self) -> str:  # pragma: no cover
        return f"Sale {self.number or self.id} order={self.order_id}"


class SaleItem(models.Model):
    sale = models.ForeignKey(Sale, related_name="items", on_delete=models.CASCADE)
    product = models.ForeignKey("catalog.Product", related_name="sale_items", on_delete=models.PROTECT)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    subtotal = _money()
    tax = _money()
    total = _money()

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:  # pragma: no cover
        return f"SaleItem#{self.id} sale={self.sale_id} product={self.product_id} qty={self.quantity}"


class Payment(TimeStampedModel):
    sale = models.ForeignKey(Sale, related_name="payments", on_delete=models.CASCADE)
    method = models.CharField(max_length=32)
    amount = _money()
    currency = models.CharField(max_length=3)
    transaction_id = models.CharField(max_length=128, blank=True)
    status = models.CharField(max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PAID)
    paid_at = models.DateTimeField()

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:  # pragma: no cover
        return f"Payment#{self.id} {self.amount} {self.currency} ({self.method})"
