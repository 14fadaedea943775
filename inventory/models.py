"""Inventory models (multi-warehouse, lot-based).

Stock is tracked per (product, warehouse) in ``InventoryRecord`` and backed
by purchase batches (``Lot``) consumed FIFO. Every change is recorded in the
append-only ``StockMovement`` ledger.
"""

from decimal import Decimal

from common.choices import LotStatus, MovementReference, MovementType, ReservationState
from django.conf import settings
from django.db import models, transaction


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class WarehouseQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def visible_online(self):
        return self.filter(visible_online=True)

    def by_priority(self):
        """Main warehouse first, then picking priority (high first), then id."""
        return self.order_by("-is_main", "-picking_priority", "id")


class Warehouse(TimeStampedModel):
    name = models.CharField(max_length=120)
    address = models.CharField(max_length=255, blank=True)
    is_main = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True, db_index=True)
    visible_online = models.BooleanField(default=True)
    picking_priority = models.IntegerField(default=0)

    objects = WarehouseQuerySet.as_manager()

    class Meta:
        ordering = ["-is_main", "-picking_priority", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["is_main"],
                condition=models.Q(is_main=True),
                name="single_main_warehouse",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.name

    def make_main(self) -> None:
        """Flag this warehouse as the main one, clearing the previous main."""
        with transaction.atomic():
            Warehouse.objects.filter(is_main=True).exclude(id=self.id).update(is_main=False)
            self.is_main = True
            self.save(update_fields=["is_main", "updated_at"])


class Lot(TimeStampedModel):
    """One acquisition of stock with its own cost basis (purchase batch)."""

    STATUS_ACTIVE = LotStatus.ACTIVE
    STATUS_DEPLETED = LotStatus.DEPLETED
    STATUS_CHOICES = LotStatus.choices

    product = models.ForeignKey("catalog.Product", related_name="lots", on_delete=models.PROTECT)
    warehouse = models.ForeignKey(Warehouse, related_name="lots", on_delete=models.PROTECT)
    batch_code = models.CharField(max_length=64, unique=True)
    quantity_purchased = models.PositiveIntegerField()
    quantity_available = models.PositiveIntegerField()
    purchase_price = models.DecimalField(max_digits=12, decimal_places=4)
    distribution_price = models.DecimalField(max_digits=12, decimal_places=4)
    acquired_on = models.DateField()
    expires_on = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    purchase_reference = models.CharField(max_length=64, blank=True)
    source_lot = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        related_name="transferred_lots",
        on_delete=models.PROTECT,
    )
    origin_note = models.CharField(max_length=255, blank=True)

    class Meta:
        db_table = "purchase_batches"
        ordering = ["acquired_on", "id"]
        constraints = [
            models.CheckConstraint(
                name="lot_available_le_purchased",
                check=models.Q(quantity_available__lte=models.F("quantity_purchased")),
            ),
            models.CheckConstraint(name="lot_purchased_positive", check=models.Q(quantity_purchased__gt=0)),
            models.CheckConstraint(
                name="lot_depleted_iff_empty",
                check=(
                    models.Q(status=LotStatus.DEPLETED, quantity_available=0)
                    | (models.Q(status=LotStatus.ACTIVE) & ~models.Q(quantity_available=0))
                ),
            ),
        ]
        indexes = [
            models.Index(fields=["product", "warehouse", "status"]),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Lot {self.batch_code} ({self.quantity_available}/{self.quantity_purchased})"

    @property
    def total_value(self) -> Decimal:
        return Decimal(int(self.quantity_available)) * self.distribution_price


class InventoryRecord(TimeStampedModel):
    """Denormalized stock counters per product and warehouse.

    ``available_stock`` mirrors the sum of active lots; ``reserved_stock`` is
    the part of it soft-claimed by pending orders.
    """

    product = models.ForeignKey("catalog.Product", related_name="inventory_records", on_delete=models.PROTECT)
    warehouse = models.ForeignKey(Warehouse, related_name="inventory_records", on_delete=models.PROTECT)
    available_stock = models.IntegerField(default=0)
    reserved_stock = models.IntegerField(default=0)
    average_cost = models.DecimalField(max_digits=12, decimal_places=4, default=Decimal("0"))
    sale_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    last_movement_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["product_id", "warehouse_id"]
        constraints = [
            models.UniqueConstraint(fields=["product", "warehouse"], name="unique_inventory_per_warehouse"),
            models.CheckConstraint(name="available_non_negative", check=models.Q(available_stock__gte=0)),
            models.CheckConstraint(name="reserved_non_negative", check=models.Q(reserved_stock__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Inventory<{self.product_id}@{self.warehouse_id}> a={self.available_stock} r={self.reserved_stock}"

    @property
    def free_stock(self) -> int:
        return max(0, int(self.available_stock) - int(self.reserved_stock))


class StockMovementQuerySet(models.QuerySet):
    def delete(self):
        raise TypeError("Stock movements are append-only")

    def update(self, **kwargs):
        raise TypeError("Stock movements are append-only")


class StockMovement(models.Model):
    """Append-only ledger entry for a stock change.

    ``quantity`` is the signed change to available stock; ``reserved_delta``
    the signed change to reserved stock.
    """

    TYPE_INBOUND = MovementType.INBOUND
    TYPE_OUTBOUND = MovementType.OUTBOUND
    TYPE_TRANSFER = MovementType.TRANSFER
    TYPE_ADJUSTMENT = MovementType.ADJUSTMENT
    TYPE_CHOICES = MovementType.choices

    product = models.ForeignKey("catalog.Product", related_name="movements", on_delete=models.PROTECT)
    warehouse = models.ForeignKey(Warehouse, related_name="movements", on_delete=models.PROTECT)
    lot = models.ForeignKey(Lot, null=True, blank=True, related_name="movements", on_delete=models.PROTECT)
    movement_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    quantity = models.IntegerField()
    reserved_delta = models.IntegerField(default=0)
    unit_cost = models.DecimalField(max_digits=12, decimal_places=4, default=Decimal("0"))
    reference_type = models.CharField(max_length=32, choices=MovementReference.choices, blank=True)
    reference_id = models.CharField(max_length=64, blank=True)
    actor = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL)
    notes = models.CharField(max_length=255, blank=True)
    moved_at = models.DateTimeField(db_index=True)

    objects = StockMovementQuerySet.as_manager()

    class Meta:
        ordering = ["-moved_at", "-id"]
        constraints = [
            models.CheckConstraint(
                name="movement_changes_something",
                check=~models.Q(quantity=0) | ~models.Q(reserved_delta=0),
            ),
        ]
        indexes = [
            models.Index(fields=["product", "warehouse", "moved_at"]),
            models.Index(fields=["reference_type", "reference_id"]),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.movement_type} {self.quantity} {self.product_id}@{self.warehouse_id}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise TypeError("Stock movements are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise TypeError("Stock movements are append-only")


class StockReservation(TimeStampedModel):
    STATE_ACTIVE = ReservationState.ACTIVE
    STATE_RELEASED = ReservationState.RELEASED
    STATE_CONVERTED = ReservationState.CONVERTED
    STATE_CHOICES = ReservationState.choices

    product = models.ForeignKey("catalog.Product", on_delete=models.PROTECT)
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT)
    quantity = models.IntegerField()
    reference = models.CharField(max_length=120)
    state = models.CharField(max_length=16, choices=STATE_CHOICES, default=STATE_ACTIVE)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "id"]
        constraints = [
            models.CheckConstraint(name="reservation_positive_qty", check=models.Q(quantity__gt=0)),
        ]
        indexes = [
            models.Index(fields=["product", "warehouse"]),
            models.Index(fields=["expires_at"]),
            models.Index(fields=["reference", "state"]),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Reservation<{self.product_id}@{self.warehouse_id}> qty={self.quantity} state={self.state}"


# EOF
