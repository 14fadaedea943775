"""Quotations app models.

A ``Quotation`` prices products for a customer before any stock is
reserved. Each ``QuotationDetail`` keeps the unit cost it was priced
against so margins can be audited later.
"""

from decimal import Decimal

from common.choices import QuotationStatus, SourceType
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


class QuotationQuerySet(models.QuerySet):
    def editable(self):
        return self.filter(status=QuotationStatus.DRAFT)

    def overdue(self, today):
        return self.filter(status__in=[QuotationStatus.DRAFT, QuotationStatus.SENT], valid_until__lt=today)


class Quotation(TimeStampedModel):
    STATUS_DRAFT = QuotationStatus.DRAFT
    STATUS_SENT = QuotationStatus.SENT
    STATUS_ACCEPTED = QuotationStatus.ACCEPTED
    STATUS_REJECTED = QuotationStatus.REJECTED
    STATUS_EXPIRED = QuotationStatus.EXPIRED
    STATUS_CONVERTED = QuotationStatus.CONVERTED
    STATUS_CHOICES = QuotationStatus.choices

    code = models.CharField(max_length=32, unique=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="quotations", on_delete=models.PROTECT)
    warehouse = models.ForeignKey("inventory.Warehouse", related_name="quotations", on_delete=models.PROTECT)
    quotation_date = models.DateField()
    valid_until = models.DateField()
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)
    currency = models.CharField(max_length=3, default="PEN")
    exchange_rate = models.DecimalField(max_digits=12, decimal_places=4, default=Decimal("1"))
    customer_name = models.CharField(max_length=200)
    customer_document = models.CharField(max_length=20, blank=True)
    customer_email = models.EmailField(blank=True)
    customer_phone = models.CharField(max_length=32, blank=True)
    subtotal = _money()
    tax = _money()
    shipping_cost = _money()
    total = _money()
    total_margin = _money()
    margin_percentage = models.DecimalField(max_digits=7, decimal_places=2, default=Decimal("0.00"))
    observations = models.TextField(blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    converted_sale = models.ForeignKey(
        "orders.Sale",
        null=True,
        blank=True,
        related_name="quotations",
        on_delete=models.SET_NULL,
    )
    converted_at = models.DateTimeField(null=True, blank=True)

    objects = QuotationQuerySet.as_manager()

    class Meta:
        ordering = ["-id"]
        indexes = [
            models.Index(fields=["status", "valid_until"]),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code} ({self.status})"

    @property
    def is_editable(self) -> bool:
        return self.status == self.STATUS_DRAFT


class QuotationDetail(TimeStampedModel):
    """Quoted line. Amounts are in the quotation currency."""

    SOURCE_WAREHOUSE = SourceType.WAREHOUSE
    SOURCE_SUPPLIER = SourceType.SUPPLIER

    quotation = models.ForeignKey(Quotation, related_name="details", on_delete=models.CASCADE)
    product = models.ForeignKey("catalog.Product", related_name="quotation_details", on_delete=models.PROTECT)
    product_name = models.CharField(max_length=200)
    sku = models.CharField(max_length=64, blank=True)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    discount = _money()
    source_type = models.CharField(max_length=16, choices=SourceType.choices, default=SourceType.WAREHOUSE)
    warehouse = models.ForeignKey(
        "inventory.Warehouse", null=True, blank=True, related_name="quotation_details", on_delete=models.PROTECT
    )
    supplier_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    purchase_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_cost = _money()
    unit_margin = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_margin = _money()
    margin_percentage = models.DecimalField(max_digits=7, decimal_places=2, default=Decimal("0.00"))
    subtotal = _money()
    tax = _money()
    total = _money()

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(name="quotation_detail_quantity_positive", check=models.Q(quantity__gte=1)),
            models.CheckConstraint(name="quotation_detail_price_non_negative", check=models.Q(unit_price__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.product_name} x{self.quantity}"


class QuotationStatusHistory(models.Model):
    quotation = models.ForeignKey(Quotation, related_name="history", on_delete=models.CASCADE)
    status_from = models.CharField(max_length=16, choices=QuotationStatus.choices, blank=True)
    status_to = models.CharField(max_length=16, choices=QuotationStatus.choices)
    note = models.CharField(max_length=255, blank=True)
    actor = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]
        verbose_name_plural = "quotation status history"

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.quotation_id}: {self.status_from or '-'} -> {self.status_to}"
