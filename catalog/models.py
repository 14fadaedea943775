"""Catalog app models.

Defines the catalog entities the stock core depends on: a category tree
(at most three levels) carrying the margin policy, and sellable products.
"""

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

MAX_CATEGORY_LEVEL = 3


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Category(TimeStampedModel):
    """Hierarchical product categorization with inheritable margins.

    A NULL or zero margin means "inherit from the nearest ancestor that
    defines one"; see ``pricing.margins`` for the resolution rules.
    """

    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=140, unique=True)
    description = models.TextField(blank=True)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        related_name="children",
        on_delete=models.PROTECT,
    )
    level = models.PositiveSmallIntegerField(default=1, editable=False)
    is_active = models.BooleanField(default=True, db_index=True)
    sort_order = models.IntegerField(default=0)
    normal_margin_percentage = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    min_margin_percentage = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)

    class Meta:
        ordering = ["sort_order", "name"]
        constraints = [
            models.CheckConstraint(
                name="category_level_range",
                check=models.Q(level__gte=1, level__lte=MAX_CATEGORY_LEVEL),
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.name

    def clean(self):
        if self.parent_id and self.parent_id == self.id:
            raise ValidationError("A category cannot be its own parent.")
        if self.parent is not None and self.parent.level >= MAX_CATEGORY_LEVEL:
            raise ValidationError(f"Categories can be nested at most {MAX_CATEGORY_LEVEL} levels deep.")

    def save(self, *args, **kwargs):
        self.clean()
        self.level = (self.parent.level + 1) if self.parent is not None else 1
        super().save(*args, **kwargs)


class Product(TimeStampedModel):
    """Sellable item. Stock lives per warehouse in ``inventory``."""

    sku = models.CharField(max_length=64, unique=True)
    title = models.CharField(max_length=200)
    category = models.ForeignKey(
        Category,
        null=True,
        blank=True,
        related_name="products",
        on_delete=models.SET_NULL,
    )
    min_stock = models.PositiveIntegerField(default=0)
    # Base-currency list price used to price cart lines
    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        ordering = ["title"]
        constraints = [
            models.CheckConstraint(name="product_price_non_negative", check=models.Q(price__gte=0)),
        ]
        indexes = [
            models.Index(fields=["category", "is_active"]),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.title} [{self.sku}]"
