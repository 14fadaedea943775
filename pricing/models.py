"""Pricing app models.

``Setting`` stores runtime business settings (margins, tax rate, shipping,
currency) as typed key/value pairs grouped by area. ``ExchangeRate`` keeps
the conversion rate of each foreign currency against the base currency.
"""

from decimal import Decimal

from common.choices import SettingType
from django.core.cache import cache
from django.db import models


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Setting(TimeStampedModel):
    TYPE_CHOICES = SettingType.choices

    group = models.CharField(max_length=64)
    key = models.CharField(max_length=64)
    value = models.TextField(blank=True)
    type = models.CharField(max_length=16, choices=TYPE_CHOICES, default=SettingType.STRING)
    description = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ["group", "key"]
        constraints = [
            models.UniqueConstraint(fields=["group", "key"], name="unique_setting_per_group"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.group}.{self.key}={self.value}"

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        cache.delete(f"setting.{self.group}.{self.key}")


class ExchangeRate(TimeStampedModel):
    """Rate of one foreign currency: 1 unit of ``currency_code`` = ``rate`` base units."""

    currency_code = models.CharField(max_length=3, unique=True)
    rate = models.DecimalField(max_digits=12, decimal_places=6)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["currency_code"]
        constraints = [
            models.CheckConstraint(name="exchange_rate_positive", check=models.Q(rate__gt=Decimal("0"))),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"1 {self.currency_code} = {self.rate}"

    def save(self, *args, **kwargs):
        self.currency_code = (self.currency_code or "").upper()
        super().save(*args, **kwargs)
        cache.delete(f"exchange_rate.{self.currency_code}")
