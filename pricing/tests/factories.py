from decimal import Decimal

from factory.django import DjangoModelFactory
from pricing.models import ExchangeRate


class ExchangeRateFactory(DjangoModelFactory):
    class Meta:
        model = ExchangeRate
        django_get_or_create = ("currency_code",)

    currency_code = "USD"
    rate = Decimal("3.750000")
    is_active = True
