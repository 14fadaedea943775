from decimal import Decimal

import pytest
from common.choices import SettingType
from django.test import override_settings
from pricing.models import ExchangeRate, Setting
from pricing.providers import ExchangeRateProvider, SettingsProvider, UnknownCurrencyError
from pricing.tests.factories import ExchangeRateFactory


@pytest.mark.django_db
def test_settings_are_cast_by_type():
    provider = SettingsProvider()
    Setting.objects.create(group="sales", key="igv_rate", value="0.18", type=SettingType.DECIMAL)
    Setting.objects.create(group="cart", key="max_lines", value="50", type=SettingType.INTEGER)
    Setting.objects.create(group="margins", key="alert_low_margin", value="false", type=SettingType.BOOLEAN)
    Setting.objects.create(group="ecommerce", key="carriers", value='["olva", "shalom"]', type=SettingType.JSON)

    assert provider.get("sales", "igv_rate") == Decimal("0.18")
    assert provider.get("cart", "max_lines") == 50
    assert provider.get("margins", "alert_low_margin") is False
    assert provider.get("ecommerce", "carriers") == ["olva", "shalom"]
    assert provider.get("sales", "missing", "fallback") == "fallback"


@pytest.mark.django_db
def test_settings_are_cached_until_saved():
    provider = SettingsProvider()
    row = provider.set("sales", "igv_rate", "0.18", SettingType.DECIMAL)
    assert provider.get_decimal("sales", "igv_rate", "0") == Decimal("0.18")

    Setting.objects.filter(id=row.id).update(value="0.10")
    assert provider.get_decimal("sales", "igv_rate", "0") == Decimal("0.18")

    row.refresh_from_db()
    row.save()
    assert provider.get_decimal("sales", "igv_rate", "0") == Decimal("0.10")


@pytest.mark.django_db
def test_bool_helper_accepts_string_defaults():
    provider = SettingsProvider()
    assert provider.get_bool("margins", "alert_low_margin", True) is True
    assert provider.get_bool("margins", "alert_low_margin", "no") is False


@pytest.mark.django_db
def test_convert_from_base_divides_by_rate():
    ExchangeRateFactory(currency_code="USD", rate=Decimal("3.75"))
    rates = ExchangeRateProvider()

    assert rates.get_rate("usd") == Decimal("3.75")
    assert rates.convert_from_base(Decimal("375.00"), "USD") == Decimal("100.00")
    assert rates.convert_from_base(Decimal("10.00"), "USD") == Decimal("2.67")


@pytest.mark.django_db
def test_base_currency_converts_at_par():
    rates = ExchangeRateProvider()
    assert rates.base_currency() == "PEN"
    assert rates.get_rate("PEN") == Decimal("1")
    assert rates.convert_from_base(Decimal("12.345"), "PEN") == Decimal("12.35")


@pytest.mark.django_db
@override_settings(BASE_CURRENCY="USD")
def test_base_currency_setting_overrides_django_setting():
    provider = SettingsProvider()
    rates = ExchangeRateProvider(settings_provider=provider)
    assert rates.base_currency() == "USD"

    provider.set("currency", "default_currency", "pen")
    assert rates.base_currency() == "PEN"


@pytest.mark.django_db
def test_unknown_or_inactive_currency_cannot_be_converted():
    ExchangeRateFactory(currency_code="EUR", rate=Decimal("4.1"), is_active=False)
    rates = ExchangeRateProvider()

    assert rates.get_rate("EUR") is None
    with pytest.raises(UnknownCurrencyError):
        rates.convert_from_base(Decimal("1"), "EUR")


@pytest.mark.django_db
def test_rate_changes_invalidate_cache():
    rate = ExchangeRateFactory(currency_code="usd", rate=Decimal("3.75"))
    rates = ExchangeRateProvider()
    assert rate.currency_code == "USD"
    assert rates.get_rate("USD") == Decimal("3.75")

    ExchangeRate.objects.filter(id=rate.id).update(rate=Decimal("3.80"))
    assert rates.get_rate("USD") == Decimal("3.75")
    rates.invalidate("usd")
    assert rates.get_rate("USD") == Decimal("3.80")
