"""Cached providers for business settings and exchange rates.

Services receive a provider instead of reading a process-wide cache; the
default instances read through Django's cache framework so they work the
same with the local-memory cache and with Redis.
"""

import json
import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from common.choices import SettingType
from django.conf import settings
from django.core.cache import cache

from .models import ExchangeRate, Setting

logger = logging.getLogger("erpcore.pricing")

_MISSING = object()


class UnknownCurrencyError(LookupError):
    """Raised when no active exchange rate exists for a currency."""

    def __init__(self, currency: str):
        super().__init__(f"No exchange rate configured for {currency}")
        self.currency = currency


def cast_setting_value(value: str, type_: str) -> Any:
    if type_ == SettingType.INTEGER:
        return int(value)
    if type_ == SettingType.DECIMAL:
        try:
            return Decimal(value)
        except InvalidOperation:
            raise ValueError(f"Invalid decimal setting value: {value!r}")
    if type_ == SettingType.BOOLEAN:
        return str(value).strip().lower() in ("1", "true", "yes", "on")
    if type_ == SettingType.JSON:
        return json.loads(value)
    return value


def serialize_setting_value(value: Any, type_: str) -> str:
    if type_ == SettingType.JSON:
        return json.dumps(value)
    if type_ == SettingType.BOOLEAN:
        return "true" if value else "false"
    return str(value)


class SettingsProvider:
    """Typed access to ``Setting`` rows with a read-through cache."""

    def __init__(self, ttl: Optional[int] = None):
        self.ttl = ttl if ttl is not None else getattr(settings, "SETTINGS_CACHE_TTL", 3600)

    @staticmethod
    def cache_key(group: str, key: str) -> str:
        return f"setting.{group}.{key}"

    def get(self, group: str, key: str, default: Any = None) -> Any:
        ck = self.cache_key(group, key)
        cached = cache.get(ck, _MISSING)
        if cached is not _MISSING:
            return cached
        try:
            row = Setting.objects.only("value", "type").get(group=group, key=key)
        except Setting.DoesNotExist:
            return default
        value = cast_setting_value(row.value, row.type)
        cache.set(ck, value, self.ttl)
        return value

    def set(self, group: str, key: str, value: Any, type_: str = SettingType.STRING) -> Setting:
        row, _ = Setting.objects.update_or_create(
            group=group,
            key=key,
            defaults={"value": serialize_setting_value(value, type_), "type": type_},
        )
        cache.delete(self.cache_key(group, key))
        logger.info(
            "pricing.setting_updated",
            extra={"event": "pricing.setting_updated", "group": group, "key": key},
        )
        return row

    def get_decimal(self, group: str, key: str, default) -> Decimal:
        return Decimal(str(self.get(group, key, default)))

    def get_bool(self, group: str, key: str, default: bool) -> bool:
        value = self.get(group, key, default)
        if isinstance(value, str):
            return cast_setting_value(value, SettingType.BOOLEAN)
        return bool(value)


class ExchangeRateProvider:
    """Conversions between the base currency and foreign currencies."""

    def __init__(self, ttl: Optional[int] = None, settings_provider: Optional[SettingsProvider] = None):
        self.ttl = ttl if ttl is not None else getattr(settings, "EXCHANGE_RATE_CACHE_TTL", 3600)
        self.settings_provider = settings_provider or get_settings_provider()

    def base_currency(self) -> str:
        fallback = getattr(settings, "BASE_CURRENCY", "PEN")
        return str(self.settings_provider.get("currency", "default_currency", fallback)).upper()

    def get_rate(self, currency: str) -> Optional[Decimal]:
        code = (currency or "").upper()
        if code == self.base_currency():
            return Decimal("1")
        ck = f"exchange_rate.{code}"
        cached = cache.get(ck, _MISSING)
        if cached is not _MISSING:
            return cached
        rate = (
            ExchangeRate.objects.filter(currency_code=code, is_active=True).values_list("rate", flat=True).first()
        )
        if rate is not None:
            cache.set(ck, rate, self.ttl)
        return rate

    def convert_from_base(self, amount: Decimal, currency: str) -> Decimal:
        """Express a base-currency amount in ``currency`` (2 dp)."""
        rate = self.get_rate(currency)
        if rate is None:
            raise UnknownCurrencyError(currency)
        return (Decimal(amount) / rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    def invalidate(self, currency: str) -> None:
        cache.delete(f"exchange_rate.{(currency or '').upper()}")


_default_settings_provider: Optional[SettingsProvider] = None


def get_settings_provider() -> SettingsProvider:
    global _default_settings_provider
    if _default_settings_provider is None:
        _default_settings_provider = SettingsProvider()
    return _default_settings_provider


def get_exchange_rate_provider() -> ExchangeRateProvider:
    return ExchangeRateProvider(settings_provider=get_settings_provider())
