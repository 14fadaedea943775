"""Django app configuration for pricing."""

from django.apps import AppConfig


class PricingConfig(AppConfig):
    """AppConfig for business settings, exchange rates and margin policy."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "pricing"
