"""Django app configuration for quotations."""

from django.apps import AppConfig


class QuotationsConfig(AppConfig):
    """AppConfig for customer quotations priced against lot costs."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "quotations"
