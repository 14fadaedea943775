"""Django app configuration for inventory."""

from django.apps import AppConfig


class InventoryConfig(AppConfig):
    """AppConfig for warehouses, lots, stock records and the movement ledger."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "inventory"
