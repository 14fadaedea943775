"""Admin registrations for pricing settings and exchange rates."""

from django.contrib import admin

from .models import ExchangeRate, Setting


@admin.register(Setting)
class SettingAdmin(admin.ModelAdmin):
    list_display = ("group", "key", "value", "type", "updated_at")
    list_filter = ("group", "type")
    search_fields = ("group", "key", "description")
    ordering = ("group", "key")


@admin.register(ExchangeRate)
class ExchangeRateAdmin(admin.ModelAdmin):
    list_display = ("currency_code", "rate", "is_active", "updated_at")
    list_filter = ("is_active",)
    search_fields = ("currency_code",)
