"""Admin registration for catalog models."""

from django.contrib import admin

from .models import Category, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "parent", "level", "normal_margin_percentage", "min_margin_percentage", "is_active")
    search_fields = ("name", "slug")
    list_filter = ("is_active", "level")
    prepopulated_fields = {"slug": ("name",)}
    readonly_fields = ("level",)


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("sku", "title", "category", "price", "min_stock", "is_active")
    search_fields = ("sku", "title")
    list_filter = ("is_active", "category")
    list_select_related = ("category",)
