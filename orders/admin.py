from django.contrib import admin

from .models import Order, OrderItem, OrderStatusHistory, Payment, Sale, SaleItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    raw_id_fields = ("product",)
    readonly_fields = ("product_title", "sku", "unit_price", "subtotal", "tax", "total")


class OrderStatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistory
    extra = 0
    can_delete = False
    readonly_fields = ("status_from", "status_to", "note", "tracking_code", "actor", "created_at")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "number", "status", "user", "currency", "total", "created_at")
    list_filter = ("status", "currency", "created_at")
    search_fields = ("number", "user__email", "tracking_code")
    date_hierarchy = "created_at"
    readonly_fields = ("allocation", "allocation_notes", "base_total", "exchange_rate")
    inlines = [OrderItemInline, OrderStatusHistoryInline]


@admin.register(OrderItem)
class OrderItemAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "product", "quantity", "unit_price", "total")
    search_fields = ("sku", "product_title")


class SaleItemInline(admin.TabularInline):
    model = SaleItem
    extra = 0
    raw_id_fields = ("product",)


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ("id", "number", "order", "user", "currency", "total", "payment_status", "sold_at")
    list_filter = ("payment_status", "currency")
    search_fields = ("number", "order__number")
    date_hierarchy = "sold_at"
    inlines = [SaleItemInline, PaymentInline]
