"""Admin registration for cart models.

Carts are shown with their lines inline for support. Abandoning from the
admin goes through the same service as the API.
"""

from django.contrib import admin, messages

from .models import Cart, CartItem
from .services import abandon_cart


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0
    fields = ("product", "quantity", "unit_price", "created_at", "updated_at")
    readonly_fields = ("created_at", "updated_at")
    raw_id_fields = ("product",)


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "status", "updated_at", "created_at")
    list_filter = ("status",)
    search_fields = ("user__username", "user__email")
    ordering = ("-updated_at",)
    readonly_fields = ("created_at", "updated_at")
    inlines = [CartItemInline]
    list_select_related = ("user",)
    actions = ["action_abandon_cart"]

    @admin.action(description="Abandon cart (empty it and mark abandoned)")
    def action_abandon_cart(self, request, queryset):
        count = 0
        for cart in queryset.filter(status=Cart.STATUS_ACTIVE):
            abandon_cart(cart=cart)
            count += 1
        messages.success(request, f"Abandoned {count} cart(s).")


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ("id", "cart", "product", "quantity", "unit_price", "updated_at")
    search_fields = ("product__sku", "cart__user__email")
    ordering = ("id",)
    readonly_fields = ("created_at", "updated_at")
    raw_id_fields = ("cart", "product")


# EOF
