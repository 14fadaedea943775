"""Admin registrations for inventory app."""

from django.contrib import admin, messages

from .models import InventoryRecord, Lot, StockMovement, StockReservation, Warehouse
from .services import release_reservation, sync_with_lots


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "is_main", "is_active", "visible_online", "picking_priority")
    list_filter = ("is_active", "visible_online")
    search_fields = ("name",)

    @admin.action(description="Make main warehouse")
    def action_make_main(self, request, queryset):
        if queryset.count() != 1:
            messages.error(request, "Select exactly one warehouse.")
            return
        queryset.first().make_main()
        messages.success(request, "Main warehouse updated.")

    actions = ["action_make_main"]


@admin.register(Lot)
class LotAdmin(admin.ModelAdmin):
    list_display = (
        "batch_code",
        "product",
        "warehouse",
        "quantity_available",
        "quantity_purchased",
        "purchase_price",
        "acquired_on",
        "status",
    )
    list_filter = ("status", "warehouse")
    search_fields = ("batch_code", "product__sku", "purchase_reference")
    raw_id_fields = ("product", "source_lot")
    readonly_fields = ("quantity_available", "status", "source_lot", "created_at", "updated_at")


@admin.register(InventoryRecord)
class InventoryRecordAdmin(admin.ModelAdmin):
    list_display = ("id", "product", "warehouse", "available_stock", "reserved_stock", "average_cost", "sale_price")
    list_filter = ("warehouse",)
    search_fields = ("product__sku", "product__title")
    raw_id_fields = ("product",)
    readonly_fields = ("available_stock", "reserved_stock", "average_cost", "last_movement_at")

    @admin.action(description="Reconcile with lots")
    def action_sync(self, request, queryset):
        corrected = 0
        for record in queryset:
            corrected += sync_with_lots(product=record.product_id, warehouse=record.warehouse_id).corrected
        messages.success(request, f"Reconciled {queryset.count()} record(s); {corrected} corrected.")

    actions = ["action_sync"]


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "product",
        "warehouse",
        "movement_type",
        "quantity",
        "reserved_delta",
        "reference_type",
        "reference_id",
        "moved_at",
    )
    list_filter = ("movement_type", "reference_type")
    search_fields = ("product__sku", "reference_id")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockReservation)
class StockReservationAdmin(admin.ModelAdmin):
    list_display = ("id", "product", "warehouse", "quantity", "state", "reference", "expires_at", "created_at")
    list_filter = ("state",)
    search_fields = ("product__sku", "reference")

    @admin.action(description="Release selected reservations")
    def action_release(self, request, queryset):
        released = 0
        for res in queryset.filter(state=StockReservation.STATE_ACTIVE):
            if release_reservation(reservation_id=res.id, actor=request.user) is not None:
                released += 1
        messages.success(request, f"Released {released} reservation(s).")

    actions = ["action_release"]


# EOF
