from django.contrib import admin, messages

from .models import Quotation, QuotationDetail, QuotationStatusHistory
from .services import expire_overdue


class QuotationDetailInline(admin.TabularInline):
    model = QuotationDetail
    extra = 0
    raw_id_fields = ("product", "warehouse")
    readonly_fields = (
        "unit_cost",
        "total_cost",
        "unit_margin",
        "total_margin",
        "margin_percentage",
        "subtotal",
        "tax",
        "total",
    )


class QuotationStatusHistoryInline(admin.TabularInline):
    model = QuotationStatusHistory
    extra = 0
    can_delete = False
    readonly_fields = ("status_from", "status_to", "note", "actor", "created_at")


@admin.register(Quotation)
class QuotationAdmin(admin.ModelAdmin):
    list_display = ("code", "customer_name", "status", "currency", "total", "margin_percentage", "valid_until")
    list_filter = ("status", "currency", "warehouse")
    search_fields = ("code", "customer_name", "customer_document")
    date_hierarchy = "quotation_date"
    readonly_fields = ("code", "subtotal", "tax", "total", "total_margin", "margin_percentage", "converted_at")
    inlines = [QuotationDetailInline, QuotationStatusHistoryInline]
    actions = ["action_expire_overdue"]

    @admin.action(description="Expire overdue quotations")
    def action_expire_overdue(self, request, queryset):
        count = expire_overdue()
        messages.success(request, f"Expired {count} quotation(s).")
