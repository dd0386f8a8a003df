"""
Django admin configuration for returns.

Returns are audit records: the admin shows them but never edits or deletes
them. Approvals go through the API so stock is reconciled.
"""

from django.contrib import admin

from .models import ExchangeItem, Return, ReturnItem


class ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class ReturnItemInline(ReadOnlyInline):
    model = ReturnItem
    fields = [
        "line_number",
        "product_name",
        "quantity",
        "original_unit_price",
        "return_amount",
        "is_defective",
    ]
    readonly_fields = fields


class ExchangeItemInline(ReadOnlyInline):
    model = ExchangeItem
    fields = ["line_number", "product_name", "quantity", "unit_price"]
    readonly_fields = fields


@admin.register(Return)
class ReturnAdmin(admin.ModelAdmin):
    """Admin interface for Return model."""

    list_display = [
        "return_number",
        "sale",
        "customer",
        "reason",
        "refund_method",
        "total_amount",
        "price_difference",
        "status",
        "created_at",
    ]
    list_filter = ["status", "reason", "refund_method", "created_at"]
    search_fields = ["return_number", "sale__sale_number", "customer__last_name", "notes"]
    date_hierarchy = "created_at"
    inlines = [ReturnItemInline, ExchangeItemInline]
    readonly_fields = [
        "id",
        "return_number",
        "sale",
        "customer",
        "reason",
        "refund_method",
        "total_amount",
        "price_difference",
        "notes",
        "status",
        "processed_by",
        "approved_by",
        "created_at",
        "updated_at",
        "decided_at",
    ]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
