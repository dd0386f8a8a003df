"""
Django admin configuration for sales models.
"""

from django.contrib import admin

from .models import Customer, Sale, SaleItem


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    """Admin interface for Customer model."""

    list_display = ["customer_number", "first_name", "last_name", "phone", "store_credit"]
    search_fields = ["customer_number", "first_name", "last_name", "email", "phone"]
    readonly_fields = ["id", "created_at", "updated_at"]


class SaleItemInline(admin.TabularInline):
    """Inline admin for SaleItem model."""

    model = SaleItem
    extra = 0
    readonly_fields = ["id", "subtotal", "created_at"]
    fields = ["product", "product_name", "quantity", "unit_price", "discount", "subtotal"]


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    """Admin interface for Sale model."""

    list_display = [
        "sale_number",
        "customer",
        "employee",
        "total",
        "payment_method",
        "status",
        "created_at",
    ]
    list_filter = ["status", "payment_method", "created_at"]
    search_fields = [
        "sale_number",
        "customer__customer_number",
        "customer__first_name",
        "customer__last_name",
    ]
    readonly_fields = ["id", "created_at", "updated_at"]
    inlines = [SaleItemInline]
    fieldsets = [
        (
            "Sale Information",
            {
                "fields": ["id", "sale_number", "customer", "employee", "status"],
            },
        ),
        (
            "Financial Details",
            {
                "fields": ["subtotal", "discount", "total", "payment_method"],
            },
        ),
        (
            "Additional Information",
            {
                "fields": ["notes", "created_at", "updated_at"],
            },
        ),
    ]
