"""
Django admin configuration for inventory models.
"""

from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """Admin interface for Product."""

    list_display = [
        "sku",
        "name",
        "category",
        "selling_price",
        "stock",
        "defective_stock",
        "is_active",
    ]
    list_filter = [
        "is_active",
        "category",
        "created_at",
    ]
    search_fields = [
        "sku",
        "name",
        "description",
    ]
    readonly_fields = ["created_at", "updated_at"]
    fieldsets = (
        (
            "Basic Information",
            {
                "fields": ("sku", "name", "category", "description", "is_active"),
            },
        ),
        (
            "Pricing",
            {
                "fields": ("cost_price", "selling_price"),
            },
        ),
        (
            "Inventory",
            {
                "fields": ("stock", "defective_stock", "min_stock"),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
                "classes": ("collapse",),
            },
        ),
    )
