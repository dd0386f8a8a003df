"""
Serializers for inventory models.
"""

from rest_framework import serializers

from .models import Product


class ProductSerializer(serializers.ModelSerializer):
    """Serializer for product lists and details."""

    is_low_stock = serializers.BooleanField(read_only=True)
    is_out_of_stock = serializers.BooleanField(read_only=True)
    total_value = serializers.DecimalField(
        source="calculate_total_value",
        max_digits=14,
        decimal_places=2,
        read_only=True,
    )

    class Meta:
        model = Product
        fields = [
            "id",
            "sku",
            "name",
            "category",
            "description",
            "cost_price",
            "selling_price",
            "stock",
            "defective_stock",
            "min_stock",
            "is_low_stock",
            "is_out_of_stock",
            "total_value",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class StockAdjustmentSerializer(serializers.Serializer):
    """Serializer for manual stock adjustment operations."""

    ADJUSTMENT_ADD = "ADD"
    ADJUSTMENT_DEDUCT = "DEDUCT"

    ADJUSTMENT_TYPE_CHOICES = [
        (ADJUSTMENT_ADD, "Add to stock"),
        (ADJUSTMENT_DEDUCT, "Deduct from stock"),
    ]

    adjustment_type = serializers.ChoiceField(choices=ADJUSTMENT_TYPE_CHOICES)
    quantity = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True)
