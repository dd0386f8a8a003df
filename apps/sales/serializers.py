"""
Serializers for sales models.
"""

import logging
from decimal import Decimal

from django.db import transaction

from rest_framework import serializers

from apps.core.models import DocumentSequence
from apps.inventory.exceptions import InsufficientStockError
from apps.inventory.services import InventoryService

from .models import Customer, Sale, SaleItem

logger = logging.getLogger(__name__)


class CustomerSerializer(serializers.ModelSerializer):
    """Serializer for Customer model."""

    full_name = serializers.CharField(source="get_full_name", read_only=True)

    class Meta:
        model = Customer
        fields = [
            "id",
            "customer_number",
            "first_name",
            "last_name",
            "full_name",
            "email",
            "phone",
            "store_credit",
            "created_at",
        ]
        read_only_fields = ["id", "store_credit", "created_at"]


class SaleItemDetailSerializer(serializers.ModelSerializer):
    """Serializer for sale item details."""

    product_sku = serializers.CharField(source="product.sku", read_only=True, default=None)
    has_valid_product = serializers.BooleanField(read_only=True)

    class Meta:
        model = SaleItem
        fields = [
            "id",
            "product",
            "product_name",
            "product_sku",
            "has_valid_product",
            "quantity",
            "unit_price",
            "discount",
            "subtotal",
        ]


class SaleDetailSerializer(serializers.ModelSerializer):
    """Serializer for sale details."""

    items = SaleItemDetailSerializer(many=True, read_only=True)
    customer_name = serializers.SerializerMethodField()
    employee_name = serializers.CharField(source="employee.get_full_name", read_only=True)

    class Meta:
        model = Sale
        fields = [
            "id",
            "sale_number",
            "customer",
            "customer_name",
            "employee",
            "employee_name",
            "items",
            "subtotal",
            "discount",
            "total",
            "payment_method",
            "status",
            "notes",
            "created_at",
        ]

    def get_customer_name(self, obj):
        """Get customer name or 'Walk-in' if no customer."""
        return obj.customer.get_full_name() if obj.customer else "Walk-in"


class SaleListSerializer(serializers.ModelSerializer):
    """Serializer for sale list."""

    customer_name = serializers.SerializerMethodField()
    employee_name = serializers.CharField(source="employee.get_full_name", read_only=True)
    items_count = serializers.SerializerMethodField()

    class Meta:
        model = Sale
        fields = [
            "id",
            "sale_number",
            "customer_name",
            "employee_name",
            "total",
            "payment_method",
            "status",
            "items_count",
            "created_at",
        ]

    def get_customer_name(self, obj):
        """Get customer name or 'Walk-in' if no customer."""
        return obj.customer.get_full_name() if obj.customer else "Walk-in"

    def get_items_count(self, obj):
        """Get count of items in sale."""
        return obj.items.count()


class SaleItemCreateSerializer(serializers.Serializer):
    """Serializer for a single line of a new sale."""

    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, min_value=Decimal("0.00")
    )
    discount = serializers.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"), min_value=Decimal("0.00")
    )


class SaleCreateSerializer(serializers.Serializer):
    """
    Serializer for recording a new sale.

    Handles:
    - Sale creation with multiple items
    - Conditional stock deduction
    - Customer association
    """

    customer_id = serializers.UUIDField(required=False, allow_null=True)
    items = SaleItemCreateSerializer(many=True)
    payment_method = serializers.ChoiceField(choices=Sale.PAYMENT_METHOD_CHOICES)
    discount = serializers.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"), min_value=Decimal("0.00")
    )
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate_customer_id(self, value):
        """Validate that customer exists."""
        if value is None:
            return value
        if not Customer.objects.filter(id=value).exists():
            raise serializers.ValidationError("Customer not found.")
        return value

    def validate_items(self, value):
        """Validate that at least one item is provided."""
        if not value:
            raise serializers.ValidationError("At least one item is required.")
        return value

    @transaction.atomic
    def create(self, validated_data):
        """
        Create sale with items and deduct stock.

        This method:
        1. Locks the products being sold
        2. Generates the sale number
        3. Creates sale and sale items
        4. Deducts stock conditionally
        5. Calculates totals
        """
        user = self.context["request"].user
        items_data = validated_data.pop("items")
        customer_id = validated_data.pop("customer_id", None)

        products = InventoryService.lock_products(item["product_id"] for item in items_data)
        missing = [str(item["product_id"]) for item in items_data if item["product_id"] not in products]
        if missing:
            raise serializers.ValidationError({"items": [f"Product {pid} not found." for pid in missing]})

        sale = Sale.objects.create(
            sale_number=DocumentSequence.next_number("sale", "SALE", 8),
            customer_id=customer_id,
            employee=user,
            **validated_data,
        )

        for item_data in items_data:
            product = products[item_data["product_id"]]
            quantity = item_data["quantity"]
            try:
                InventoryService.decrement_stock(
                    product.pk, quantity, reason=f"Sale {sale.sale_number}"
                )
            except InsufficientStockError as e:
                raise serializers.ValidationError({"items": [str(e)]})

            SaleItem.objects.create(
                sale=sale,
                product=product,
                product_name=product.name,
                quantity=quantity,
                unit_price=item_data.get("unit_price", product.selling_price),
                discount=item_data["discount"],
            )

        sale.calculate_totals()
        logger.info(f"Sale {sale.sale_number} recorded by {user.username}: total {sale.total}")
        return sale
