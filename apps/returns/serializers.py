"""
Serializers for returns and exchanges.

Returns are created through ``ReturnDraft.from_payload`` rather than a
writable serializer, so everything here is read-only apart from the
decision serializer used by approve and reject.
"""

from rest_framework import serializers

from .models import ExchangeItem, Return, ReturnItem


class ReturnItemSerializer(serializers.ModelSerializer):
    """Serializer for returned lines."""

    product_sku = serializers.CharField(source="product.sku", read_only=True, default=None)

    class Meta:
        model = ReturnItem
        fields = [
            "id",
            "line_number",
            "sale_item",
            "product",
            "product_name",
            "product_sku",
            "quantity",
            "original_unit_price",
            "return_amount",
            "is_defective",
        ]
        read_only_fields = fields


class ExchangeItemSerializer(serializers.ModelSerializer):
    """Serializer for exchange lines."""

    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = ExchangeItem
        fields = [
            "id",
            "line_number",
            "product",
            "product_name",
            "quantity",
            "unit_price",
            "line_total",
        ]
        read_only_fields = fields


class ReturnListSerializer(serializers.ModelSerializer):
    """Serializer for return list view."""

    sale_number = serializers.CharField(source="sale.sale_number", read_only=True)
    customer_name = serializers.SerializerMethodField()
    reason_display = serializers.CharField(source="get_reason_display", read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    item_count = serializers.SerializerMethodField()
    processed_by_name = serializers.CharField(source="processed_by.username", read_only=True)

    class Meta:
        model = Return
        fields = [
            "id",
            "return_number",
            "sale",
            "sale_number",
            "customer_name",
            "reason",
            "reason_display",
            "refund_method",
            "total_amount",
            "price_difference",
            "status",
            "status_display",
            "item_count",
            "processed_by_name",
            "created_at",
        ]
        read_only_fields = fields

    def get_customer_name(self, obj):
        return obj.customer.get_full_name() if obj.customer else None

    def get_item_count(self, obj):
        return sum(item.quantity for item in obj.items.all())


class ReturnDetailSerializer(ReturnListSerializer):
    """Serializer for the full return record."""

    items = ReturnItemSerializer(many=True, read_only=True)
    exchange_items = ExchangeItemSerializer(many=True, read_only=True)
    settlement = serializers.SerializerMethodField()
    approved_by_name = serializers.CharField(
        source="approved_by.username", read_only=True, default=None
    )
    refund_method_display = serializers.CharField(
        source="get_refund_method_display", read_only=True
    )

    class Meta(ReturnListSerializer.Meta):
        fields = ReturnListSerializer.Meta.fields + [
            "customer",
            "refund_method_display",
            "notes",
            "items",
            "exchange_items",
            "settlement",
            "processed_by",
            "approved_by",
            "approved_by_name",
            "decided_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_settlement(self, obj):
        return obj.get_settlement().as_dict()


class ResolvedLineSerializer(serializers.Serializer):
    sale_item_id = serializers.UUIDField()
    product_id = serializers.UUIDField()
    product_name = serializers.CharField()
    sku = serializers.CharField()
    purchased_quantity = serializers.IntegerField()
    returned_quantity = serializers.IntegerField()
    returnable_quantity = serializers.IntegerField()
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)


class ResolvedSaleSerializer(serializers.Serializer):
    """Preview of a sale's returnable lines for the first draft step."""

    sale_id = serializers.UUIDField()
    sale_number = serializers.CharField()
    customer_name = serializers.SerializerMethodField()
    sale_date = serializers.DateTimeField(source="sale.created_at")
    lines = ResolvedLineSerializer(many=True)
    excluded_count = serializers.IntegerField()
    warnings = serializers.ListField(child=serializers.CharField())

    def get_customer_name(self, obj):
        customer = obj.sale.customer
        return customer.get_full_name() if customer else None


class ReturnDecisionSerializer(serializers.Serializer):
    """Body of approve and reject requests."""

    notes = serializers.CharField(required=False, allow_blank=True, default="")
