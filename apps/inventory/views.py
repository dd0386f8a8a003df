"""
Views for inventory management.

The product endpoints back the exchange-item picker and the manual stock
adjustment screen.
"""

import logging

from django.db.models import F, Q

from rest_framework import filters, generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.permissions import HasStoreAccess

from .exceptions import InsufficientStockError, ProductNotFoundError
from .models import Product
from .serializers import ProductSerializer, StockAdjustmentSerializer
from .services import InventoryService

logger = logging.getLogger(__name__)


class ProductListView(generics.ListAPIView):
    """
    API endpoint for listing products with search and filters.

    Supports:
    - Search by SKU, name, category
    - Filter by is_active, in_stock, low_stock
    - Ordering by various fields
    """

    serializer_class = ProductSerializer
    permission_classes = [permissions.IsAuthenticated, HasStoreAccess]
    filter_backends = [filters.OrderingFilter]
    ordering_fields = ["sku", "name", "stock", "selling_price", "created_at"]
    ordering = ["name"]

    def get_queryset(self):
        queryset = Product.objects.all()

        search = self.request.query_params.get("search", None)
        if search:
            queryset = queryset.filter(
                Q(sku__icontains=search) | Q(name__icontains=search) | Q(category__icontains=search)
            )

        is_active = self.request.query_params.get("is_active", None)
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() in ["true", "1", "yes"])

        in_stock = self.request.query_params.get("in_stock", None)
        if in_stock and in_stock.lower() in ["true", "1", "yes"]:
            queryset = queryset.filter(stock__gt=0)

        low_stock = self.request.query_params.get("low_stock", None)
        if low_stock and low_stock.lower() in ["true", "1", "yes"]:
            queryset = queryset.filter(stock__lte=F("min_stock"))

        return queryset


class ProductDetailView(generics.RetrieveAPIView):
    """
    API endpoint for retrieving a single product.
    """

    serializer_class = ProductSerializer
    permission_classes = [permissions.IsAuthenticated, HasStoreAccess]
    lookup_field = "id"
    queryset = Product.objects.all()


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasStoreAccess])
def stock_adjustment(request, product_id):
    """
    API endpoint for adjusting stock levels.

    Request body:
    {
        "adjustment_type": "ADD|DEDUCT",
        "quantity": <number>,
        "reason": "<optional reason>"
    }
    """
    if not request.user.can_manage_inventory():
        return Response(
            {"detail": "You do not have permission to adjust stock."},
            status=status.HTTP_403_FORBIDDEN,
        )

    serializer = StockAdjustmentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    adjustment_type = serializer.validated_data["adjustment_type"]
    quantity = serializer.validated_data["quantity"]
    reason = serializer.validated_data.get("reason") or f"Manual adjustment by {request.user.username}"

    try:
        if adjustment_type == StockAdjustmentSerializer.ADJUSTMENT_ADD:
            InventoryService.increment_stock(product_id, quantity, reason)
        else:
            InventoryService.decrement_stock(product_id, quantity, reason)
    except ProductNotFoundError:
        return Response({"detail": "Product not found."}, status=status.HTTP_404_NOT_FOUND)
    except InsufficientStockError as e:
        if e.product_name is None:
            return Response({"detail": "Product not found."}, status=status.HTTP_404_NOT_FOUND)
        return Response({"quantity": [str(e)]}, status=status.HTTP_400_BAD_REQUEST)

    product = Product.objects.get(pk=product_id)
    return Response(
        {
            "detail": "Stock adjusted successfully.",
            "product": ProductSerializer(product).data,
        },
        status=status.HTTP_200_OK,
    )
