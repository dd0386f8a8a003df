"""
Views for sales.

The list endpoint doubles as the invoice search used when starting a return.
"""

from django.db.models import Q

from rest_framework import filters, generics, permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.core.permissions import HasStoreAccess

from .models import Sale
from .serializers import SaleCreateSerializer, SaleDetailSerializer, SaleListSerializer


class SaleListView(generics.ListAPIView):
    """
    API endpoint for listing sales with filters.

    Query parameters:
    - search: Search by sale number, customer name
    - status: Filter by status
    - returnable: Only sales that returns can still be raised against
    - date_from: Filter by date (YYYY-MM-DD)
    - date_to: Filter by date (YYYY-MM-DD)
    """

    serializer_class = SaleListSerializer
    permission_classes = [permissions.IsAuthenticated, HasStoreAccess]
    filter_backends = [filters.OrderingFilter]
    ordering_fields = ["created_at", "total", "sale_number"]
    ordering = ["-created_at"]

    def get_queryset(self):
        queryset = Sale.objects.select_related("customer", "employee")

        search = self.request.query_params.get("search")
        if search:
            queryset = queryset.filter(
                Q(sale_number__icontains=search)
                | Q(customer__first_name__icontains=search)
                | Q(customer__last_name__icontains=search)
            )

        sale_status = self.request.query_params.get("status")
        if sale_status:
            queryset = queryset.filter(status=sale_status)

        returnable = self.request.query_params.get("returnable")
        if returnable and returnable.lower() in ["true", "1", "yes"]:
            queryset = queryset.filter(status=Sale.COMPLETED)

        date_from = self.request.query_params.get("date_from")
        if date_from:
            queryset = queryset.filter(created_at__date__gte=date_from)

        date_to = self.request.query_params.get("date_to")
        if date_to:
            queryset = queryset.filter(created_at__date__lte=date_to)

        return queryset


class SaleDetailView(generics.RetrieveAPIView):
    """
    API endpoint for retrieving a single sale.
    """

    serializer_class = SaleDetailSerializer
    permission_classes = [permissions.IsAuthenticated, HasStoreAccess]
    lookup_field = "id"

    def get_queryset(self):
        return Sale.objects.select_related("customer", "employee").prefetch_related(
            "items__product"
        )


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, HasStoreAccess])
def create_sale(request):
    """
    Record a new sale and deduct stock.

    Request body:
    {
        "customer_id": "uuid" (optional),
        "items": [
            {
                "product_id": "uuid",
                "quantity": 1,
                "unit_price": "100.00" (optional, uses current price if not provided),
                "discount": "0.00" (optional)
            }
        ],
        "payment_method": "CASH|CARD|STORE_CREDIT|TRANSFER",
        "discount": "0.00" (optional),
        "notes": "" (optional)
    }
    """
    serializer = SaleCreateSerializer(data=request.data, context={"request": request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    sale = serializer.save()
    return Response(SaleDetailSerializer(sale).data, status=status.HTTP_201_CREATED)
