"""
Tests for sales models and the sales API.
"""

from decimal import Decimal

import pytest
from django.urls import reverse
from rest_framework import status

from apps.inventory.models import Product
from apps.sales.models import Sale


@pytest.mark.django_db
class TestSaleModel:
    def test_totals_and_snapshot(self, sale, sale_items):
        assert sale.subtotal == Decimal("450.00")
        assert sale.total == Decimal("450.00")
        assert sale_items["Gold Ring"].subtotal == Decimal("200.00")
        assert sale_items["Gold Ring"].has_valid_product()

    def test_deleting_product_keeps_sale_line(self, sale, ring):
        ring.delete()

        item = sale.items.get(product_name="Gold Ring")
        assert item.product is None
        assert not item.has_valid_product()
        assert item.unit_price == Decimal("100.00")

    def test_status_changes(self, sale):
        assert sale.can_be_returned()
        sale.mark_as_returned()
        assert Sale.objects.get(pk=sale.pk).status == Sale.RETURNED
        assert not sale.can_be_returned()
        with pytest.raises(ValueError):
            sale.mark_as_cancelled()


@pytest.mark.django_db
class TestSalesAPI:
    def test_create_sale_deducts_stock(self, cashier_client, ring, customer):
        response = cashier_client.post(
            reverse("sales:sale_create"),
            {
                "customer_id": str(customer.pk),
                "items": [{"product_id": str(ring.pk), "quantity": 3}],
                "payment_method": "CARD",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["total"] == "300.00"
        assert response.data["sale_number"] == "SALE-00000001"
        assert Product.objects.get(pk=ring.pk).stock == 7

    def test_create_sale_insufficient_stock(self, cashier_client, bracelet):
        response = cashier_client.post(
            reverse("sales:sale_create"),
            {"items": [{"product_id": str(bracelet.pk), "quantity": 4}], "payment_method": "CASH"},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Sale.objects.count() == 0
        assert Product.objects.get(pk=bracelet.pk).stock == 3

    def test_search_sales(self, cashier_client, sale):
        response = cashier_client.get(reverse("sales:sale_list"), {"search": "doe"})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["results"][0]["sale_number"] == sale.sale_number

    def test_returnable_filter(self, cashier_client, sale):
        sale.mark_as_cancelled()

        response = cashier_client.get(reverse("sales:sale_list"), {"returnable": "true"})
        assert response.data["count"] == 0

    def test_sale_detail(self, cashier_client, sale):
        response = cashier_client.get(reverse("sales:sale_detail", kwargs={"id": sale.pk}))

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data["items"]) == 2
