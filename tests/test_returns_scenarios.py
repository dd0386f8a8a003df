"""
End-to-end return scenarios against the API.

Sale S1 holds P1 x10 at 50.00. P2 sells at 130.00.
"""

from decimal import Decimal

import pytest
from django.urls import reverse
from rest_framework import status

from apps.inventory.models import Product
from apps.returns.drafts import DraftState, ReturnDraft
from apps.returns.exceptions import NoValidItemsError
from apps.returns.models import Return


@pytest.fixture
def p1(make_product):
    return make_product(name="P1", price="50.00", stock=20)


@pytest.fixture
def p2(make_product):
    return make_product(name="P2", price="130.00", stock=5)


@pytest.fixture
def s1(make_sale, p1):
    return make_sale([(p1, 10, "50.00")])


def post_return(client, payload):
    return client.post(reverse("returns:return_list"), payload, format="json")


def approve(client, return_id):
    url = reverse("returns:return_approve", kwargs={"return_id": return_id})
    return client.put(url, {}, format="json")


@pytest.mark.django_db
class TestScenarios:
    def test_defective_cash_refund_is_created_pending(self, cashier_client, s1, p1):
        response = post_return(
            cashier_client,
            {
                "saleId": str(s1.pk),
                "items": [{"productId": str(p1.pk), "quantity": 3}],
                "reason": "Defective",
                "refundMethod": "Cash",
            },
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["items"][0]["return_amount"] == "150.00"
        assert response.data["total_amount"] == "150.00"
        assert response.data["status"] == "PENDING"

    def test_exchange_where_customer_pays_difference(self, cashier_client, s1, p1, p2):
        response = post_return(
            cashier_client,
            {
                "saleId": str(s1.pk),
                "items": [{"productId": str(p1.pk), "quantity": 2}],
                "reason": "Exchange",
                "exchangeItems": [{"productId": str(p2.pk), "quantity": 1, "price": "130.00"}],
            },
        )

        assert response.status_code == status.HTTP_201_CREATED
        settlement = response.data["settlement"]
        assert settlement["return_total"] == "100.00"
        assert settlement["exchange_total"] == "130.00"
        assert settlement["price_difference"] == "30.00"
        assert settlement["customer_owes"] == "30.00"

    def test_approval_restocks_and_completes(
        self, cashier_client, manager_client, manager, s1, p1
    ):
        created = post_return(
            cashier_client,
            {
                "saleId": str(s1.pk),
                "items": [{"productId": str(p1.pk), "quantity": 3}],
                "reason": "DEFECTIVE",
                "refundMethod": "CASH",
            },
        ).data

        response = approve(manager_client, created["id"])

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == "COMPLETED"
        assert response.data["approved_by"] == manager.pk
        assert Product.objects.get(pk=p1.pk).stock == 23

    def test_second_approval_changes_nothing(self, cashier_client, manager_client, s1, p1):
        created = post_return(
            cashier_client,
            {
                "saleId": str(s1.pk),
                "items": [{"productId": str(p1.pk), "quantity": 3}],
                "reason": "DEFECTIVE",
                "refundMethod": "CASH",
            },
        ).data
        approve(manager_client, created["id"])

        response = approve(manager_client, created["id"])

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == "COMPLETED"
        assert Product.objects.get(pk=p1.pk).stock == 23

    def test_exchange_stock_dropped_before_approval(
        self, cashier_client, manager_client, s1, p1, p2
    ):
        created = post_return(
            cashier_client,
            {
                "saleId": str(s1.pk),
                "items": [{"productId": str(p1.pk), "quantity": 2}],
                "reason": "EXCHANGE",
                "exchangeItems": [{"productId": str(p2.pk), "quantity": 5}],
            },
        ).data
        Product.objects.filter(pk=p2.pk).update(stock=2)

        response = approve(manager_client, created["id"])

        assert response.status_code == status.HTTP_409_CONFLICT
        failure = response.data["failures"][0]
        assert failure["product_name"] == "P2"
        assert failure["requested"] == 5
        assert failure["available"] == 2
        assert Return.objects.get(pk=created["id"]).status == Return.PENDING
        assert Product.objects.get(pk=p1.pk).stock == 20

    def test_sale_with_deleted_product_cannot_be_drafted(self, make_sale, p1):
        sale = make_sale([(p1, 1, "50.00")])
        p1.delete()
        draft = ReturnDraft()

        with pytest.raises(NoValidItemsError) as exc_info:
            draft.select_sale(sale.sale_number)

        assert exc_info.value.excluded_count == 1
        assert draft.state == DraftState.SELECT_SALE


@pytest.mark.django_db
class TestProperties:
    def test_refund_total_matches_line_amounts(self, cashier_client, make_sale, p1, p2):
        sale = make_sale([(p1, 3, "19.99"), (p2, 2, "130.00")])

        data = post_return(
            cashier_client,
            {
                "saleId": str(sale.pk),
                "items": [
                    {"productId": str(p1.pk), "quantity": 3},
                    {"productId": str(p2.pk), "quantity": 1},
                ],
                "reason": "OTHER",
                "refundMethod": "CARD",
            },
        ).data

        line_sum = sum(Decimal(item["return_amount"]) for item in data["items"])
        assert Decimal(data["total_amount"]) == line_sum == Decimal("189.97")
        assert data["refund_method"] == "CARD"
        assert data["exchange_items"] == []
