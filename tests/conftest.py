"""
Pytest configuration and fixtures for the retail back-office.
"""

from decimal import Decimal

import pytest


@pytest.fixture
def api_client():
    """
    Fixture for Django REST framework API client.
    """
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def owner(django_user_model):
    return django_user_model.objects.create_user(
        username="owner", email="owner@example.com", password="testpass123", role="OWNER"
    )


@pytest.fixture
def manager(django_user_model):
    return django_user_model.objects.create_user(
        username="manager", email="manager@example.com", password="testpass123", role="MANAGER"
    )


@pytest.fixture
def cashier(django_user_model):
    return django_user_model.objects.create_user(
        username="cashier", email="cashier@example.com", password="testpass123", role="CASHIER"
    )


@pytest.fixture
def cashier_client(cashier):
    """
    Fixture for an API client authenticated as a cashier.
    """
    from rest_framework.test import APIClient

    client = APIClient()
    client.force_authenticate(user=cashier)
    return client


@pytest.fixture
def manager_client(manager):
    """
    Fixture for an API client authenticated as a manager.
    """
    from rest_framework.test import APIClient

    client = APIClient()
    client.force_authenticate(user=manager)
    return client


@pytest.fixture
def make_product(db):
    """
    Factory fixture for catalog products.
    """
    from apps.inventory.models import Product

    counter = {"value": 0}

    def _make_product(name="Product", price="10.00", stock=10, **kwargs):
        counter["value"] += 1
        return Product.objects.create(
            sku=kwargs.pop("sku", f"SKU-{counter['value']:04d}"),
            name=name,
            category=kwargs.pop("category", "Rings"),
            cost_price=kwargs.pop("cost_price", Decimal(price) / 2),
            selling_price=Decimal(price),
            stock=stock,
            **kwargs,
        )

    return _make_product


@pytest.fixture
def ring(make_product):
    return make_product(name="Gold Ring", price="100.00", stock=10, category="Rings")


@pytest.fixture
def necklace(make_product):
    return make_product(name="Silver Necklace", price="250.00", stock=5, category="Necklaces")


@pytest.fixture
def bracelet(make_product):
    return make_product(name="Pearl Bracelet", price="80.00", stock=3, category="Bracelets")


@pytest.fixture
def customer(db):
    from apps.sales.models import Customer

    return Customer.objects.create(
        customer_number="CUST-0001",
        first_name="Jane",
        last_name="Doe",
        email="jane@example.com",
        phone="555-0100",
    )


@pytest.fixture
def make_sale(cashier):
    """
    Factory fixture for completed sales.

    Lines are ``(product, quantity, unit_price)`` tuples. Stock is not touched;
    the sale is recorded as if the goods had already left the store.
    """
    from apps.core.models import DocumentSequence
    from apps.sales.models import Sale, SaleItem

    def _make_sale(lines, customer=None, employee=None, **kwargs):
        sale = Sale.objects.create(
            sale_number=DocumentSequence.next_number("sale", "SALE", 8),
            customer=customer,
            employee=employee or cashier,
            **kwargs,
        )
        for product, quantity, unit_price in lines:
            SaleItem.objects.create(
                sale=sale,
                product=product,
                product_name=product.name,
                quantity=quantity,
                unit_price=Decimal(unit_price),
            )
        sale.calculate_totals()
        return sale

    return _make_sale


@pytest.fixture
def sale(make_sale, ring, necklace, customer):
    """
    A completed sale: two rings at 100.00 and one necklace at 250.00.
    """
    return make_sale([(ring, 2, "100.00"), (necklace, 1, "250.00")], customer=customer)


@pytest.fixture
def sale_items(sale):
    """Sale lines keyed by product name."""
    return {item.product_name: item for item in sale.items.all()}
