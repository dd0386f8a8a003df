"""
Inventory service.

Every stock change in the system goes through ``InventoryService``.
Decrements are conditional single-statement updates, so two concurrent
callers can never both take the last unit.
"""

import logging

from django.db.models import F, Q
from django.utils import timezone

from .exceptions import InsufficientStockError, ProductNotFoundError
from .models import Product

logger = logging.getLogger(__name__)


class InventoryService:
    """
    Stock read and mutation operations.
    """

    @staticmethod
    def get_stock(product_id) -> int:
        """Return the current sellable stock of a product."""
        try:
            return Product.objects.values_list("stock", flat=True).get(pk=product_id)
        except Product.DoesNotExist:
            raise ProductNotFoundError(f"Product {product_id} not found")

    @staticmethod
    def in_stock_products(search=None):
        """Active products with at least one sellable unit."""
        queryset = Product.objects.filter(is_active=True, stock__gt=0)
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) | Q(sku__icontains=search) | Q(category__icontains=search)
            )
        return queryset.order_by("name")

    @staticmethod
    def lock_products(product_ids):
        """
        Lock product rows for the rest of the current transaction.

        Rows are locked in primary-key order so concurrent callers touching
        overlapping products cannot deadlock. Must be called inside
        ``transaction.atomic``.

        Returns:
            Dict mapping product id to the locked Product
        """
        ids = sorted({pid for pid in product_ids if pid is not None}, key=str)
        products = Product.objects.select_for_update().filter(pk__in=ids).order_by("pk")
        return {product.pk: product for product in products}

    @staticmethod
    def increment_stock(product_id, quantity: int, reason: str = "") -> None:
        """Unconditionally add sellable units to a product."""
        updated = Product.objects.filter(pk=product_id).update(
            stock=F("stock") + quantity, updated_at=timezone.now()
        )
        if not updated:
            raise ProductNotFoundError(f"Product {product_id} not found")
        logger.info(f"Stock +{quantity} for product {product_id} ({reason})")

    @staticmethod
    def increment_defective_stock(product_id, quantity: int, reason: str = "") -> None:
        """Unconditionally add units to a product's defective counter."""
        updated = Product.objects.filter(pk=product_id).update(
            defective_stock=F("defective_stock") + quantity, updated_at=timezone.now()
        )
        if not updated:
            raise ProductNotFoundError(f"Product {product_id} not found")
        logger.info(f"Defective stock +{quantity} for product {product_id} ({reason})")

    @staticmethod
    def decrement_stock(product_id, quantity: int, reason: str = "") -> None:
        """
        Remove sellable units from a product if enough are on hand.

        Raises:
            InsufficientStockError: If fewer than ``quantity`` units are in stock
        """
        updated = Product.objects.filter(pk=product_id, stock__gte=quantity).update(
            stock=F("stock") - quantity, updated_at=timezone.now()
        )
        if updated:
            logger.info(f"Stock -{quantity} for product {product_id} ({reason})")
            return

        product = Product.objects.filter(pk=product_id).values("name", "stock").first()
        if product is None:
            raise InsufficientStockError(product_id, None, quantity, 0)
        raise InsufficientStockError(product_id, product["name"], quantity, product["stock"])
