"""
Inventory models for the retail back-office.

A product carries two counters: sellable ``stock`` and ``defective_stock``
for returned units that cannot be sold again.
"""

import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models


class Product(models.Model):
    """
    Catalog product with on-hand quantities.

    Stock mutations go through ``InventoryService`` so that decrements are
    conditional and safe under concurrent sales and returns.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the product",
    )

    # Basic information
    sku = models.CharField(
        max_length=100,
        unique=True,
        help_text="Stock Keeping Unit",
    )

    name = models.CharField(
        max_length=255,
        help_text="Product name",
    )

    category = models.CharField(
        max_length=100,
        blank=True,
        help_text="Product category",
    )

    description = models.TextField(
        blank=True,
        help_text="Detailed description of the product",
    )

    # Pricing
    cost_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Cost price (what we paid)",
    )

    selling_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Selling price (what we charge)",
    )

    # Inventory tracking
    stock = models.IntegerField(
        default=0,
        validators=[MinValueValidator(0)],
        help_text="Sellable quantity in stock",
    )

    defective_stock = models.IntegerField(
        default=0,
        validators=[MinValueValidator(0)],
        help_text="Returned units flagged as defective, not sellable",
    )

    min_stock = models.IntegerField(
        default=0,
        validators=[MinValueValidator(0)],
        help_text="Minimum quantity threshold for low stock alerts",
    )

    # Status
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this product is active in the catalog",
    )

    # Timestamps
    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the product was added to the catalog",
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the product was last updated",
    )

    class Meta:
        db_table = "inventory_products"
        ordering = ["name"]
        verbose_name = "Product"
        verbose_name_plural = "Products"
        indexes = [
            models.Index(fields=["is_active", "stock"], name="product_active_stock_idx"),
            models.Index(fields=["category"], name="product_category_idx"),
        ]

    def __str__(self):
        return f"{self.sku} - {self.name}"

    def is_low_stock(self):
        """Check if product is at or below its minimum stock threshold."""
        return self.stock <= self.min_stock

    def is_out_of_stock(self):
        """Check if product is out of stock."""
        return self.stock == 0

    def calculate_total_value(self):
        """Calculate total inventory value (cost price * stock)."""
        return self.cost_price * self.stock
