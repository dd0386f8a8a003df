"""
Sales models for the retail back-office.

A sale line keeps a snapshot of the product name and its price at the time
of sale; the product link itself is nullable so that removing a product
from the catalog leaves the historical sale intact.
"""

import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from apps.core.models import User
from apps.inventory.models import Product


class Customer(models.Model):
    """
    Customer record with a store credit balance.

    Store credit is topped up when a return is refunded as store credit.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the customer",
    )

    customer_number = models.CharField(
        max_length=50,
        unique=True,
        help_text="Unique customer number",
    )

    # Contact information
    first_name = models.CharField(
        max_length=100,
        help_text="Customer's first name",
    )

    last_name = models.CharField(
        max_length=100,
        blank=True,
        help_text="Customer's last name",
    )

    email = models.EmailField(
        null=True,
        blank=True,
        help_text="Customer's email address",
    )

    phone = models.CharField(
        max_length=20,
        blank=True,
        help_text="Customer's phone number",
    )

    store_credit = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Store credit balance",
    )

    # Timestamps
    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the customer was created",
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the customer was last updated",
    )

    class Meta:
        db_table = "sales_customers"
        ordering = ["-created_at"]
        verbose_name = "Customer"
        verbose_name_plural = "Customers"
        indexes = [
            models.Index(fields=["phone"], name="cust_phone_idx"),
            models.Index(fields=["email"], name="cust_email_idx"),
        ]

    def __str__(self):
        return f"{self.customer_number} - {self.get_full_name()}"

    def get_full_name(self):
        """Return the customer's full name."""
        return f"{self.first_name} {self.last_name}".strip()


class Sale(models.Model):
    """
    Sale model for tracking completed point-of-sale transactions.

    A sale moves to RETURNED once every unit on it has come back through
    completed returns. CANCELLED and RETURNED sales cannot be returned against.
    """

    # Payment method choices
    CASH = "CASH"
    CARD = "CARD"
    STORE_CREDIT = "STORE_CREDIT"
    TRANSFER = "TRANSFER"

    PAYMENT_METHOD_CHOICES = [
        (CASH, "Cash"),
        (CARD, "Card"),
        (STORE_CREDIT, "Store Credit"),
        (TRANSFER, "Bank Transfer"),
    ]

    # Status choices
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"

    STATUS_CHOICES = [
        (COMPLETED, "Completed"),
        (CANCELLED, "Cancelled"),
        (RETURNED, "Returned"),
    ]

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the sale",
    )

    sale_number = models.CharField(
        max_length=50,
        unique=True,
        help_text="Invoice number printed on the receipt (e.g., 'SALE-00000001')",
    )

    # Relationships
    customer = models.ForeignKey(
        Customer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sales",
        help_text="Customer who made the purchase (optional for walk-in sales)",
    )

    employee = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name="sales_processed",
        help_text="Employee who processed the sale",
    )

    # Financial details
    subtotal = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Subtotal before discount",
    )

    discount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Discount amount",
    )

    total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Total amount (subtotal - discount)",
    )

    payment_method = models.CharField(
        max_length=50,
        choices=PAYMENT_METHOD_CHOICES,
        default=CASH,
        help_text="Payment method used",
    )

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=COMPLETED,
        help_text="Current status of the sale",
    )

    notes = models.TextField(
        blank=True,
        help_text="Additional notes about the sale",
    )

    # Timestamps
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When the sale was created",
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the sale was last updated",
    )

    class Meta:
        db_table = "sales"
        ordering = ["-created_at"]
        verbose_name = "Sale"
        verbose_name_plural = "Sales"
        indexes = [
            models.Index(fields=["status", "-created_at"], name="sale_status_date_idx"),
            models.Index(fields=["customer", "-created_at"], name="sale_cust_date_idx"),
            models.Index(fields=["employee", "-created_at"], name="sale_emp_date_idx"),
        ]

    def __str__(self):
        return f"{self.sale_number} - {self.total}"

    def calculate_totals(self):
        """
        Calculate subtotal and total from sale items.
        This should be called after adding/removing sale items.
        """
        items = self.items.all()
        self.subtotal = sum((item.subtotal for item in items), Decimal("0.00"))
        self.total = self.subtotal - self.discount
        self.save(update_fields=["subtotal", "total", "updated_at"])

    def can_be_returned(self):
        """Check if returns may still be raised against this sale."""
        return self.status == self.COMPLETED

    def can_be_cancelled(self):
        """Check if this sale can be cancelled."""
        return self.status == self.COMPLETED

    def mark_as_returned(self):
        """Mark the sale as fully returned."""
        if not self.can_be_returned():
            raise ValueError("This sale cannot be marked as returned")
        self.status = self.RETURNED
        self.save(update_fields=["status", "updated_at"])

    def mark_as_cancelled(self):
        """Mark the sale as cancelled."""
        if not self.can_be_cancelled():
            raise ValueError("This sale cannot be cancelled")
        self.status = self.CANCELLED
        self.save(update_fields=["status", "updated_at"])


class SaleItem(models.Model):
    """
    Sale item model for tracking individual lines in a sale.

    ``product`` becomes NULL when the product is deleted from the catalog;
    ``product_name`` and ``unit_price`` keep the historical values.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the sale item",
    )

    sale = models.ForeignKey(
        Sale,
        on_delete=models.CASCADE,
        related_name="items",
        help_text="Sale that this item belongs to",
    )

    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sale_items",
        help_text="Product that was sold (null if since removed from the catalog)",
    )

    product_name = models.CharField(
        max_length=255,
        help_text="Product name at time of sale",
    )

    # Quantity and pricing
    quantity = models.IntegerField(
        validators=[MinValueValidator(1)],
        help_text="Quantity sold",
    )

    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Unit price at time of sale (may differ from current catalog price)",
    )

    discount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Discount applied to this specific item",
    )

    subtotal = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Subtotal for this line item (quantity * unit_price - discount)",
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the sale item was added",
    )

    class Meta:
        db_table = "sale_items"
        ordering = ["created_at", "id"]
        verbose_name = "Sale Item"
        verbose_name_plural = "Sale Items"
        indexes = [
            models.Index(fields=["sale"], name="saleitem_sale_idx"),
            models.Index(fields=["product"], name="saleitem_product_idx"),
        ]

    def __str__(self):
        return f"{self.product_name} x {self.quantity}"

    def save(self, *args, **kwargs):
        """
        Override save to fill in the name snapshot and subtotal if not provided.
        """
        if not self.product_name and self.product_id:
            self.product_name = self.product.name
        if self.subtotal is None:
            self.subtotal = self.calculate_subtotal()
        super().save(*args, **kwargs)

    def calculate_subtotal(self):
        """Calculate and return the subtotal for this item."""
        return (self.unit_price * self.quantity) - self.discount

    def has_valid_product(self):
        """Check if the sold product still exists in the catalog."""
        return self.product_id is not None
